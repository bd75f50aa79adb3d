"""In-memory record store: tables held as lists of dicts."""
from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

from bizmetrics.record_store.base import RecordStore, matches_filters, sort_rows


class InMemoryRecordStore(RecordStore):
    store_type = "memory"

    def __init__(self, config: dict = None, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        super().__init__(config)
        self.tables: Dict[str, List[Dict[str, Any]]] = tables if tables is not None else self.config.get("tables", {})

    async def test_connection(self) -> tuple[str, str]:
        return "connected", f"In-memory store with {len(self.tables)} table(s)"

    async def fetch(
        self,
        table: str,
        *,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        rows = [copy.deepcopy(r) for r in self.tables.get(table, []) if matches_filters(r, filters)]
        return sort_rows(rows, order_by, descending)
