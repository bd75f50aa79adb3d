"""File record store: a directory holding one `<table>.csv|json|jsonl` per table."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from bizmetrics.record_store.base import RecordStore, RecordStoreError, matches_filters, sort_rows
from bizmetrics.record_store.parsers import SUPPORTED_EXTENSIONS, parse_file
from bizmetrics.record_store.sqlalchemy_store import dataframe_to_rows

logger = logging.getLogger(__name__)


class FileRecordStore(RecordStore):
    store_type = "file"

    def __init__(self, config: dict):
        super().__init__(config)
        data_dir = self.config.get("data_dir")
        if not data_dir:
            raise RecordStoreError("file store requires config.data_dir")
        self.data_dir = Path(data_dir)

    def _find_file(self, table: str) -> Optional[Path]:
        for ext in sorted(SUPPORTED_EXTENSIONS):
            candidate = self.data_dir / f"{table}{ext}"
            if candidate.exists():
                return candidate
        return None

    async def test_connection(self) -> tuple[str, str]:
        if self.data_dir.is_dir():
            return "connected", f"Reading records from {self.data_dir}"
        return "error", f"Data directory not found: {self.data_dir}"

    def _fetch_sync(self, table: str) -> List[Dict[str, Any]]:
        path = self._find_file(table)
        if path is None:
            logger.warning(f"No file for table '{table}' in {self.data_dir}; treating as empty")
            return []
        df = parse_file(path.read_bytes(), path.name)
        return dataframe_to_rows(df)

    async def fetch(
        self,
        table: str,
        *,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        rows = await asyncio.to_thread(self._fetch_sync, table)
        rows = [r for r in rows if matches_filters(r, filters)]
        return sort_rows(rows, order_by, descending)
