"""
Base record store interface.
Every record source adapter inherits from this class. Stores are read-only:
the metrics engine never writes back.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class RecordStoreError(Exception):
    """Raised when a record store is misconfigured or a read fails."""
    pass


class RecordStore(ABC):
    """Abstract base class for all record stores."""

    store_type: str = "unknown"

    def __init__(self, config: dict):
        self.config = config or {}

    @abstractmethod
    async def test_connection(self) -> tuple[str, str]:
        """
        Test that the store is reachable.
        Returns (status, message) where status is "connected" or "error".
        """
        ...

    @abstractmethod
    async def fetch(
        self,
        table: str,
        *,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Read all rows of a table as plain dicts.
        `filters` are equality filters applied by the store; a missing table
        yields an empty list.
        """
        ...


def sort_rows(rows: List[Dict[str, Any]], order_by: Optional[str], descending: bool) -> List[Dict[str, Any]]:
    """Stable sort on one column; rows without a value go last.

    Values that cannot be compared with each other (str next to datetime,
    naive next to aware) leave the rows in store order.
    """
    if not order_by:
        return rows
    present = [r for r in rows if r.get(order_by) is not None]
    missing = [r for r in rows if r.get(order_by) is None]
    try:
        present = sorted(present, key=lambda r: r[order_by], reverse=descending)
    except TypeError as e:
        logger.warning(f"Cannot order rows by '{order_by}' ({e}); keeping store order")
    return present + missing


def matches_filters(row: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(row.get(col) == value for col, value in filters.items())
