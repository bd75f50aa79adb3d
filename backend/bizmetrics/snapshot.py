"""
Record snapshot: one immutable, in-memory copy of every collection a report
needs, loaded with a single batch of concurrent reads.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from bizmetrics.record_store.base import RecordStore
from bizmetrics.records import (
    RECORD_TYPES, Appointment, Client, Product, Sale, SaleLine, Staff, Transaction,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollectionQuery:
    """A read issued against the record store for one snapshot collection."""
    collection: str
    table: str
    filters: Optional[Dict[str, Any]] = None
    order_by: Optional[str] = None
    descending: bool = False


SNAPSHOT_QUERIES: Tuple[CollectionQuery, ...] = (
    CollectionQuery("transactions", "transactions", order_by="date"),
    CollectionQuery("appointments", "appointments", order_by="start_time", descending=True),
    CollectionQuery("clients", "clients", order_by="name"),
    CollectionQuery("staff", "staff", filters={"status": "active"}),
    CollectionQuery("products", "products"),
    CollectionQuery("sale_lines", "comanda_items"),
    CollectionQuery("sales", "comandas", filters={"status": "paid"}),
)


@dataclass(frozen=True)
class RecordSnapshot:
    transactions: Tuple[Transaction, ...] = ()
    appointments: Tuple[Appointment, ...] = ()
    clients: Tuple[Client, ...] = ()
    staff: Tuple[Staff, ...] = ()
    products: Tuple[Product, ...] = ()
    sale_lines: Tuple[SaleLine, ...] = ()
    sales: Tuple[Sale, ...] = ()

    @classmethod
    def from_collections(cls, collections: Mapping[str, Optional[Iterable[Mapping[str, Any]]]]) -> "RecordSnapshot":
        """
        Builds a snapshot from raw rows keyed by collection name.
        Absent or None collections are empty; malformed rows are skipped.
        """
        parsed = {}
        for name, record_type in RECORD_TYPES.items():
            rows = collections.get(name) or []
            records = []
            skipped = 0
            for row in rows:
                record = record_type.from_row(row)
                if record is None:
                    skipped += 1
                    continue
                records.append(record)
            if skipped:
                logger.info(f"Skipped {skipped} malformed row(s) in '{name}'")
            parsed[name] = tuple(records)
        return cls(**parsed)

    def counts(self) -> Dict[str, int]:
        return {name: len(getattr(self, name)) for name in RECORD_TYPES}


async def _fetch_collection(store: RecordStore, query: CollectionQuery) -> List[Dict[str, Any]]:
    return await store.fetch(
        query.table,
        filters=query.filters,
        order_by=query.order_by,
        descending=query.descending,
    )


async def load_snapshot(store: RecordStore, queries: Tuple[CollectionQuery, ...] = SNAPSHOT_QUERIES) -> RecordSnapshot:
    """
    Issues every collection read concurrently and waits for all of them.
    A failed read is logged and its collection treated as empty.
    """
    results = await asyncio.gather(
        *(_fetch_collection(store, q) for q in queries),
        return_exceptions=True,
    )

    collections: Dict[str, List[Dict[str, Any]]] = {}
    for query, result in zip(queries, results):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, Exception):
            logger.error(f"Error loading collection '{query.collection}' from table '{query.table}': {result}")
            collections[query.collection] = []
            continue
        collections[query.collection] = result or []

    snapshot = RecordSnapshot.from_collections(collections)
    logger.info(f"Loaded snapshot from {store.store_type} store: {snapshot.counts()}")
    return snapshot
