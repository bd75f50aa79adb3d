import asyncio
from datetime import datetime, timezone

import pytest

from bizmetrics.record_store.memory_store import InMemoryRecordStore
from bizmetrics.snapshot import SNAPSHOT_QUERIES, RecordSnapshot, load_snapshot


class FailingStore(InMemoryRecordStore):
    """Fails reads for selected tables."""

    def __init__(self, tables, failing):
        super().__init__(tables=tables)
        self.failing = set(failing)
        self.calls = []

    async def fetch(self, table, **kwargs):
        self.calls.append((table, kwargs))
        if table in self.failing:
            raise RuntimeError(f"{table} unavailable")
        return await super().fetch(table, **kwargs)


def test_snapshot_queries_map_sales_tables():
    tables = {q.collection: q.table for q in SNAPSHOT_QUERIES}
    assert tables["sale_lines"] == "comanda_items"
    assert tables["sales"] == "comandas"


def test_load_snapshot_applies_store_filters(sample_store):
    snapshot = asyncio.run(load_snapshot(sample_store))
    assert [s.id for s in snapshot.staff] == ["s1", "s2"]
    assert [s.id for s in snapshot.sales] == ["k1", "k2", "k3", "k5"]
    assert [c.name for c in snapshot.clients] == ["Alice", "Bruno", "Carla", "Diego", "Elisa"]
    assert snapshot.appointments[0].id == "a6"
    # t6 has no date
    assert snapshot.counts()["transactions"] == 5
    assert snapshot.counts()["sale_lines"] == 5


def test_failed_collection_is_empty_and_logged(sample_tables, caplog):
    store = FailingStore(sample_tables, failing={"comandas"})
    with caplog.at_level("ERROR"):
        snapshot = asyncio.run(load_snapshot(store))
    assert snapshot.sales == ()
    assert len(snapshot.transactions) == 5
    assert len(store.calls) == len(SNAPSHOT_QUERIES)
    assert "comandas unavailable" in caplog.text


def test_cancellation_propagates(sample_tables):
    class CancelledStore(InMemoryRecordStore):
        async def fetch(self, table, **kwargs):
            raise asyncio.CancelledError()

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(load_snapshot(CancelledStore(tables=sample_tables)))


def test_empty_snapshot_counts():
    assert RecordSnapshot().counts() == {
        "transactions": 0, "appointments": 0, "clients": 0, "staff": 0,
        "products": 0, "sale_lines": 0, "sales": 0,
    }


def test_mixed_timestamp_types_do_not_empty_a_collection():
    store = InMemoryRecordStore(tables={"transactions": [
        {"id": "t1", "date": "2026-03-10T12:00:00Z", "amount": 10, "type": "income"},
        {"id": "t2", "date": datetime(2026, 3, 11, tzinfo=timezone.utc), "amount": 20, "type": "income"},
    ]})
    snapshot = asyncio.run(load_snapshot(store))
    assert [t.id for t in snapshot.transactions] == ["t1", "t2"]
