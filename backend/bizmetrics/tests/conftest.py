from datetime import datetime, timedelta, timezone

import pytest

from bizmetrics.periods import resolve_period
from bizmetrics.record_store.memory_store import InMemoryRecordStore

NOW = datetime(2026, 3, 31, 15, 0, tzinfo=timezone.utc)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def iso(year, month, day, hour=12):
    return datetime(year, month, day, hour, tzinfo=timezone.utc).isoformat()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def periods_30d():
    # current [2026-03-01 15:00, 2026-03-31 15:00], previous [2026-01-30 15:00, 2026-03-01 15:00)
    return resolve_period("30d", NOW)


@pytest.fixture
def sample_tables():
    return {
        "transactions": [
            {"id": "t1", "date": iso(2026, 3, 10), "amount": 1000, "type": "income", "method": "pix"},
            {"id": "t2", "date": iso(2026, 3, 20), "amount": "500.00", "type": "income", "method": "card"},
            {"id": "t3", "date": iso(2026, 3, 15), "amount": 900, "type": "expense", "method": "transfer"},
            {"id": "t4", "date": iso(2026, 2, 10), "amount": 1200, "type": "income", "method": "cash"},
            {"id": "t5", "date": iso(2026, 2, 12), "amount": 200, "type": "expense", "method": "cash"},
            {"id": "t6", "date": None, "amount": 999, "type": "income", "method": "cash"},
        ],
        "appointments": [
            {"id": "a1", "start_time": iso(2026, 3, 5), "status": "completed", "client_id": "c1", "staff_id": "s1", "service_name": "Haircut"},
            {"id": "a2", "start_time": iso(2026, 3, 6), "status": "completed", "client_id": "c2", "staff_id": "s1", "service_name": "Haircut"},
            {"id": "a3", "start_time": iso(2026, 3, 7), "status": "no-show", "client_id": "c3", "staff_id": "s2", "service_name": "Beard"},
            {"id": "a4", "start_time": iso(2026, 3, 8), "status": "cancelled", "client_id": "c1", "staff_id": "s2", "service_name": "Beard"},
            {"id": "a5", "start_time": iso(2026, 3, 9), "status": "completed", "client_id": "c4", "staff_id": "s2", "service_name": "Beard"},
            {"id": "a6", "start_time": iso(2026, 3, 11), "status": "completed", "client_id": "c2", "staff_id": "s1", "service_name": "Haircut"},
            {"id": "p1", "start_time": iso(2026, 2, 5), "status": "completed", "client_id": "c1", "staff_id": "s1", "service_name": "Haircut"},
            {"id": "p2", "start_time": iso(2026, 2, 6), "status": "completed", "client_id": "c2", "staff_id": "s1", "service_name": "Haircut"},
            {"id": "p3", "start_time": iso(2026, 2, 7), "status": "completed", "client_id": "c5", "staff_id": "s2", "service_name": "Beard"},
        ],
        "clients": [
            {"id": "c1", "name": "Alice", "created_at": iso(2025, 1, 1), "last_visit": iso(2026, 3, 8), "total_spent": 900},
            {"id": "c2", "name": "Bruno", "created_at": iso(2025, 6, 1), "last_visit": iso(2026, 3, 11), "total_spent": 1500},
            {"id": "c3", "name": "Carla", "created_at": iso(2025, 8, 1), "last_visit": None, "total_spent": 0},
            {"id": "c4", "name": "Diego", "created_at": iso(2026, 3, 9), "last_visit": iso(2026, 3, 9), "total_spent": 200},
            {"id": "c5", "name": "Elisa", "created_at": iso(2026, 2, 1), "last_visit": iso(2025, 12, 1), "total_spent": 300},
        ],
        "staff": [
            {"id": "s1", "name": "Ana", "status": "active"},
            {"id": "s2", "name": "Bruno", "status": "active"},
            {"id": "s3", "name": "Caio", "status": "inactive"},
        ],
        "products": [
            {"id": "p1", "name": "Pomade", "stock_quantity": 2, "minimum_stock": 5, "price": 30},
            {"id": "p2", "name": "Shampoo", "stock_quantity": 10, "minimum_stock": 0, "price": 40},
            {"id": "p3", "name": "Wax", "stock_quantity": 3, "minimum_stock": 3, "price": 25},
        ],
        "comanda_items": [
            {"id": "i1", "comanda_id": "k1", "service_id": "svc1", "product_id": None, "product_name": "Haircut", "quantity": 1, "unit_price": 50},
            {"id": "i2", "comanda_id": "k1", "service_id": None, "product_id": "p1", "product_name": "Pomade", "quantity": 2, "unit_price": 30},
            {"id": "i3", "comanda_id": "k2", "service_id": None, "product_id": "p2", "product_name": "Shampoo", "quantity": 1, "unit_price": 40},
            {"id": "i4", "comanda_id": "k3", "service_id": "svc2", "product_id": None, "product_name": "Beard", "quantity": None, "unit_price": 35},
            {"id": "i5", "comanda_id": "k3", "service_id": None, "product_id": "p2", "product_name": "Shampoo", "quantity": 3, "unit_price": 40},
        ],
        "comandas": [
            {"id": "k1", "total": 300, "staff_id": "s1", "status": "paid", "created_at": iso(2026, 3, 10)},
            {"id": "k2", "total": 500, "staff_id": "s2", "status": "paid", "created_at": iso(2026, 3, 12)},
            {"id": "k3", "total": 400, "staff_id": "s1", "status": "paid", "created_at": iso(2026, 3, 20)},
            {"id": "k4", "total": 999, "staff_id": "s2", "status": "open", "created_at": iso(2026, 3, 21)},
            {"id": "k5", "total": 100, "staff_id": "s1", "status": "paid", "created_at": iso(2026, 2, 10)},
        ],
    }


@pytest.fixture
def sample_store(sample_tables):
    return InMemoryRecordStore(tables=sample_tables)
