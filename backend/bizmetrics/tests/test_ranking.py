import asyncio

import pytest

from bizmetrics.metrics.ranking import (
    compute_rankings, product_stats, service_stats, staff_performance, top_clients, top_n,
)
from bizmetrics.records import Appointment, Client, Sale, SaleLine, Staff
from bizmetrics.snapshot import load_snapshot
from bizmetrics.tests.conftest import days_ago


def test_ties_keep_first_seen_order():
    items = [("a", 5), ("b", 7), ("c", 5), ("d", 7)]
    ranked = top_n(items, lambda item: item[1])
    assert [entry.entity[0] for entry in ranked] == ["b", "d", "a", "c"]
    assert [entry.score for entry in ranked] == [7, 7, 5, 5]


def test_ranking_is_idempotent():
    items = [("a", 1), ("b", 3), ("c", 3), ("d", 2)]
    assert top_n(items, lambda item: item[1]) == top_n(items, lambda item: item[1])


@pytest.mark.parametrize("n,expected", [(None, 4), (2, 2), (10, 4), (0, 0)])
def test_top_n_limits(n, expected):
    items = [1, 4, 2, 3]
    assert len(top_n(items, float, n)) == expected


def test_top_clients_by_total_spent():
    clients = [Client(id=f"c{i}", name=f"Client {i}", total_spent=spent) for i, spent in enumerate([10, 90, 50, 70, 30, 80])]
    ranked = top_clients(clients)
    assert [entry.entity.id for entry in ranked] == ["c1", "c5", "c3", "c2", "c4"]


def test_service_stats_count_attendance_in_period(periods_30d):
    appointments = [
        Appointment(id="1", start_time=days_ago(1), status="completed", service_name="Haircut"),
        Appointment(id="2", start_time=days_ago(2), status="no_show", service_name="Haircut"),
        Appointment(id="3", start_time=days_ago(3), status="cancelled", service_name="Haircut"),
        Appointment(id="4", start_time=days_ago(4), status="completed", service_name="Beard"),
        Appointment(id="5", start_time=days_ago(45), status="completed", service_name="Beard"),
        Appointment(id="6", start_time=days_ago(5), status="completed", service_name=""),
    ]
    lines = [
        SaleLine(id="l1", sale_id="k1", service_id="svc", name="Haircut", quantity=2, unit_price=40),
        SaleLine(id="l2", sale_id="k1", product_id="p1", name="Haircut", quantity=1, unit_price=999),
    ]
    stats = service_stats(appointments, lines, periods_30d.current)
    assert [(s.name, s.count, s.revenue) for s in stats] == [("Haircut", 2, 80.0), ("Beard", 1, 0.0)]


def test_staff_performance_uses_paid_sales_in_period(periods_30d):
    staff = [Staff(id="s1", name="Ana"), Staff(id="s2", name="Bia"), Staff(id="s3", name="Caio")]
    sales = [
        Sale(id="k1", total=100, staff_id="s1", status="paid", created_at=days_ago(1)),
        Sale(id="k2", total=300, staff_id="s2", status="paid", created_at=days_ago(2)),
        Sale(id="k3", total=500, staff_id="s1", status="open", created_at=days_ago(3)),
        Sale(id="k4", total=700, staff_id="s3", status="paid", created_at=days_ago(40)),
        Sale(id="k5", total=50, staff_id="unknown", status="paid", created_at=days_ago(1)),
    ]
    ranked = staff_performance(staff, sales, periods_30d.current)
    assert [(e.entity.staff_id, e.entity.revenue, e.entity.count) for e in ranked] == [("s2", 300, 1), ("s1", 100, 1)]


def test_product_stats_group_by_name():
    lines = [
        SaleLine(id="1", sale_id="k1", product_id="p1", name="Pomade", quantity=2, unit_price=30),
        SaleLine(id="2", sale_id="k2", product_id="p9", name="", quantity=1, unit_price=10),
        SaleLine(id="3", sale_id="k3", product_id="p1", name="Pomade", quantity=1, unit_price=30),
        SaleLine(id="4", sale_id="k3", service_id="svc", name="Haircut", quantity=1, unit_price=50),
    ]
    stats = product_stats(lines)
    assert [(s.name, s.quantity, s.revenue) for s in stats] == [("Pomade", 3, 90), ("p9", 1, 10)]


def test_compute_rankings_on_sample_data(sample_store, periods_30d):
    snapshot = asyncio.run(load_snapshot(sample_store))
    rankings = compute_rankings(snapshot, periods_30d)

    assert [e.entity.id for e in rankings.top_clients] == ["c2", "c1", "c5", "c4", "c3"]

    services = [(e.entity.name, e.entity.count, e.entity.revenue) for e in rankings.top_services]
    assert services == [("Haircut", 3, 50.0), ("Beard", 2, 35.0)]

    staff = [(e.entity.staff_id, e.score, e.entity.count) for e in rankings.staff_performance]
    assert staff == [("s1", 700, 2), ("s2", 500, 1)]

    products = [(e.entity.name, e.entity.quantity, e.entity.revenue) for e in rankings.top_products]
    assert products == [("Shampoo", 4, 160), ("Pomade", 2, 60)]
