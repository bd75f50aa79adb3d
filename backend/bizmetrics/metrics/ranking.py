"""
Ranking engine: bounded, deterministic top-N orderings.

Sorting is stable and descending, so entities with equal scores keep their
input (first-seen) order. Rankings are recomputed from the snapshot on every
call.
"""

from typing import Callable, Dict, Iterable, Optional, Sequence, Tuple, TypeVar

from bizmetrics.metrics.models import ProductStat, RankedEntry, Rankings, ServiceStat, StaffStat
from bizmetrics.periods import Period, PeriodPair
from bizmetrics.records import Appointment, Client, Sale, SaleLine, Staff
from bizmetrics.snapshot import RecordSnapshot

T = TypeVar("T")

TOP_CLIENTS = 5
TOP_SERVICES = 6
TOP_PRODUCTS = 5
PAID_STATUS = "paid"


def top_n(items: Iterable[T], score: Callable[[T], float], n: Optional[int] = None) -> Tuple[RankedEntry, ...]:
    """Stable descending sort by score, truncated to n (None keeps all)."""
    scored = [RankedEntry(entity=item, score=score(item)) for item in items]
    # sorted(reverse=True) keeps equal elements in input order
    ranked = sorted(scored, key=lambda entry: entry.score, reverse=True)
    if n is not None:
        ranked = ranked[:max(n, 0)]
    return tuple(ranked)


def top_clients(clients: Sequence[Client], n: int = TOP_CLIENTS) -> Tuple[RankedEntry, ...]:
    return top_n(clients, lambda c: c.total_spent or 0.0, n)


def service_stats(appointments: Sequence[Appointment], sale_lines: Sequence[SaleLine], period: Period) -> Tuple[ServiceStat, ...]:
    """Attendance per service in the period, with revenue from service sale lines of the same name."""
    counts: Dict[str, int] = {}
    for a in appointments:
        if a.service_name and not a.is_cancelled and period.contains(a.start_time):
            counts[a.service_name] = counts.get(a.service_name, 0) + 1

    revenue: Dict[str, float] = {name: 0.0 for name in counts}
    for line in sale_lines:
        if line.service_id and line.name in revenue:
            revenue[line.name] += line.line_total

    return tuple(ServiceStat(name=name, count=count, revenue=revenue[name]) for name, count in counts.items())


def top_services(
    appointments: Sequence[Appointment],
    sale_lines: Sequence[SaleLine],
    period: Period,
    n: int = TOP_SERVICES,
) -> Tuple[RankedEntry, ...]:
    return top_n(service_stats(appointments, sale_lines, period), lambda s: s.count, n)


def staff_stats(staff: Sequence[Staff], sales: Sequence[Sale], period: Period) -> Tuple[StaffStat, ...]:
    """Paid-sale revenue per staff member in the period; staff without sales are left out."""
    totals: Dict[str, Dict[str, float]] = {s.id: {"revenue": 0.0, "count": 0} for s in staff}
    for sale in sales:
        if sale.status != PAID_STATUS or sale.staff_id not in totals:
            continue
        if not period.contains(sale.created_at):
            continue
        totals[sale.staff_id]["revenue"] += sale.total
        totals[sale.staff_id]["count"] += 1

    return tuple(
        StaffStat(staff_id=s.id, name=s.name, revenue=totals[s.id]["revenue"], count=int(totals[s.id]["count"]))
        for s in staff
        if totals[s.id]["count"] > 0
    )


def staff_performance(
    staff: Sequence[Staff],
    sales: Sequence[Sale],
    period: Period,
    n: Optional[int] = None,
) -> Tuple[RankedEntry, ...]:
    return top_n(staff_stats(staff, sales, period), lambda s: s.revenue, n)


def product_stats(sale_lines: Sequence[SaleLine]) -> Tuple[ProductStat, ...]:
    """Units and revenue per product across all product sale lines."""
    totals: Dict[str, Dict[str, float]] = {}
    for line in sale_lines:
        if not line.product_id:
            continue
        key = line.name or line.product_id
        entry = totals.setdefault(key, {"quantity": 0.0, "revenue": 0.0})
        entry["quantity"] += line.quantity
        entry["revenue"] += line.line_total
    return tuple(ProductStat(name=k, quantity=v["quantity"], revenue=v["revenue"]) for k, v in totals.items())


def top_products(sale_lines: Sequence[SaleLine], n: int = TOP_PRODUCTS) -> Tuple[RankedEntry, ...]:
    return top_n(product_stats(sale_lines), lambda p: p.quantity, n)


def compute_rankings(snapshot: RecordSnapshot, periods: PeriodPair) -> Rankings:
    return Rankings(
        top_clients=top_clients(snapshot.clients),
        top_services=top_services(snapshot.appointments, snapshot.sale_lines, periods.current),
        staff_performance=staff_performance(snapshot.staff, snapshot.sales, periods.current),
        top_products=top_products(snapshot.sale_lines),
    )
