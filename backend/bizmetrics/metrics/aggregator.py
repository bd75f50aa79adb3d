"""
Metrics Aggregator: derives period-over-period KPIs from a record snapshot.

Every ratio is policy-defined as 0 when its denominator is 0, so results are
always finite numbers. Functions are pure; the period pair is passed in
explicitly on every call.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Dict, Iterable, List, Sequence, Tuple

from bizmetrics.metrics.models import MetricBundle, MetricValue, MonthlyTotals
from bizmetrics.periods import Period, PeriodPair
from bizmetrics.records import Appointment, Client, Product, Transaction
from bizmetrics.snapshot import RecordSnapshot

logger = logging.getLogger(__name__)

APPOINTMENT_STATUSES = ("confirmed", "completed", "cancelled", "no_show")
REVENUE_EVOLUTION_MONTHS = 6
UNKNOWN_PAYMENT_METHOD = "other"


def growth(current: float, previous: float) -> float:
    """(current - previous) / previous * 100; 0 when previous is 0."""
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100


def percentage(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return part / whole * 100


def safe_divide(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


def in_period(items: Iterable, period: Period, attr: str) -> List:
    return [item for item in items if period.contains(getattr(item, attr))]


# ── Financial ───────────────────────────────────────────────────────────

def _financial_totals(transactions: Sequence[Transaction]) -> Dict[str, float]:
    income = sum(t.amount for t in transactions if t.is_income)
    expense = sum(t.amount for t in transactions if t.is_expense)
    income_count = sum(1 for t in transactions if t.is_income)
    profit = income - expense
    return {
        "income": income,
        "expense": expense,
        "profit": profit,
        "profit_margin": percentage(profit, income) if income > 0 else 0.0,
        "avg_ticket": safe_divide(income, income_count),
        "income_count": float(income_count),
    }


def financial_metrics(transactions: Sequence[Transaction], periods: PeriodPair) -> Dict[str, MetricValue]:
    current = _financial_totals(in_period(transactions, periods.current, "date"))
    previous = _financial_totals(in_period(transactions, periods.previous, "date"))
    units = {"profit_margin": "%", "income_count": ""}
    return {
        name: MetricValue(
            name=name,
            value=current[name],
            previous=previous[name],
            change_percent=growth(current[name], previous[name]),
            unit=units.get(name, "currency"),
        )
        for name in current
    }


def revenue_by_method(transactions: Sequence[Transaction], period: Period) -> Tuple[Tuple[str, float], ...]:
    """Income totals per payment method, first-seen order."""
    totals: Dict[str, float] = {}
    for t in in_period(transactions, period, "date"):
        if not t.is_income:
            continue
        method = t.method or UNKNOWN_PAYMENT_METHOD
        totals[method] = totals.get(method, 0.0) + t.amount
    return tuple(totals.items())


def _shift_month(year: int, month: int, offset: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def revenue_evolution(
    transactions: Sequence[Transaction],
    now: datetime,
    months: int = REVENUE_EVOLUTION_MONTHS,
) -> Tuple[MonthlyTotals, ...]:
    """Income/expense per calendar month for the trailing `months` months, oldest first."""
    keys = []
    for offset in range(months - 1, -1, -1):
        year, month = _shift_month(now.year, now.month, -offset)
        keys.append(f"{year:04d}-{month:02d}")

    grouped = {key: {"income": 0.0, "expense": 0.0} for key in keys}
    for t in transactions:
        local = t.date.astimezone(now.tzinfo) if now.tzinfo else t.date
        key = f"{local.year:04d}-{local.month:02d}"
        if key not in grouped:
            continue
        if t.is_income:
            grouped[key]["income"] += t.amount
        else:
            grouped[key]["expense"] += t.amount
    return tuple(MonthlyTotals(month=k, income=v["income"], expense=v["expense"]) for k, v in grouped.items())


# ── Clients ─────────────────────────────────────────────────────────────

def client_metrics(clients: Sequence[Client], periods: PeriodPair) -> Dict[str, MetricValue]:
    current = len(in_period(clients, periods.current, "created_at"))
    previous = len(in_period(clients, periods.previous, "created_at"))
    return {
        "new_clients": MetricValue(
            name="new_clients",
            value=float(current),
            previous=float(previous),
            change_percent=growth(current, previous),
        ),
        "total_clients": MetricValue(name="total_clients", value=float(len(clients))),
    }


# ── Operations ──────────────────────────────────────────────────────────

def _appointment_counts(appointments: Sequence[Appointment], statuses: Sequence[str]) -> Dict[str, float]:
    by_status = Counter(a.status for a in appointments)
    total = len(appointments)
    counts = {"appointments_total": float(total)}
    for status in statuses:
        counts[f"appointments_{status}"] = float(by_status.get(status, 0))
    counts["show_rate"] = percentage(by_status.get("completed", 0), total)
    counts["cancel_rate"] = percentage(by_status.get("cancelled", 0), total)
    counts["no_show_rate"] = percentage(by_status.get("no_show", 0), total)
    return counts


def operational_metrics(appointments: Sequence[Appointment], periods: PeriodPair) -> Dict[str, MetricValue]:
    current_window = in_period(appointments, periods.current, "start_time")
    previous_window = in_period(appointments, periods.previous, "start_time")
    # Known statuses always reported; any other status seen gets its own count
    extra = sorted({
        a.status for a in current_window + previous_window
        if a.status and a.status not in APPOINTMENT_STATUSES
    })
    statuses = APPOINTMENT_STATUSES + tuple(extra)
    current = _appointment_counts(current_window, statuses)
    previous = _appointment_counts(previous_window, statuses)
    metrics = {}
    for name, value in current.items():
        is_rate = name.endswith("_rate")
        metrics[name] = MetricValue(
            name=name,
            value=value,
            previous=previous[name],
            change_percent=None if is_rate else growth(value, previous[name]),
            unit="%" if is_rate else "",
        )
    return metrics


# ── Inventory ───────────────────────────────────────────────────────────

def low_stock_products(products: Sequence[Product]) -> Tuple[Product, ...]:
    """Products at or below their minimum; a zero minimum never counts as low."""
    return tuple(p for p in products if p.minimum_stock > 0 and p.stock_quantity <= p.minimum_stock)


def inventory_metrics(products: Sequence[Product]) -> Dict[str, MetricValue]:
    low = low_stock_products(products)
    return {
        "low_stock_count": MetricValue(name="low_stock_count", value=float(len(low))),
        "product_count": MetricValue(name="product_count", value=float(len(products))),
    }


def aggregate(snapshot: RecordSnapshot, periods: PeriodPair, now: datetime) -> MetricBundle:
    """Computes the full KPI bundle for one snapshot and period pair."""
    values: Dict[str, MetricValue] = {}
    values.update(financial_metrics(snapshot.transactions, periods))
    values.update(client_metrics(snapshot.clients, periods))
    values.update(operational_metrics(snapshot.appointments, periods))
    values.update(inventory_metrics(snapshot.products))
    values["staff_count"] = MetricValue(name="staff_count", value=float(len(snapshot.staff)))

    bundle = MetricBundle(
        values=values,
        low_stock_products=low_stock_products(snapshot.products),
        revenue_by_method=revenue_by_method(snapshot.transactions, periods.current),
        revenue_evolution=revenue_evolution(snapshot.transactions, now),
    )
    logger.debug(f"Aggregated {len(values)} KPIs for {periods.selector.value}")
    return bundle
