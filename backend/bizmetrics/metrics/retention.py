"""
Retention & cohort calculator.

Works over the full appointment history rather than a pre-filtered window:
the previous-period cohort is compared against the current-period visitors.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Sequence, Set

from bizmetrics.metrics.models import RetentionMetrics
from bizmetrics.periods import Period, PeriodPair
from bizmetrics.records import Appointment, Client

logger = logging.getLogger(__name__)

INACTIVE_AFTER_DAYS = 60
SECONDS_PER_DAY = 86400


def days_between(later: datetime, earlier: datetime) -> int:
    """Whole days elapsed, floored."""
    return int((later - earlier).total_seconds() // SECONDS_PER_DAY)


def visitors(appointments: Sequence[Appointment], period: Period) -> Set[str]:
    """Distinct client ids with a non-cancelled appointment inside the period."""
    return {
        a.client_id
        for a in appointments
        if a.client_id and not a.is_cancelled and period.contains(a.start_time)
    }


def retention_rate(appointments: Sequence[Appointment], periods: PeriodPair) -> float:
    previous = visitors(appointments, periods.previous)
    if not previous:
        return 0.0
    current = visitors(appointments, periods.current)
    return len(previous & current) / len(previous) * 100


def average_visit_frequency(appointments: Sequence[Appointment]) -> float:
    """Mean gap in days between consecutive non-cancelled visits of the same client."""
    visits: Dict[str, List[datetime]] = defaultdict(list)
    for a in appointments:
        if a.client_id and not a.is_cancelled:
            visits[a.client_id].append(a.start_time)

    total_gap = 0
    gap_count = 0
    for times in visits.values():
        times.sort()
        for earlier, later in zip(times, times[1:]):
            total_gap += days_between(later, earlier)
            gap_count += 1
    return total_gap / gap_count if gap_count else 0.0


def inactive_clients(clients: Sequence[Client], now: datetime, threshold_days: int = INACTIVE_AFTER_DAYS) -> int:
    """Clients never seen, or last seen more than `threshold_days` ago."""
    return sum(
        1 for c in clients
        if c.last_visit is None or days_between(now, c.last_visit) > threshold_days
    )


def retention_metrics(
    appointments: Sequence[Appointment],
    clients: Sequence[Client],
    periods: PeriodPair,
    now: datetime,
) -> RetentionMetrics:
    previous = visitors(appointments, periods.previous)
    current = visitors(appointments, periods.current)
    returning = previous & current
    rate = len(returning) / len(previous) * 100 if previous else 0.0
    metrics = RetentionMetrics(
        retention_rate=rate,
        avg_visit_frequency_days=average_visit_frequency(appointments),
        inactive_clients=inactive_clients(clients, now),
        previous_visitors=len(previous),
        current_visitors=len(current),
        returning_visitors=len(returning),
    )
    logger.debug(f"Retention {rate:.1f}% ({len(returning)}/{len(previous)} returning)")
    return metrics
