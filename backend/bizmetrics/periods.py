"""
Period resolver: maps a reporting window selector to a concrete interval and
the contiguous previous interval of identical duration.

Window semantics: the current window is closed ``[from, to]``; the previous
window is half-open ``[from, to)`` so the shared boundary instant is counted
once, in the current window.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional


class InvalidRange(ValueError):
    """Raised when a period does not satisfy ``from < to``."""
    pass


class PeriodSelector(str, Enum):
    TODAY = "today"
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    CUSTOM = "custom"


_TRAILING_DAYS = {
    PeriodSelector.LAST_7_DAYS: 7,
    PeriodSelector.LAST_30_DAYS: 30,
    PeriodSelector.LAST_90_DAYS: 90,
}


def ensure_aware(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class Period:
    start: datetime
    end: datetime
    closed: bool = True

    def __post_init__(self):
        if not self.start < self.end:
            raise InvalidRange(f"Period start {self.start.isoformat()} must be before end {self.end.isoformat()}")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, ts: Optional[datetime]) -> bool:
        if ts is None:
            return False
        if self.closed:
            return self.start <= ts <= self.end
        return self.start <= ts < self.end

    def previous(self) -> "Period":
        """The immediately preceding, half-open period of equal duration."""
        return Period(start=self.start - self.duration, end=self.start, closed=False)


@dataclass(frozen=True)
class PeriodPair:
    current: Period
    previous: Period
    selector: PeriodSelector = PeriodSelector.LAST_30_DAYS


def resolve_period(
    selector,
    now: datetime,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> PeriodPair:
    """
    Resolves a selector into current/previous periods.

    Args:
        selector: PeriodSelector or its string value ("today", "7d", ...)
        now: reference instant; naive values are taken as UTC
        date_from, date_to: bounds for the custom selector

    Raises:
        InvalidRange: custom bounds missing or not ordered
        ValueError: unknown selector
    """
    selector = PeriodSelector(selector)
    now = ensure_aware(now)

    if selector is PeriodSelector.TODAY:
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        # At exactly midnight the window holds just the midnight instant
        end = max(now, start + timedelta(microseconds=1))
    elif selector is PeriodSelector.CUSTOM:
        if date_from is None or date_to is None:
            raise InvalidRange("Custom period requires both date_from and date_to")
        start, end = ensure_aware(date_from), ensure_aware(date_to)
    else:
        start = now - timedelta(days=_TRAILING_DAYS[selector])
        end = now

    current = Period(start=start, end=end)
    return PeriodPair(current=current, previous=current.previous(), selector=selector)
