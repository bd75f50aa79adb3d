"""
Report orchestration: period -> snapshot -> KPIs -> retention/rankings -> insights.

The store reads are the only awaited work; everything after the snapshot is
pure and synchronous. The narrative call is separate and only made once a
report exists.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from bizmetrics.insight_engine import NOT_ENOUGH_DATA_MESSAGE, Insight, generate_insights
from bizmetrics.metrics.aggregator import aggregate
from bizmetrics.metrics.models import MetricBundle, Rankings, RetentionMetrics
from bizmetrics.metrics.ranking import compute_rankings
from bizmetrics.metrics.retention import retention_metrics
from bizmetrics.narrative_service import (
    DEFAULT_TIMEOUT_SECONDS, LLMConfig, build_narrative_request, request_narrative,
)
from bizmetrics.periods import PeriodPair, ensure_aware, resolve_period
from bizmetrics.record_store.base import RecordStore
from bizmetrics.snapshot import RecordSnapshot, load_snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BusinessReport:
    periods: PeriodPair
    metrics: MetricBundle
    retention: RetentionMetrics
    rankings: Rankings
    insights: Tuple[Insight, ...]
    generated_at: datetime


def build_report(snapshot: RecordSnapshot, periods: PeriodPair, now: datetime) -> BusinessReport:
    """Pure computation over one snapshot."""
    now = ensure_aware(now)
    bundle = aggregate(snapshot, periods, now)
    retention = retention_metrics(snapshot.appointments, snapshot.clients, periods, now)
    rankings = compute_rankings(snapshot, periods)
    insights = tuple(generate_insights(bundle, retention, rankings))
    return BusinessReport(
        periods=periods,
        metrics=bundle,
        retention=retention,
        rankings=rankings,
        insights=insights,
        generated_at=now,
    )


async def generate_report(
    store: RecordStore,
    selector,
    now: Optional[datetime] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> BusinessReport:
    """
    Resolves the period, loads a fresh snapshot and builds the report.

    Raises:
        InvalidRange: before any store read when the custom bounds are invalid
    """
    now = ensure_aware(now or datetime.now(timezone.utc))
    periods = resolve_period(selector, now, date_from, date_to)
    snapshot = await load_snapshot(store)
    report = build_report(snapshot, periods, now)
    logger.info(
        f"Built {periods.selector.value} report: {len(report.metrics.values)} KPIs, "
        f"{len(report.insights)} insights"
    )
    return report


async def narrate_report(
    report: BusinessReport,
    config: Optional[LLMConfig] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    """Narrative text for an already-built report; the report is left untouched."""
    metrics = build_narrative_request(report.metrics, report.retention, report.rankings)
    return await request_narrative(metrics, config=config, timeout=timeout)


def report_to_dict(report: BusinessReport) -> Dict[str, Any]:
    """Serialises a report for transport (datetimes left for the encoder)."""
    periods = report.periods
    return {
        "period": periods.selector.value,
        "current": {"from": periods.current.start, "to": periods.current.end},
        "previous": {"from": periods.previous.start, "to": periods.previous.end},
        "generated_at": report.generated_at,
        "metrics": {name: asdict(m) for name, m in report.metrics.values.items()},
        "low_stock_products": [asdict(p) for p in report.metrics.low_stock_products],
        "revenue_by_method": [{"method": m, "value": v} for m, v in report.metrics.revenue_by_method],
        "revenue_evolution": [asdict(m) for m in report.metrics.revenue_evolution],
        "retention": asdict(report.retention),
        "rankings": asdict(report.rankings),
        "insights": [asdict(i) for i in report.insights],
        "insights_fallback": None if report.insights else NOT_ENOUGH_DATA_MESSAGE,
    }
