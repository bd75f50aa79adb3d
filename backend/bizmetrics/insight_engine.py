"""
Insight Engine: deterministic, rule-based business insights.

Rules are declared in a fixed, ordered table. Each rule lists threshold
conditions over a flat metrics context and a text template; every rule whose
conditions all hold fires exactly once, in declaration order. Nothing is
cached between evaluations.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from bizmetrics.metrics.models import MetricBundle, Rankings, RetentionMetrics
from bizmetrics.metrics.retention import INACTIVE_AFTER_DAYS

logger = logging.getLogger(__name__)

NO_SHOW_RATE_THRESHOLD = 10.0
CANCEL_RATE_THRESHOLD = 15.0
RETENTION_RATE_THRESHOLD = 40.0
PROFIT_MARGIN_THRESHOLD = 30.0
AVG_TICKET_GROWTH_THRESHOLD = 5.0

NOT_ENOUGH_DATA_MESSAGE = "Not enough data to generate automatic insights."


@dataclass(frozen=True)
class Condition:
    """`context[metric] <operator> threshold`."""
    metric: str
    operator: str
    threshold: Any


@dataclass(frozen=True)
class InsightRule:
    rule_id: str
    conditions: Tuple[Condition, ...]
    template: str
    severity: str = "info"  # "info", "warning", "critical"


@dataclass(frozen=True)
class Insight:
    rule_id: str
    text: str
    severity: str = "info"


INSIGHT_RULES: Tuple[InsightRule, ...] = (
    InsightRule(
        rule_id="revenue_growth",
        conditions=(Condition("income_growth", ">", 0),),
        template="Revenue grew {income_growth:.1f}% compared to the previous period.",
    ),
    InsightRule(
        rule_id="revenue_decline",
        conditions=(Condition("income_growth", "<", 0),),
        template="Revenue fell {income_growth_abs:.1f}% compared to the previous period.",
        severity="warning",
    ),
    InsightRule(
        rule_id="inactive_clients",
        conditions=(Condition("inactive_clients", ">", 0),),
        template=f"You have {{inactive_clients}} client(s) inactive for more than {INACTIVE_AFTER_DAYS} days.",
        severity="warning",
    ),
    InsightRule(
        rule_id="top_service",
        conditions=(Condition("top_service_count", ">", 0),),
        template='Your most popular service is "{top_service_name}" with {top_service_count} appointments.',
    ),
    InsightRule(
        rule_id="high_no_show_rate",
        conditions=(Condition("no_show_rate", ">", NO_SHOW_RATE_THRESHOLD),),
        template=(
            "Your no-show rate ({no_show_rate:.1f}%) is above the recommended "
            f"ceiling ({NO_SHOW_RATE_THRESHOLD:.0f}%)."
        ),
        severity="warning",
    ),
    InsightRule(
        rule_id="high_cancel_rate",
        conditions=(Condition("cancel_rate", ">", CANCEL_RATE_THRESHOLD),),
        template=(
            "Your cancellation rate ({cancel_rate:.1f}%) is high. "
            "Consider confirming appointments with clients the day before."
        ),
        severity="warning",
    ),
    InsightRule(
        rule_id="low_retention",
        conditions=(
            Condition("retention_rate", ">", 0),
            Condition("retention_rate", "<", RETENTION_RATE_THRESHOLD),
        ),
        template="Your retention rate is {retention_rate:.0f}%. Return-visit promotions can help.",
        severity="warning",
    ),
    InsightRule(
        rule_id="low_stock",
        conditions=(Condition("low_stock_count", ">", 0),),
        template="{low_stock_count} product(s) at critical stock level need restocking.",
        severity="critical",
    ),
    InsightRule(
        rule_id="low_profit_margin",
        conditions=(
            Condition("income", ">", 0),
            Condition("profit_margin", "<", PROFIT_MARGIN_THRESHOLD),
        ),
        template=(
            "Profit margin of {profit_margin:.1f}% is below the target "
            f"({PROFIT_MARGIN_THRESHOLD:.0f}%+). Review your costs."
        ),
        severity="warning",
    ),
    InsightRule(
        rule_id="avg_ticket_growth",
        conditions=(
            Condition("avg_ticket", ">", 0),
            Condition("avg_ticket_growth", ">", AVG_TICKET_GROWTH_THRESHOLD),
        ),
        template="Average ticket rose {avg_ticket_growth:.1f}%! Great upselling work.",
    ),
)


def build_insight_context(bundle: MetricBundle, retention: RetentionMetrics, rankings: Rankings) -> Dict[str, Any]:
    """Flattens KPIs, retention and ranking highlights into one lookup for rules."""
    context: Dict[str, Any] = dict(bundle.as_flat_dict())
    context["income_growth_abs"] = abs(context.get("income_growth", 0.0))

    context["retention_rate"] = retention.retention_rate
    context["avg_visit_frequency_days"] = retention.avg_visit_frequency_days
    context["inactive_clients"] = retention.inactive_clients

    if rankings.top_services:
        top = rankings.top_services[0].entity
        context["top_service_name"] = top.name
        context["top_service_count"] = top.count
    else:
        context["top_service_name"] = None
        context["top_service_count"] = 0

    for key in ("low_stock_count", "income_count"):
        if key in context:
            context[key] = int(context[key])
    return context


class InsightEngine:
    """Evaluates the ordered rule table against a metrics context."""

    def __init__(self, rules: Tuple[InsightRule, ...] = INSIGHT_RULES):
        self.rules = rules
        rule_ids = [r.rule_id for r in rules]
        if len(rule_ids) != len(set(rule_ids)):
            raise ValueError(f"Duplicate insight rule ids: {rule_ids}")

    def run_all_insights(self, context: Dict[str, Any]) -> List[Insight]:
        """
        Runs every rule once, in declaration order.

        Args:
            context: flat metric name -> value mapping

        Returns:
            Insights of the rules that fired; empty when none did
        """
        generated = []
        for rule in self.rules:
            insight = self.run_insight(rule, context)
            if insight:
                generated.append(insight)
        logger.info(f"Generated {len(generated)} insights from {len(self.rules)} rules")
        return generated

    def run_insight(self, rule: InsightRule, context: Dict[str, Any]) -> Optional[Insight]:
        if not all(self._evaluate_condition(c, context) for c in rule.conditions):
            logger.debug(f"Insight '{rule.rule_id}' not triggered")
            return None
        return Insight(rule_id=rule.rule_id, text=rule.template.format(**context), severity=rule.severity)

    def _evaluate_condition(self, condition: Condition, context: Dict[str, Any]) -> bool:
        value = context.get(condition.metric)
        if value is None:
            return False
        return self._compare_values(value, condition.operator, condition.threshold)

    def _compare_values(self, value: Any, operator: str, threshold: Any) -> bool:
        """Compares values using operator."""
        if operator == '>':
            return value > threshold
        elif operator == '<':
            return value < threshold
        elif operator == '>=':
            return value >= threshold
        elif operator == '<=':
            return value <= threshold
        elif operator == '==':
            return value == threshold
        elif operator == '!=':
            return value != threshold
        raise ValueError(f"Unknown operator: {operator}")


def generate_insights(bundle: MetricBundle, retention: RetentionMetrics, rankings: Rankings) -> List[Insight]:
    return InsightEngine().run_all_insights(build_insight_context(bundle, retention, rankings))
