"""
Metric models (dataclasses) shared by the aggregator, ranking engine and
insight engine. Keeps business structures separate from transport concerns.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from bizmetrics.records import Product


@dataclass(frozen=True)
class MetricValue:
    """A KPI value, paired with its previous-period counterpart when compared."""
    name: str
    value: float
    previous: Optional[float] = None
    change_percent: Optional[float] = None
    unit: str = ""


@dataclass(frozen=True)
class MonthlyTotals:
    month: str  # "YYYY-MM"
    income: float
    expense: float


@dataclass(frozen=True)
class MetricBundle:
    values: Dict[str, MetricValue]
    low_stock_products: Tuple[Product, ...] = ()
    revenue_by_method: Tuple[Tuple[str, float], ...] = ()
    revenue_evolution: Tuple[MonthlyTotals, ...] = ()

    def __getitem__(self, name: str) -> float:
        return self.values[name].value

    def __contains__(self, name: str) -> bool:
        return name in self.values

    def growth(self, name: str) -> float:
        return self.values[name].change_percent or 0.0

    def previous(self, name: str) -> float:
        return self.values[name].previous or 0.0

    def as_flat_dict(self) -> Dict[str, float]:
        """{kpi: value, kpi_previous: ..., kpi_growth: ...} for every KPI."""
        flat: Dict[str, float] = {}
        for name, metric in self.values.items():
            flat[name] = metric.value
            if metric.previous is not None:
                flat[f"{name}_previous"] = metric.previous
            if metric.change_percent is not None:
                flat[f"{name}_growth"] = metric.change_percent
        return flat


@dataclass(frozen=True)
class RetentionMetrics:
    retention_rate: float
    avg_visit_frequency_days: float
    inactive_clients: int
    previous_visitors: int
    current_visitors: int
    returning_visitors: int


@dataclass(frozen=True)
class RankedEntry:
    entity: Any
    score: float


@dataclass(frozen=True)
class ServiceStat:
    name: str
    count: int
    revenue: float = 0.0


@dataclass(frozen=True)
class StaffStat:
    staff_id: str
    name: str
    revenue: float
    count: int


@dataclass(frozen=True)
class ProductStat:
    name: str
    quantity: float
    revenue: float


@dataclass(frozen=True)
class Rankings:
    top_clients: Tuple[RankedEntry, ...] = ()
    top_services: Tuple[RankedEntry, ...] = ()
    staff_performance: Tuple[RankedEntry, ...] = ()
    top_products: Tuple[RankedEntry, ...] = ()
