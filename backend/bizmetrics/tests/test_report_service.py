import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest

from bizmetrics.insight_engine import NOT_ENOUGH_DATA_MESSAGE
from bizmetrics.narrative_service import NARRATIVE_NOT_CONFIGURED, LLMConfig
from bizmetrics.periods import InvalidRange
from bizmetrics.record_store import get_record_store
from bizmetrics.record_store.memory_store import InMemoryRecordStore
from bizmetrics.report_service import generate_report, narrate_report, report_to_dict
from bizmetrics.tests.conftest import NOW


class CountingStore(InMemoryRecordStore):
    def __init__(self, tables=None):
        super().__init__(tables=tables or {})
        self.reads = 0

    async def fetch(self, table, **kwargs):
        self.reads += 1
        return await super().fetch(table, **kwargs)


def test_invalid_custom_range_fails_before_any_read():
    store = CountingStore()
    with pytest.raises(InvalidRange):
        asyncio.run(generate_report(
            store,
            "custom",
            now=NOW,
            date_from=datetime(2026, 3, 10, tzinfo=timezone.utc),
            date_to=datetime(2026, 3, 1, tzinfo=timezone.utc),
        ))
    assert store.reads == 0


def test_report_on_sample_data(sample_store):
    report = asyncio.run(generate_report(sample_store, "30d", now=NOW))
    assert report.generated_at == NOW
    assert report.metrics["income"] == 1500
    assert report.retention.retention_rate == pytest.approx(200 / 3)
    assert [i.rule_id for i in report.insights] == [
        "revenue_growth", "inactive_clients", "top_service",
        "high_no_show_rate", "high_cancel_rate", "low_stock",
    ]

    payload = report_to_dict(report)
    assert payload["period"] == "30d"
    assert payload["insights_fallback"] is None
    assert payload["metrics"]["income"]["change_percent"] == pytest.approx(25.0)
    assert payload["revenue_by_method"] == [{"method": "pix", "value": 1000.0}, {"method": "card", "value": 500.0}]
    assert [p["name"] for p in payload["low_stock_products"]] == ["Pomade", "Wax"]
    assert payload["rankings"]["top_services"][0]["entity"]["name"] == "Haircut"
    assert len(payload["revenue_evolution"]) == 6


def test_report_on_empty_store_has_fallback():
    report = asyncio.run(generate_report(CountingStore(), "7d", now=NOW))
    assert report.insights == ()
    payload = report_to_dict(report)
    assert payload["insights"] == []
    assert payload["insights_fallback"] == NOT_ENOUGH_DATA_MESSAGE
    assert all(m["value"] == 0 for m in payload["metrics"].values())


def test_narrate_report_leaves_report_untouched(sample_store, monkeypatch):
    for name in ("LLM_PROVIDER", "LLM_API_KEY", "GEMINI_API_KEY", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)

    report = asyncio.run(generate_report(sample_store, "30d", now=NOW))
    before = report_to_dict(report)
    text = asyncio.run(narrate_report(report, config=LLMConfig()))
    assert text == NARRATIVE_NOT_CONFIGURED
    assert report_to_dict(report) == before


def test_report_from_sample_data_files():
    data_dir = Path(__file__).resolve().parents[2] / "sample_data"
    store = get_record_store("file", {"data_dir": str(data_dir)})
    report = asyncio.run(generate_report(store, "30d", now=NOW))
    assert report.metrics["income"] == 1500
    assert report.metrics["low_stock_count"] == 2
    assert [e.entity.staff_id for e in report.rankings.staff_performance] == ["s1", "s2"]
    assert [i.rule_id for i in report.insights][:3] == ["revenue_growth", "inactive_clients", "top_service"]
