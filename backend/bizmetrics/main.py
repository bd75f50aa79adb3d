import logging
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel

from bizmetrics.config import StoreConfig, configure_logging
from bizmetrics.insight_engine import NOT_ENOUGH_DATA_MESSAGE
from bizmetrics.narrative_service import LLMConfig, narrative_to_dict
from bizmetrics.periods import InvalidRange, PeriodSelector
from bizmetrics.record_store import RecordStore, get_record_store
from bizmetrics.report_service import generate_report, narrate_report, report_to_dict

# Load environment variables
load_dotenv()

configure_logging()
logger = logging.getLogger(__name__)

_RECORD_STORE: Optional[RecordStore] = None


# --- Pydantic Models ---
class NarrativeRequest(BaseModel):
    period: PeriodSelector = PeriodSelector.LAST_30_DAYS
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


app = FastAPI(title="Business Metrics Engine")


# --- Dependencies ---
def get_store_config() -> StoreConfig:
    return StoreConfig()


def get_record_store_dependency(config: StoreConfig = Depends(get_store_config)) -> RecordStore:
    """Process-wide record store built from the environment on first use."""
    global _RECORD_STORE
    if _RECORD_STORE is None:
        try:
            _RECORD_STORE = get_record_store(config.store_type, config.store_options())
        except ValueError as e:
            logger.error(f"Invalid record store configuration: {e}")
            raise HTTPException(status_code=500, detail=str(e))
    return _RECORD_STORE


def get_llm_config() -> Optional[LLMConfig]:
    """None when the provider cannot be set up; the narrative then reports failure."""
    try:
        return LLMConfig()
    except Exception as e:
        logger.warning(f"LLM configuration failed: {e}")
        return None


# --- Helper Functions ---
async def _build_report(store: RecordStore, period: PeriodSelector, date_from: Optional[datetime], date_to: Optional[datetime]):
    try:
        return await generate_report(store, period, date_from=date_from, date_to=date_to)
    except InvalidRange as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error building report: {e}")
        raise HTTPException(status_code=500, detail=str(e))


# --- API Endpoints ---
@app.get("/reports")
async def get_report(
    period: PeriodSelector = Query(PeriodSelector.LAST_30_DAYS),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    store: RecordStore = Depends(get_record_store_dependency),
):
    """Full KPI report for the selected window."""
    report = await _build_report(store, period, date_from, date_to)
    return report_to_dict(report)


@app.get("/reports/insights")
async def get_insights(
    period: PeriodSelector = Query(PeriodSelector.LAST_30_DAYS),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    store: RecordStore = Depends(get_record_store_dependency),
):
    """Deterministic rule-based insights only."""
    report = await _build_report(store, period, date_from, date_to)
    insights = [{"rule_id": i.rule_id, "text": i.text, "severity": i.severity} for i in report.insights]
    return {
        "period": period.value,
        "count": len(insights),
        "insights": insights,
        "fallback": None if insights else NOT_ENOUGH_DATA_MESSAGE,
    }


@app.post("/reports/narrative")
async def post_narrative(
    request: NarrativeRequest,
    store: RecordStore = Depends(get_record_store_dependency),
    store_config: StoreConfig = Depends(get_store_config),
    llm_config: Optional[LLMConfig] = Depends(get_llm_config),
):
    """
    Narrative block only. Clients render GET /reports first and request the
    narrative afterwards, so KPIs and insights never wait on the provider.
    """
    report = await _build_report(store, request.period, request.date_from, request.date_to)
    text = await narrate_report(report, config=llm_config, timeout=store_config.narrative_timeout)
    periods = report.periods
    return {
        "period": periods.selector.value,
        "current": {"from": periods.current.start, "to": periods.current.end},
        "narrative": narrative_to_dict(text),
    }


@app.get("/")
def read_root():
    return {"message": "Business Metrics Engine API is running."}


@app.get("/health")
async def health_check(store: RecordStore = Depends(get_record_store_dependency)):
    status, message = await store.test_connection()
    if status == "connected":
        return {"status": "ok", "record_store": store.store_type, "message": message}
    return {"status": "error", "record_store": store.store_type, "error": message}
