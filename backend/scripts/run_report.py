"""
Offline report runner over a directory of record files.

Usage:
  python scripts/run_report.py --data-dir sample_data --period 30d --now 2026-03-31T15:00:00+00:00
  python scripts/run_report.py --data-dir sample_data --period custom --from 2026-01-01 --to 2026-02-01
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv

from bizmetrics.config import configure_logging
from bizmetrics.narrative_service import narrative_to_dict
from bizmetrics.periods import InvalidRange, PeriodSelector
from bizmetrics.record_store import get_record_store
from bizmetrics.report_service import generate_report, narrate_report, report_to_dict


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


async def _run(args: argparse.Namespace) -> None:
    store = get_record_store("file", {"data_dir": args.data_dir})
    report = await generate_report(
        store,
        args.period,
        now=_parse_datetime(args.now),
        date_from=_parse_datetime(args.date_from),
        date_to=_parse_datetime(args.date_to),
    )
    # The report is printed before the provider is called.
    _emit({"report": report_to_dict(report)})
    if args.narrative:
        text = await narrate_report(report, timeout=args.timeout)
        _emit({"narrative": narrative_to_dict(text)})


def _emit(block: dict) -> None:
    print(json.dumps(block, indent=2, default=str), flush=True)


def main() -> int:
    parser = argparse.ArgumentParser(description="Compute a business KPI report from record files.")
    parser.add_argument("--data-dir", required=True, help="Directory with <table>.csv/.json/.jsonl files")
    parser.add_argument("--period", default="30d", choices=[p.value for p in PeriodSelector])
    parser.add_argument("--from", dest="date_from", default="", help="Custom period start (ISO 8601)")
    parser.add_argument("--to", dest="date_to", default="", help="Custom period end (ISO 8601)")
    parser.add_argument("--now", default="", help="Reference instant (ISO 8601); defaults to the current time")
    parser.add_argument("--narrative", action="store_true", help="Also request a narrative from the LLM provider")
    parser.add_argument("--timeout", type=float, default=20.0, help="Narrative timeout seconds")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    load_dotenv()
    configure_logging(args.log_level)

    try:
        asyncio.run(_run(args))
    except InvalidRange as e:
        print(f"Invalid period: {e}", file=sys.stderr)
        return 2

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
