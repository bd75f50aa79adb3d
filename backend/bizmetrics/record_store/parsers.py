"""
Record file parsing for the file store.

One file holds one table. CSV/TSV cells are kept as text (record types coerce
them); JSON may be a bare list of rows or an object wrapping the rows under
the table name or another list-valued key; JSONL holds one row per line.
"""
from __future__ import annotations

import io
import json
import logging
import re
from pathlib import Path
from typing import Any, List, Optional

import pandas as pd

logger = logging.getLogger(__name__)

FORMATS = {
    ".csv": "csv",
    ".tsv": "csv",
    ".json": "json",
    ".jsonl": "jsonl",
    ".ndjson": "jsonl",
}

SUPPORTED_EXTENSIONS = set(FORMATS)


def detect_format(filename: str) -> str:
    ext = Path(filename).suffix.lower()
    if ext not in FORMATS:
        raise ValueError(f"Unsupported record file '{filename}'. Supported: {', '.join(sorted(FORMATS))}")
    return FORMATS[ext]


def normalise_column(name: Any) -> str:
    """'Start Time' -> 'start_time', 'Client-ID' -> 'client_id'."""
    return re.sub(r"[^a-z0-9_]", "_", str(name).strip().lower()).strip("_")


def _delimiter(text: str) -> str:
    first_line = text.split("\n", 1)[0]
    return "\t" if first_line.count("\t") > first_line.count(",") else ","


def _csv_frame(content: bytes, table: str) -> pd.DataFrame:
    # utf-8-sig drops the BOM spreadsheet exports prepend
    text = content.decode("utf-8-sig")
    return pd.read_csv(io.StringIO(text), sep=_delimiter(text), dtype=str)


def _json_rows(obj: Any, table: str) -> List[Any]:
    if isinstance(obj, list):
        return obj
    if isinstance(obj, dict):
        if isinstance(obj.get(table), list):
            return obj[table]
        for value in obj.values():
            if isinstance(value, list):
                return value
        return [obj]
    raise ValueError(f"Expected a list or object of rows, got {type(obj).__name__}")


def _json_frame(content: bytes, table: str) -> pd.DataFrame:
    rows = _json_rows(json.loads(content.decode("utf-8-sig")), table)
    return pd.json_normalize(rows)


def _jsonl_frame(content: bytes, table: str) -> pd.DataFrame:
    # dtype/convert_dates off: timestamps are parsed per record type
    return pd.read_json(io.BytesIO(content), lines=True, dtype=False, convert_dates=False)


_READERS = {
    "csv": _csv_frame,
    "json": _json_frame,
    "jsonl": _jsonl_frame,
}


def parse_file(content: bytes, filename: str, table: Optional[str] = None) -> pd.DataFrame:
    """
    Parses one record file into a DataFrame with normalised column names.

    Args:
        content: raw file bytes
        filename: used for format detection; its stem is the default table name
        table: key holding the rows inside a JSON object

    Raises:
        ValueError: unsupported extension or unreadable content
    """
    fmt = detect_format(filename)
    if not content.strip():
        logger.info(f"{filename} is empty")
        return pd.DataFrame()

    table = table or Path(filename).stem
    try:
        df = _READERS[fmt](content, table)
    except Exception as e:
        raise ValueError(f"Failed to parse {filename}: {e}") from e

    df.columns = [normalise_column(c) for c in df.columns]
    logger.info(f"Parsed {filename}: {len(df)} rows x {len(df.columns)} cols")
    return df
