"""
Record store backed by any SQLAlchemy-compatible database.
Tables are reflected on demand; reads go through pandas and run in a worker
thread so the event loop can await several collections at once.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import pandas as pd
from sqlalchemy import MetaData, Table, create_engine, inspect, select, text
from sqlalchemy.engine import Engine

from bizmetrics.record_store.base import RecordStore, RecordStoreError

logger = logging.getLogger(__name__)


def dataframe_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """DataFrame -> list of dicts with NaN/NaT replaced by None."""
    if df.empty:
        return []
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


class SQLAlchemyRecordStore(RecordStore):
    store_type = "sqlalchemy"

    def __init__(self, config: dict):
        super().__init__(config)
        self.url = self.config.get("url", "")
        self._engine: Optional[Engine] = None

    def _get_engine(self) -> Engine:
        if not self.url:
            raise RecordStoreError(f"{self.store_type} connection URL is required in config.url")
        if self._engine is None:
            self._engine = create_engine(self.url, pool_pre_ping=True)
            logger.info(f"{self.store_type} engine created")
        return self._engine

    def _test_connection_sync(self) -> tuple[str, str]:
        try:
            with self._get_engine().connect() as conn:
                conn.execute(text("SELECT 1"))
            return "connected", f"{self.store_type} connection successful"
        except Exception as e:
            logger.error(f"{self.store_type} test_connection failed: {e}")
            return "error", f"Connection failed: {type(e).__name__}: {e}"

    async def test_connection(self) -> tuple[str, str]:
        return await asyncio.to_thread(self._test_connection_sync)

    def _fetch_sync(
        self,
        table: str,
        filters: Optional[Dict[str, Any]],
        order_by: Optional[str],
        descending: bool,
    ) -> List[Dict[str, Any]]:
        engine = self._get_engine()
        if not inspect(engine).has_table(table):
            logger.warning(f"Table '{table}' not found; treating as empty")
            return []

        tbl = Table(table, MetaData(), autoload_with=engine)
        stmt = select(tbl)
        for col, value in (filters or {}).items():
            if col not in tbl.c:
                logger.warning(f"Filter column '{col}' not in table '{table}'; ignoring filter")
                continue
            stmt = stmt.where(tbl.c[col] == value)
        if order_by and order_by in tbl.c:
            column = tbl.c[order_by]
            stmt = stmt.order_by(column.desc() if descending else column.asc())

        with engine.connect() as conn:
            df = pd.read_sql(stmt, conn)
        logger.debug(f"Read {len(df)} rows from '{table}'")
        return dataframe_to_rows(df)

    async def fetch(
        self,
        table: str,
        *,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._fetch_sync, table, filters, order_by, descending)

    def dispose(self):
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
