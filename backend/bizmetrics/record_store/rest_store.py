"""REST record store: reads PostgREST-style endpoints (one endpoint per table)."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from bizmetrics.record_store.base import RecordStore, RecordStoreError

logger = logging.getLogger(__name__)


class RestRecordStore(RecordStore):
    store_type = "rest"

    def __init__(self, config: dict):
        super().__init__(config)
        self.base_url = (self.config.get("url") or "").rstrip("/")
        self.api_key = self.config.get("api_key")
        self.headers = self.config.get("headers", {})
        self.timeout = float(self.config.get("timeout", 30))
        # Injected by tests (httpx.MockTransport)
        self.transport = self.config.get("transport")

    def _headers(self) -> dict:
        headers = {"Accept": "application/json", **self.headers}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        if not self.base_url:
            raise RecordStoreError("rest store URL is required in config.url")
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self.transport,
        )

    @staticmethod
    def build_params(
        filters: Optional[Dict[str, Any]],
        order_by: Optional[str],
        descending: bool,
    ) -> Dict[str, str]:
        params = {"select": "*"}
        for col, value in (filters or {}).items():
            params[col] = f"eq.{value}"
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        return params

    async def test_connection(self) -> tuple[str, str]:
        try:
            async with self._client() as client:
                resp = await client.get("/")
                resp.raise_for_status()
            return "connected", "API responded successfully"
        except Exception as e:
            return "error", f"Connection failed: {type(e).__name__}: {e}"

    async def fetch(
        self,
        table: str,
        *,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        params = self.build_params(filters, order_by, descending)
        async with self._client() as client:
            resp = await client.get(f"/{table}", params=params)
        if resp.status_code == 404:
            logger.warning(f"Endpoint for table '{table}' not found; treating as empty")
            return []
        resp.raise_for_status()
        data = resp.json()
        if data is None:
            return []
        if not isinstance(data, list):
            raise RecordStoreError(f"Expected a list of rows for '{table}', got {type(data).__name__}")
        logger.debug(f"Read {len(data)} rows from '{table}'")
        return data
