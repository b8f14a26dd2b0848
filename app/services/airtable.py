"""Airtable REST client used as the sync destination."""

import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

import httpx

from app.services.result import Err, Ok, Result

logger = logging.getLogger(__name__)

API_URL = "https://api.airtable.com/v0"
TIMEOUT = 15  # seconds

# Airtable accepts at most this many records per create/update request.
MAX_RECORDS_PER_REQUEST = 10


def match_formula(field: str, value: Any) -> str:
    """Build an exact-match ``filterByFormula`` expression for *field* = *value*."""
    if isinstance(value, bool):
        literal = "TRUE()" if value else "FALSE()"
    elif isinstance(value, (int, float)):
        literal = repr(value)
    else:
        escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
        literal = f"'{escaped}'"
    return f"{{{field}}}={literal}"


class AirtableClient:
    def __init__(
        self,
        api_key: str,
        base_id: str,
        client: Optional[httpx.AsyncClient] = None,
        api_url: str = API_URL,
    ):
        self.base_url = f"{api_url.rstrip('/')}/{base_id}"
        self._client = client or httpx.AsyncClient(timeout=TIMEOUT)
        self._client.headers.update({"Authorization": f"Bearer {api_key}"})

    async def aclose(self) -> None:
        await self._client.aclose()

    def _table_url(self, table: str) -> str:
        return f"{self.base_url}/{quote(table, safe='')}"

    async def _request(self, method: str, table: str, **kwargs) -> Result[Dict[str, Any]]:
        try:
            response = await self._client.request(method, self._table_url(table), **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Airtable %s %s failed: %s", method, table, exc)
            return Err("network", str(exc))
        if response.is_error:
            logger.error(
                "Airtable %s %s returned HTTP %s: %s",
                method, table, response.status_code, response.text,
            )
            return Err("http_error", f"HTTP {response.status_code}: {response.text}")
        try:
            payload = response.json()
        except ValueError as exc:
            return Err("invalid_json", str(exc))
        if not isinstance(payload, dict):
            return Err("invalid_shape", payload)
        return Ok(payload)

    async def find_record(self, table: str, key_field: str, value: Any) -> Result[Optional[Dict[str, Any]]]:
        """Return the first record whose *key_field* equals *value* exactly, or ``Ok(None)``."""
        result = await self._request(
            "GET",
            table,
            params={"filterByFormula": match_formula(key_field, value), "maxRecords": "1"},
        )
        if isinstance(result, Err):
            return result
        records = result.payload.get("records") or []
        return Ok(records[0] if records else None)

    async def create_record(self, table: str, fields: Mapping[str, Any]) -> Result[Dict[str, Any]]:
        result = await self._request(
            "POST",
            table,
            json={"records": [{"fields": dict(fields)}], "typecast": True},
        )
        if isinstance(result, Err):
            return result
        return Ok((result.payload.get("records") or [{}])[0])

    async def update_record(
        self, table: str, record_id: str, fields: Mapping[str, Any]
    ) -> Result[Dict[str, Any]]:
        result = await self._request(
            "PATCH",
            table,
            json={"records": [{"id": record_id, "fields": dict(fields)}], "typecast": True},
        )
        if isinstance(result, Err):
            return result
        return Ok((result.payload.get("records") or [{}])[0])
