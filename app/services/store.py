"""Primary relational store access through Supabase's PostgREST and auth admin APIs.

Every method returns an :class:`~app.services.result.Ok` or
:class:`~app.services.result.Err`; HTTP and decoding errors never escape.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import httpx

from app.services.result import Err, Ok, Result

logger = logging.getLogger(__name__)

TIMEOUT = 15  # seconds

# Rows requested per page; matches PostgREST's default db-max-rows.
PAGE_SIZE = 1000


class SupabaseStore:
    """Thin async client for the tables this service reads and writes."""

    def __init__(
        self,
        url: str,
        service_key: str,
        client: Optional[httpx.AsyncClient] = None,
        page_size: int = PAGE_SIZE,
    ):
        self.base_url = url.rstrip("/")
        self.page_size = max(page_size, 1)
        headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }
        self._client = client or httpx.AsyncClient(timeout=TIMEOUT)
        self._client.headers.update(headers)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Result[Any]:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = await self._client.request(
                method, f"{self.base_url}{path}", params=params, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            logger.error("Store request %s %s failed: %s", method, path, exc)
            return Err("network", str(exc))

        if response.status_code == 404:
            return Err("not_found", response.text)
        if response.is_error:
            logger.error(
                "Store request %s %s returned HTTP %s: %s",
                method, path, response.status_code, response.text,
            )
            return Err("http_error", f"HTTP {response.status_code}: {response.text}")

        if not response.content:
            return Ok(None)
        try:
            return Ok(response.json())
        except ValueError as exc:
            return Err("invalid_json", str(exc))

    async def fetch_rows(
        self,
        table: str,
        since: Optional[datetime] = None,
        updated_at_field: str = "updated_at",
        tiebreak_field: str = "id",
    ) -> Result[List[Dict[str, Any]]]:
        """Return all rows of *table*, or only those updated at or after *since*.

        PostgREST caps each response, so the rows are read page by page until
        a short page comes back. A failure on any page fails the whole fetch.
        """
        params = {
            "select": "*",
            "order": f"{updated_at_field}.asc,{tiebreak_field}.asc",
            "limit": str(self.page_size),
        }
        if since is not None:
            params[updated_at_field] = f"gte.{since.isoformat()}"

        rows: List[Dict[str, Any]] = []
        while True:
            params["offset"] = str(len(rows))
            result = await self._request("GET", f"/rest/v1/{table}", params=params)
            if isinstance(result, Err):
                return result
            if not isinstance(result.payload, list):
                return Err("invalid_shape", result.payload)
            rows.extend(result.payload)
            if len(result.payload) < self.page_size:
                return Ok(rows)

    async def get_row(self, table: str, column: str, value: Any) -> Result[Optional[Dict[str, Any]]]:
        """Return the first row of *table* whose *column* equals *value*, or ``Ok(None)``."""
        params = {"select": "*", column: f"eq.{value}", "limit": "1"}
        result = await self._request("GET", f"/rest/v1/{table}", params=params)
        if isinstance(result, Err):
            return result
        rows = result.payload if isinstance(result.payload, list) else []
        return Ok(rows[0] if rows else None)

    async def update_row(
        self, table: str, column: str, value: Any, values: Mapping[str, Any]
    ) -> Result[Optional[Dict[str, Any]]]:
        """Update rows matching *column* = *value*; ``Ok(None)`` when nothing matched."""
        result = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params={column: f"eq.{value}"},
            json=dict(values),
            prefer="return=representation",
        )
        if isinstance(result, Err):
            return result
        rows = result.payload if isinstance(result.payload, list) else []
        return Ok(rows[0] if rows else None)

    async def insert_row(self, table: str, values: Mapping[str, Any]) -> Result[Optional[Dict[str, Any]]]:
        result = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=dict(values),
            prefer="return=representation",
        )
        if isinstance(result, Err):
            return result
        rows = result.payload if isinstance(result.payload, list) else []
        return Ok(rows[0] if rows else None)

    async def get_auth_user(self, user_id: str) -> Result[Optional[Dict[str, Any]]]:
        """Look up an auth user by id through the admin API; ``Ok(None)`` if unknown."""
        result = await self._request("GET", f"/auth/v1/admin/users/{user_id}")
        if isinstance(result, Err):
            return Ok(None) if result.kind == "not_found" else result
        return Ok(result.payload if isinstance(result.payload, dict) else None)
