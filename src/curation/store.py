"""
Relational store client for the ``questions`` table (Supabase REST API).

Only two operations are needed: fetch rows by topic and partially update a
row by id.  Store operations are never retried here; every non-success
response raises :class:`StoreError`.
"""

from __future__ import annotations

import httpx

from .config import STORE
from .errors import StoreError


class QuestionStore:
    """Thin async PostgREST client."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        service_key: str,
        table: str = STORE["table"],
        rest_path: str = STORE["rest_path"],
    ):
        self.client = client
        self.table_url = f"{base_url.rstrip('/')}{rest_path}/{table}"
        self.headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }

    async def _send(self, method: str, params: dict, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(
                method, self.table_url, params=params, **kwargs
            )
        except httpx.HTTPError as exc:
            raise StoreError(f"{method} {self.table_url} failed: {exc}") from exc

        if response.status_code >= 400:
            raise StoreError(
                f"{method} {self.table_url} returned HTTP {response.status_code}: "
                f"{response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    async def fetch(self, topic: str, limit: int = 0) -> list[dict]:
        """
        Fetch every row whose ``topic`` equals ``topic``.

        Args:
            topic: Topic label to filter on.
            limit: Maximum rows to return; 0 means no cap.

        Returns:
            List of row dicts (empty when nothing matches).

        Raises:
            StoreError: Transport failure, non-2xx status, or a body that is
                        not a JSON list.
        """
        params = {"select": "*", "topic": f"eq.{topic}"}
        if limit and limit > 0:
            params["limit"] = str(limit)

        response = await self._send("GET", params, headers=self.headers)
        try:
            rows = response.json()
        except ValueError as exc:
            raise StoreError(f"fetch for topic '{topic}' returned non-JSON body") from exc
        if not isinstance(rows, list):
            raise StoreError(f"fetch for topic '{topic}' did not return a list of rows")
        return rows

    async def update(self, item_id: str, updates: dict) -> None:
        """
        Apply a partial update to one row; only supplied fields change.

        Raises:
            StoreError: Transport failure or non-2xx status.
        """
        headers = dict(self.headers, Prefer="return=minimal")
        await self._send("PATCH", {"id": f"eq.{item_id}"}, headers=headers, json=updates)
