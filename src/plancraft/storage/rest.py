"""Lesson persistence over a PostgREST-style HTTP table."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from plancraft.errors import StorageError, StorageTransientError
from plancraft.models.results import StoredLesson

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS: frozenset[int] = frozenset({408, 425, 429, 500, 502, 503, 504})


class RestLessonStore:
    """Stores lessons as rows of a hosted ``lesson_plans`` table.

    ``save`` reads the current row version, then updates the row or inserts
    it when missing. ``load`` selects the row by id.

    Args:
        base_url: Project URL, e.g. ``https://xyz.supabase.co``.
        api_key: Key sent as both ``apikey`` and bearer token.
        table: Table name.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        table: str = "lesson_plans",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required for the REST lesson store")
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._table = table
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"apikey": self._api_key, "Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return httpx.AsyncClient(
            base_url=f"{self._base_url}/rest/v1",
            headers=headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            transport=self._transport,
        )

    async def save(self, lesson_id: str, content: str) -> None:
        """Write ``content`` as the next version of the lesson.

        Raises:
            StorageTransientError: Network failure, timeout, 5xx or 429.
            StorageError: Any other rejected request.
        """
        now = datetime.now(UTC).isoformat()
        async with self._client() as client:
            current = await self._select(client, lesson_id)
            if current is None:
                body: dict[str, Any] = {
                    "id": lesson_id,
                    "content": content,
                    "version": 1,
                    "last_modified": now,
                }
                await self._request(client, "POST", f"/{self._table}", json=body)
                logger.debug("Inserted lesson %s", lesson_id)
                return

            body = {"content": content, "version": current.version + 1, "last_modified": now}
            rows = await self._request(
                client,
                "PATCH",
                f"/{self._table}",
                params={"id": f"eq.{lesson_id}"},
                json=body,
            )
            if not rows:
                raise StorageError(f"Lesson {lesson_id!r} disappeared during update")
            logger.debug("Updated lesson %s to version %d", lesson_id, current.version + 1)

    async def load(self, lesson_id: str) -> StoredLesson | None:
        """Select the lesson row, or None if there is none."""
        async with self._client() as client:
            return await self._select(client, lesson_id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _select(self, client: httpx.AsyncClient, lesson_id: str) -> StoredLesson | None:
        rows = await self._request(
            client,
            "GET",
            f"/{self._table}",
            params={"id": f"eq.{lesson_id}", "select": "content,version"},
        )
        if not rows:
            return None
        row = rows[0]
        try:
            return StoredLesson(content=row["content"], version=int(row.get("version") or 0))
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"Malformed lesson row for {lesson_id!r}: {exc}") from exc

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> list[dict[str, Any]]:
        headers = {"Prefer": "return=representation"} if method in ("POST", "PATCH") else None
        try:
            resp = await client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise StorageTransientError(f"Storage request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise StorageTransientError(f"Storage connection failed: {exc}") from exc

        if resp.status_code in _RETRYABLE_STATUS:
            raise StorageTransientError(f"Storage returned HTTP {resp.status_code}")
        if resp.is_error:
            raise StorageError(
                f"Storage rejected {method} with HTTP {resp.status_code}: {resp.text}"
            )
        if not resp.content:
            return []

        data = resp.json()
        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list):
            raise StorageError(f"Unexpected storage payload: {data!r}")
        return data
