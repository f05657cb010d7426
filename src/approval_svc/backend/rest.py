"""REST backend for PostgREST-compatible database services."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from ..submissions.serializer import (
    comment_to_row,
    mutable_fields,
    submission_from_row,
    submission_to_row,
)
from ..submissions.types import Comment, Submission
from ..sync.events import ChangeNotification
from .base import (
    BackendAuthError,
    BackendConnectionError,
    BackendError,
    BackendNotFound,
    BackendTimeout,
    ChangeCallback,
    SubmissionBackend,
)

logger = logging.getLogger(__name__)


class RestBackend(SubmissionBackend):
    """
    Backend speaking the PostgREST dialect (``/rest/v1/<table>``).

    Config:
        base_url: Service URL, e.g. https://project.example.co
        api_key: Sent as ``apikey`` and as the bearer token
        schema: Postgres schema exposed by the API
        submissions_table / comments_table: Table names
        timeout_seconds: Per-request timeout
        poll_interval_seconds: Change feed polling interval (0 disables the
            background poller; call ``poll_once`` directly)

    The change feed polls for rows whose ``updated_at`` / ``created_at`` is
    newer than the last one seen.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        schema: str = "public",
        submissions_table: str = "submissions",
        comments_table: str = "comments",
        timeout_seconds: float = 10.0,
        poll_interval_seconds: float = 2.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url:
            raise BackendError("base_url is required for REST backend")

        self.base_url = base_url.rstrip("/")
        self.schema = schema
        self.submissions_table = submissions_table
        self.comments_table = comments_table
        self.poll_interval_seconds = poll_interval_seconds

        headers = {
            "Accept-Profile": schema,
            "Content-Profile": schema,
        }
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._headers = headers
        self._subscribers: list[ChangeCallback] = []
        self._poll_task: asyncio.Task | None = None
        self._submission_cursor: str | None = None
        self._comment_cursor: str | None = None

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    async def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers = dict(self._headers)
        if prefer:
            headers["Prefer"] = prefer

        url = self._url(table)
        try:
            response = await self._client.request(method, url, params=params, json=json, headers=headers)
        except httpx.TimeoutException as e:
            raise BackendTimeout(f"Timed out calling {method} {url}") from e
        except httpx.HTTPError as e:
            raise BackendConnectionError(f"Failed to reach {url}: {e}") from e

        if response.status_code in (401, 403):
            raise BackendAuthError(f"Not authorized for {method} {table}: {response.status_code}")
        if response.status_code == 404:
            raise BackendNotFound(f"Not found: {method} {table}")
        if response.status_code >= 400:
            raise BackendError(
                f"{method} {table} failed with {response.status_code}: {response.text[:200]}"
            )

        if not response.content:
            return None
        return response.json()

    async def fetch_submissions(self, producer_id: str | None = None) -> list[Submission]:
        params = {
            "select": f"*,{self.comments_table}(*)",
            "order": "submitted_at.desc",
        }
        if producer_id:
            params["producer_id"] = f"eq.{producer_id}"

        rows = await self._request("GET", self.submissions_table, params=params) or []
        result = []
        for row in rows:
            if self.comments_table != "comments" and self.comments_table in row:
                row = {**row, "comments": row[self.comments_table]}
            comments = row.get("comments") or []
            row = {**row, "comments": sorted(comments, key=lambda c: c.get("created_at") or "")}
            result.append(submission_from_row(row))
        logger.info(f"Fetched {len(result)} submissions from {self.base_url}")
        return result

    async def update_submission(self, submission: Submission) -> None:
        rows = await self._request(
            "PATCH",
            self.submissions_table,
            params={"id": f"eq.{submission.id}"},
            json=mutable_fields(submission),
            prefer="return=representation",
        )
        if not rows:
            raise BackendNotFound(f"Submission row not found: {submission.id}")

    async def insert_comment(self, comment: Comment) -> None:
        await self._request(
            "POST",
            self.comments_table,
            json=comment_to_row(comment),
            prefer="return=minimal",
        )

    async def insert_submission(self, submission: Submission) -> None:
        await self._request(
            "POST",
            self.submissions_table,
            json=submission_to_row(submission),
            prefer="return=minimal",
        )

    # =========================================================================
    # Change feed
    # =========================================================================

    async def subscribe(self, callback: ChangeCallback) -> None:
        self._subscribers.append(callback)
        if self._submission_cursor is None:
            now = datetime.now(timezone.utc).isoformat()
            self._submission_cursor = now
            self._comment_cursor = now
        if self._poll_task is None and self.poll_interval_seconds > 0:
            self._poll_task = asyncio.create_task(self._poll_loop())
            logger.info(f"Change feed polling started (interval={self.poll_interval_seconds}s)")

    def _emit(self, change: ChangeNotification) -> None:
        for callback in self._subscribers:
            try:
                callback(change)
            except Exception as e:
                logger.error(f"Change subscriber error: {e}")

    async def poll_once(self) -> int:
        """Fetch rows changed since the last poll and emit them. Returns the count."""
        emitted = 0

        rows = await self._request(
            "GET",
            self.submissions_table,
            params={"updated_at": f"gt.{self._submission_cursor}", "order": "updated_at.asc"},
        ) or []
        for row in rows:
            self._emit(ChangeNotification.submission_updated(row))
            self._submission_cursor = row.get("updated_at") or self._submission_cursor
            emitted += 1

        rows = await self._request(
            "GET",
            self.comments_table,
            params={"created_at": f"gt.{self._comment_cursor}", "order": "created_at.asc"},
        ) or []
        for row in rows:
            self._emit(ChangeNotification.comment_inserted(row))
            self._comment_cursor = row.get("created_at") or self._comment_cursor
            emitted += 1

        return emitted

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except BackendError as e:
                logger.warning(f"Change feed poll failed, retrying: {e}")
            await asyncio.sleep(self.poll_interval_seconds)

    async def close(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None
        self._subscribers.clear()
        if self._owns_client:
            await self._client.aclose()
