"""In-memory backend - rows in dictionaries, change feed delivered in-process."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable

from ..submissions.serializer import (
    comment_from_row,
    comment_to_row,
    mutable_fields,
    submission_from_row,
    submission_to_row,
)
from ..submissions.types import Comment, Submission
from ..sync.events import ChangeNotification
from .base import BackendError, BackendNotFound, ChangeCallback, SubmissionBackend

logger = logging.getLogger(__name__)


class InMemoryBackend(SubmissionBackend):
    """
    Backend for demos and tests.

    Stores rows exactly as a remote service would and emits the matching
    change notifications to every subscriber after each write.
    """

    def __init__(self, latency_seconds: float = 0.0) -> None:
        self.latency_seconds = latency_seconds
        self._submissions: dict[str, dict[str, Any]] = {}
        self._comments: list[dict[str, Any]] = []
        self._subscribers: list[ChangeCallback] = []
        self.closed = False

    def seed(self, submissions: Iterable[Submission]) -> int:
        """Load rows without emitting notifications."""
        count = 0
        for submission in submissions:
            self._submissions[submission.id] = submission_to_row(submission)
            for comment in submission.comments:
                self._comments.append(comment_to_row(comment))
            count += 1
        return count

    def row(self, submission_id: str) -> dict[str, Any] | None:
        row = self._submissions.get(submission_id)
        return dict(row) if row is not None else None

    def comment_rows(self, submission_id: str) -> list[dict[str, Any]]:
        return [dict(c) for c in self._comments if c["submission_id"] == submission_id]

    async def _round_trip(self) -> None:
        if self.closed:
            raise BackendError("Backend is closed")
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)

    def _emit(self, change: ChangeNotification) -> None:
        for callback in self._subscribers:
            try:
                callback(change)
            except Exception as e:
                logger.error(f"Change subscriber error: {e}")

    async def fetch_submissions(self, producer_id: str | None = None) -> list[Submission]:
        await self._round_trip()
        result = []
        for row in self._submissions.values():
            if producer_id and row.get("producer_id") != producer_id:
                continue
            comments = tuple(comment_from_row(c) for c in self.comment_rows(row["id"]))
            result.append(submission_from_row(row, comments=comments))
        return result

    async def update_submission(self, submission: Submission) -> None:
        await self._round_trip()
        old = self._submissions.get(submission.id)
        if old is None:
            raise BackendNotFound(f"Submission row not found: {submission.id}")
        new = {**old, **mutable_fields(submission)}
        self._submissions[submission.id] = new
        self._emit(ChangeNotification.submission_updated(dict(new), old_record=dict(old)))

    async def insert_comment(self, comment: Comment) -> None:
        await self._round_trip()
        if comment.submission_id not in self._submissions:
            raise BackendNotFound(f"Submission row not found: {comment.submission_id}")
        row = comment_to_row(comment)
        self._comments.append(row)
        self._emit(ChangeNotification.comment_inserted(dict(row)))

    async def insert_submission(self, submission: Submission) -> None:
        await self._round_trip()
        if submission.id in self._submissions:
            raise BackendError(f"Duplicate submission id: {submission.id}")
        row = submission_to_row(submission)
        self._submissions[submission.id] = row
        self._emit(ChangeNotification.submission_updated(dict(row)))

    async def subscribe(self, callback: ChangeCallback) -> None:
        self._subscribers.append(callback)

    async def close(self) -> None:
        self._subscribers.clear()
        self.closed = True
