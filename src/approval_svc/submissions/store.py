"""Submission store - the single authoritative in-memory collection."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from enum import Enum
from typing import Callable, Iterable

from .errors import SubmissionNotFound
from .types import Comment, Submission, SubmissionStatus

logger = logging.getLogger(__name__)

Listener = Callable[["Submission | None", Submission], None]


class MergeResult(str, Enum):
    INSERTED = "inserted"
    APPLIED = "applied"
    STALE = "stale"
    DUPLICATE = "duplicate"
    ORPHANED = "orphaned"


def _union_comments(current: tuple[Comment, ...], incoming: tuple[Comment, ...]) -> tuple[Comment, ...]:
    """Append-only union: existing comments first, then unseen incoming ones."""
    seen = {c.id for c in current}
    return current + tuple(c for c in incoming if c.id not in seen)


class SubmissionStore:
    """
    Thread-safe in-memory store of submissions.

    Both local workflow mutations and remote change notifications go through
    ``merge``, which swaps the whole Submission under the lock, so readers
    only ever see complete records. Each record carries a version; with
    ``drop_stale`` enabled, an incoming record older than the stored one is
    ignored instead of overwriting newer state.
    """

    def __init__(self, drop_stale: bool = True) -> None:
        self._items: dict[str, Submission] = {}
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self.drop_stale = drop_stale

    def add_listener(self, listener: Listener) -> None:
        """Called with (old, new) after every successful write."""
        self._listeners.append(listener)

    def _notify(self, old: Submission | None, new: Submission) -> None:
        for listener in self._listeners:
            try:
                listener(old, new)
            except Exception as e:
                logger.error(f"Store listener error: {e}")

    def get(self, submission_id: str) -> Submission | None:
        with self._lock:
            return self._items.get(submission_id)

    def require(self, submission_id: str) -> Submission:
        """Get a submission or raise SubmissionNotFound."""
        submission = self.get(submission_id)
        if submission is None:
            raise SubmissionNotFound(submission_id)
        return submission

    def snapshot(self) -> list[Submission]:
        """All submissions in insertion order."""
        with self._lock:
            return list(self._items.values())

    def find_by_status(self, status: SubmissionStatus) -> list[Submission]:
        with self._lock:
            return [s for s in self._items.values() if s.status == status]

    def count_by_status(self) -> dict[str, int]:
        with self._lock:
            counts: dict[str, int] = {}
            for submission in self._items.values():
                key = submission.status.value
                counts[key] = counts.get(key, 0) + 1
            counts["total"] = len(self._items)
            return counts

    def merge(self, incoming: Submission) -> MergeResult:
        """
        Insert or replace a submission.

        Comments are never dropped: the stored list is kept and any unseen
        incoming comments are appended after it.
        """
        with self._lock:
            current = self._items.get(incoming.id)
            if current is None:
                self._items[incoming.id] = incoming
                result = MergeResult.INSERTED
                merged = incoming
            elif self.drop_stale and incoming.version < current.version:
                logger.debug(
                    f"Dropping stale update for {incoming.id} "
                    f"(v{incoming.version} < v{current.version})"
                )
                return MergeResult.STALE
            else:
                merged = replace(incoming, comments=_union_comments(current.comments, incoming.comments))
                self._items[incoming.id] = merged
                result = MergeResult.APPLIED

        self._notify(current, merged)
        return result

    def append_comment(self, comment: Comment) -> MergeResult:
        """Append a comment to its owner unless it is already there."""
        with self._lock:
            current = self._items.get(comment.submission_id)
            if current is None:
                return MergeResult.ORPHANED
            if current.has_comment(comment.id):
                return MergeResult.DUPLICATE

            last_updated = current.last_updated
            if comment.timestamp and (last_updated is None or comment.timestamp > last_updated):
                last_updated = comment.timestamp
            merged = replace(current, comments=current.comments + (comment,), last_updated=last_updated)
            self._items[current.id] = merged

        self._notify(current, merged)
        return MergeResult.APPLIED

    def load(self, submissions: Iterable[Submission]) -> int:
        """Replace the whole collection (initial load / reload)."""
        with self._lock:
            self._items = {s.id: s for s in submissions}
            count = len(self._items)
        logger.info(f"Loaded {count} submissions into store")
        return count

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, submission_id: object) -> bool:
        with self._lock:
            return submission_id in self._items
