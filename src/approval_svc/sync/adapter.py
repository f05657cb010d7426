"""Non-blocking sync adapter - merges backend change notifications into the store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from ..submissions.serializer import comment_from_row, submission_from_row
from ..submissions.store import MergeResult, SubmissionStore
from .events import ChangeKind, ChangeNotification, SyncEvent

if TYPE_CHECKING:
    from ..backend.base import SubmissionBackend


logger = logging.getLogger(__name__)


@dataclass
class SyncAdapter:
    """
    Applies remote changes to a SubmissionStore.

    Notifications are placed in an asyncio queue by ``notify`` (called from
    the backend's change feed) and merged by ``process_loop`` in the
    background. ``apply`` merges one notification immediately.

    Features:
    - Non-blocking notify with a bounded queue
    - Stale updates dropped by version
    - Comment echoes of local writes ignored by id
    """
    store: SubmissionStore

    # Maximum queue depth
    max_queue_size: int = 10000

    # "drop" = drop notifications when full, "raise" = raise QueueFull
    overflow_policy: str = "drop"

    # Internal state
    _queue: asyncio.Queue | None = field(default=None, init=False)
    _consumers: list[Callable[[SyncEvent], None]] = field(default_factory=list, init=False)
    _stats: dict = field(default_factory=dict, init=False)

    def __post_init__(self):
        self._stats = {
            "received": 0,
            "applied": 0,
            "stale": 0,
            "orphaned": 0,
            "duplicate": 0,
            "dropped": 0,
            "errors": 0,
        }

    async def start(self) -> None:
        """Initialize the queue (call on startup)."""
        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        logger.info(f"Sync adapter started (max_queue={self.max_queue_size})")

    async def stop(self) -> None:
        """Stop the adapter and merge anything still queued."""
        if self._queue:
            while not self._queue.empty():
                try:
                    change = self._queue.get_nowait()
                except asyncio.QueueEmpty:
                    break
                await self._process(change)
        logger.info(f"Sync adapter stopped. Stats: {self._stats}")

    async def attach(self, backend: SubmissionBackend) -> None:
        """Subscribe to the backend's change feed."""
        await backend.subscribe(self.notify)

    def add_consumer(self, consumer: Callable[[SyncEvent], None]) -> None:
        """Register a callback for merged changes (UI notices, logging)."""
        self._consumers.append(consumer)

    def notify(self, change: ChangeNotification) -> bool:
        """
        Queue a change notification (non-blocking).

        Returns True if queued, False if dropped.
        """
        if self._queue is None:
            logger.warning("Sync adapter not started, dropping change")
            self._stats["dropped"] += 1
            return False

        try:
            self._queue.put_nowait(change)
            self._stats["received"] += 1
            return True
        except asyncio.QueueFull:
            if self.overflow_policy == "drop":
                self._stats["dropped"] += 1
                return False
            raise

    async def process_loop(self) -> None:
        """
        Main processing loop - runs continuously.

        Call this as a background task.
        """
        if self._queue is None:
            raise RuntimeError("Sync adapter not started")

        logger.info("Sync processing loop started")

        while True:
            try:
                change = await self._queue.get()
            except asyncio.CancelledError:
                logger.info("Sync processing loop cancelled")
                break
            await self._process(change)
            self._queue.task_done()

    async def _process(self, change: ChangeNotification) -> None:
        try:
            event = self.apply(change)
        except Exception as e:
            logger.error(f"Could not apply {change.kind.value} row {change.record_id!r}: {e}")
            self._stats["errors"] += 1
            return
        if event is not None:
            await self._deliver(event)

    def apply(self, change: ChangeNotification) -> SyncEvent | None:
        """
        Merge one notification into the store.

        Returns the resulting SyncEvent, or None if the change was ignored.

        Raises:
            KeyError, ValueError, TypeError: If the row cannot be parsed.
        """
        if change.kind == ChangeKind.SUBMISSION_UPDATED:
            return self._apply_submission(change)
        return self._apply_comment(change)

    def _apply_submission(self, change: ChangeNotification) -> SyncEvent | None:
        # Update rows never carry comments; the store keeps the local list.
        incoming = submission_from_row(change.record, comments=())
        previous = self.store.get(incoming.id)
        result = self.store.merge(incoming)

        if result == MergeResult.STALE:
            self._stats["stale"] += 1
            return None
        self._stats["applied"] += 1

        if previous is None:
            return SyncEvent(
                kind=change.kind,
                submission_id=incoming.id,
                title="New Submission",
                description=f"{incoming.name} was submitted",
            )
        if previous.status != incoming.status:
            return SyncEvent(
                kind=change.kind,
                submission_id=incoming.id,
                title="Status Updated",
                description=f"{incoming.name} is now {incoming.status.label}",
                status_changed=True,
            )
        return SyncEvent(
            kind=change.kind,
            submission_id=incoming.id,
            title="Submission Updated",
            description=f"{incoming.name} was updated",
        )

    def _apply_comment(self, change: ChangeNotification) -> SyncEvent | None:
        comment = comment_from_row(change.record)
        result = self.store.append_comment(comment)

        if result == MergeResult.ORPHANED:
            logger.debug(f"Dropping comment {comment.id} for unknown submission {comment.submission_id}")
            self._stats["orphaned"] += 1
            return None
        if result == MergeResult.DUPLICATE:
            self._stats["duplicate"] += 1
            return None

        self._stats["applied"] += 1
        return SyncEvent(
            kind=change.kind,
            submission_id=comment.submission_id,
            title="New Comment",
            description=f"{comment.author_name or 'Someone'} commented",
        )

    async def _deliver(self, event: SyncEvent) -> None:
        """Deliver event to all consumers."""
        for consumer in self._consumers:
            try:
                if asyncio.iscoroutinefunction(consumer):
                    await consumer(event)
                else:
                    consumer(event)
            except Exception as e:
                logger.error(f"Consumer error: {e}")
                self._stats["errors"] += 1

    @property
    def queue_depth(self) -> int:
        """Current queue depth."""
        return self._queue.qsize() if self._queue else 0

    @property
    def stats(self) -> dict:
        """Get adapter statistics."""
        return {
            **self._stats,
            "queue_depth": self.queue_depth,
            "consumers": len(self._consumers),
        }
