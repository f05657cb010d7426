"""Change notification types delivered by a backend's change feed."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ChangeKind(str, Enum):
    SUBMISSION_UPDATED = "submission_updated"
    COMMENT_INSERTED = "comment_inserted"


@dataclass(frozen=True, slots=True)
class ChangeNotification:
    """
    A row-level change pushed by the backend.

    ``record`` is the new row with its full field set; ``old_record`` is the
    previous row when the backend provides it.
    """
    kind: ChangeKind
    record: dict[str, Any]
    old_record: dict[str, Any] | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def record_id(self) -> str:
        return str(self.record.get("id", ""))

    @classmethod
    def submission_updated(
        cls,
        record: dict[str, Any],
        old_record: dict[str, Any] | None = None,
    ) -> ChangeNotification:
        return cls(kind=ChangeKind.SUBMISSION_UPDATED, record=record, old_record=old_record)

    @classmethod
    def comment_inserted(cls, record: dict[str, Any]) -> ChangeNotification:
        return cls(kind=ChangeKind.COMMENT_INSERTED, record=record)


@dataclass(frozen=True, slots=True)
class SyncEvent:
    """What a merged notification changed, for UI notices."""
    kind: ChangeKind
    submission_id: str
    title: str
    description: str
    status_changed: bool = False
