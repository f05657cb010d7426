"""Timeline reconstruction - a read-only chronological view of a submission."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from .serializer import parse_timestamp
from .types import CommentType, Submission, SubmissionStatus

# Synthesized "review started" offset when no start time was recorded
REVIEW_START_OFFSET = timedelta(hours=1)


class TimelineEventType(str, Enum):
    SUBMITTED = "submitted"
    REVIEW_STARTED = "review_started"
    COMMENT = "comment"
    APPROVED = "approved"


@dataclass(frozen=True, slots=True)
class TimelineEvent:
    id: str
    type: TimelineEventType
    actor: str
    message: str
    timestamp: datetime


def _review_started(submission: Submission) -> TimelineEvent | None:
    recorded = submission.metadata.get("review_started_at")
    if recorded:
        timestamp = parse_timestamp(recorded)
    elif submission.status == SubmissionStatus.UNDER_REVIEW and submission.submitted_at:
        timestamp = submission.submitted_at + REVIEW_START_OFFSET
        if submission.last_updated and submission.last_updated < timestamp:
            timestamp = submission.last_updated
    else:
        return None

    return TimelineEvent(
        id=f"{submission.id}-review",
        type=TimelineEventType.REVIEW_STARTED,
        actor=str(submission.metadata.get("reviewer") or "Data Steward"),
        message="Review started",
        timestamp=timestamp,
    )


def build_timeline(submission: Submission) -> tuple[TimelineEvent, ...]:
    """
    Merge the submission record and its comments into events.

    Sorted ascending by timestamp; ties keep construction order (submitted,
    review started, then comments in append order).
    """
    events: list[TimelineEvent] = []

    if submission.submitted_at is not None:
        events.append(TimelineEvent(
            id=f"{submission.id}-submitted",
            type=TimelineEventType.SUBMITTED,
            actor=submission.producer,
            message=f"Submitted {submission.name}",
            timestamp=submission.submitted_at,
        ))

    review = _review_started(submission)
    if review is not None:
        events.append(review)

    for comment in submission.comments:
        # Rows without created_at are placed at the last update
        timestamp = comment.timestamp or submission.last_updated or submission.submitted_at
        if timestamp is None:
            continue
        events.append(TimelineEvent(
            id=comment.id,
            type=(
                TimelineEventType.APPROVED
                if comment.type == CommentType.APPROVAL
                else TimelineEventType.COMMENT
            ),
            actor=comment.author_name or comment.author_id,
            message=comment.message,
            timestamp=timestamp,
        ))

    events.sort(key=lambda e: e.timestamp)
    return tuple(events)
