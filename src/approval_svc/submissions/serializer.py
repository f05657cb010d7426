"""Row codec - converts Submission and Comment to and from backend rows.

Rows use the backend's snake_case column names and ISO-8601 timestamps.
The same dictionaries are used for YAML seed files.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from .types import (
    AssetType,
    Comment,
    CommentType,
    Priority,
    Submission,
    SubmissionKind,
    SubmissionStatus,
)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (``Z`` suffix allowed). Naive values are UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# =============================================================================
# Comments
# =============================================================================

def comment_from_row(row: dict[str, Any]) -> Comment:
    return Comment(
        id=str(row["id"]),
        submission_id=str(row.get("submission_id") or row.get("asset_id") or ""),
        author_id=str(row.get("author_id", "")),
        author_name=row.get("author_name", ""),
        message=row.get("message", ""),
        timestamp=parse_timestamp(row.get("created_at") or row.get("timestamp")),
        type=CommentType(row.get("comment_type") or row.get("type") or "feedback"),
        phase=row.get("phase") or None,
    )


def comment_to_row(comment: Comment) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": comment.id,
        "submission_id": comment.submission_id,
        "author_id": comment.author_id,
        "author_name": comment.author_name,
        "message": comment.message,
        "comment_type": comment.type.value,
        "created_at": format_timestamp(comment.timestamp),
    }
    if comment.phase:
        row["phase"] = comment.phase
    return row


# =============================================================================
# Submissions
# =============================================================================

def submission_from_row(
    row: dict[str, Any],
    comments: tuple[Comment, ...] | None = None,
) -> Submission:
    """
    Build a Submission from a row.

    Embedded ``comments`` rows are used unless ``comments`` is given.

    Raises:
        ValueError: On a status, priority or type outside its enumeration.
    """
    if comments is None:
        comments = tuple(comment_from_row(c) for c in row.get("comments") or [])

    kind = SubmissionKind(row.get("kind") or SubmissionKind.ASSET.value)
    asset_type = row.get("asset_type") or row.get("type")
    submitted_at = parse_timestamp(row.get("submitted_at"))

    return Submission(
        id=str(row["id"]),
        name=row.get("name", ""),
        kind=kind,
        asset_type=AssetType(asset_type) if asset_type else None,
        linked_asset_id=row.get("linked_asset_id"),
        category=row.get("category") or "",
        description=row.get("description") or "",
        producer=row.get("producer") or "",
        producer_id=str(row.get("producer_id") or ""),
        status=SubmissionStatus(row.get("status") or SubmissionStatus.PENDING.value),
        priority=Priority(row.get("priority") or Priority.MEDIUM.value),
        risk_score=int(row.get("risk_score") or 0),
        auto_approval_eligible=bool(row.get("auto_approval_eligible", False)),
        metadata=dict(row.get("metadata") or {}),
        submitted_at=submitted_at,
        last_updated=parse_timestamp(row.get("updated_at")) or submitted_at,
        comments=comments,
        reviewed_by=row.get("reviewed_by"),
        reviewed_at=parse_timestamp(row.get("reviewed_at")),
        version=int(row.get("version") or 0),
    )


def submission_to_row(submission: Submission, include_comments: bool = False) -> dict[str, Any]:
    """Serialize a submission. Comments live in their own table unless embedded."""
    row: dict[str, Any] = {
        "id": submission.id,
        "name": submission.name,
        "kind": submission.kind.value,
        "asset_type": submission.asset_type.value if submission.asset_type else None,
        "category": submission.category,
        "description": submission.description,
        "producer": submission.producer,
        "producer_id": submission.producer_id,
        "status": submission.status.value,
        "priority": submission.priority.value,
        "risk_score": submission.risk_score,
        "auto_approval_eligible": submission.auto_approval_eligible,
        "metadata": dict(submission.metadata),
        "submitted_at": format_timestamp(submission.submitted_at),
        "updated_at": format_timestamp(submission.last_updated),
        "version": submission.version,
    }

    if submission.linked_asset_id:
        row["linked_asset_id"] = submission.linked_asset_id
    if submission.reviewed_by:
        row["reviewed_by"] = submission.reviewed_by
    if submission.reviewed_at:
        row["reviewed_at"] = format_timestamp(submission.reviewed_at)
    if include_comments and submission.comments:
        row["comments"] = [comment_to_row(c) for c in submission.comments]

    return row


def mutable_fields(submission: Submission) -> dict[str, Any]:
    """Columns a workflow mutation may change (the PATCH body)."""
    row = submission_to_row(submission)
    return {
        key: row.get(key)
        for key in (
            "status",
            "priority",
            "auto_approval_eligible",
            "metadata",
            "updated_at",
            "reviewed_by",
            "reviewed_at",
            "version",
        )
    }
