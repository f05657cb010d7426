"""Submission workflow types - domain types for asset and access request review."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SubmissionStatus(str, Enum):
    """Status of a submission through the approval workflow."""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    AUTO_APPROVED = "auto_approved"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    SubmissionStatus.PENDING: "Pending Review",
    SubmissionStatus.UNDER_REVIEW: "Under Review",
    SubmissionStatus.APPROVED: "Approved",
    SubmissionStatus.REJECTED: "Rejected",
    SubmissionStatus.AUTO_APPROVED: "Auto-Approved",
}

OPEN_STATUSES = frozenset({SubmissionStatus.PENDING, SubmissionStatus.UNDER_REVIEW})
TERMINAL_STATUSES = frozenset({
    SubmissionStatus.APPROVED,
    SubmissionStatus.REJECTED,
    SubmissionStatus.AUTO_APPROVED,
})


class Priority(str, Enum):
    """Advisory review priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}


class AssetType(str, Enum):
    """Kind of data asset being registered."""
    DATASET = "dataset"
    API = "api"
    STREAM = "stream"
    MODEL = "model"


class SubmissionKind(str, Enum):
    """Whether a submission registers an asset or requests access to one."""
    ASSET = "asset"
    ACCESS_REQUEST = "access_request"


class CommentType(str, Enum):
    """Type of a review comment."""
    FEEDBACK = "feedback"
    QUESTION = "question"
    APPROVAL = "approval"
    REVISION_REQUEST = "revision_request"


class EscalationTarget(str, Enum):
    """Who a submission can be escalated to, lowest authority first."""
    SENIOR_REVIEWER = "senior-reviewer"
    MANAGER = "manager"
    DIRECTOR = "director"
    VP = "vp"

    @property
    def label(self) -> str:
        return _ESCALATION_LABELS[self]


_ESCALATION_LABELS = {
    EscalationTarget.SENIOR_REVIEWER: "Senior Data Steward",
    EscalationTarget.MANAGER: "Approval Manager",
    EscalationTarget.DIRECTOR: "Data Governance Director",
    EscalationTarget.VP: "VP Data Governance",
}


@dataclass(frozen=True, slots=True)
class Comment:
    """A comment on a submission. Owned by exactly one submission."""
    id: str
    submission_id: str
    author_id: str
    author_name: str
    message: str
    timestamp: datetime
    type: CommentType = CommentType.FEEDBACK
    phase: str | None = None    # schema | compliance | technical | ...


@dataclass(frozen=True, slots=True)
class Submission:
    """
    A producer-submitted asset or a consumer access request awaiting a decision.

    Instances are immutable: every workflow mutation produces a new Submission
    with a higher ``version`` which replaces the old one in the store as a whole.
    """
    id: str
    name: str
    kind: SubmissionKind = SubmissionKind.ASSET
    asset_type: AssetType | None = AssetType.DATASET
    linked_asset_id: str | None = None
    category: str = ""
    description: str = ""

    # Producer (or requester, for access requests)
    producer: str = ""
    producer_id: str = ""

    # Workflow state
    status: SubmissionStatus = SubmissionStatus.PENDING
    priority: Priority = Priority.MEDIUM
    risk_score: int = 0
    auto_approval_eligible: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    # Timestamps
    submitted_at: datetime | None = None
    last_updated: datetime | None = None

    # Review
    comments: tuple[Comment, ...] = ()
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None

    # Monotonic per-submission revision, bumped on every mutation
    version: int = 0

    @property
    def comment_count(self) -> int:
        return len(self.comments)

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def search_type(self) -> str:
        """Type tag used for searching and filtering."""
        if self.kind == SubmissionKind.ACCESS_REQUEST or self.asset_type is None:
            return SubmissionKind.ACCESS_REQUEST.value
        return self.asset_type.value

    def has_comment(self, comment_id: str) -> bool:
        return any(c.id == comment_id for c in self.comments)
