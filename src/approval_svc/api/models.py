"""Pydantic models for the Submissions API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# =============================================================================
# Request Body Models
# =============================================================================
# Text fields default to "" so that empty input reaches the workflow's own
# validation and comes back with its messages.

class DecisionBody(BaseModel):
    """Body for approve/reject actions."""
    comment: str = ""


class RevisionBody(BaseModel):
    """Body for requesting revisions."""
    comment: str = ""
    refer_to_team: str = ""


class CommentBody(BaseModel):
    """Body for adding a discussion comment."""
    message: str = ""
    phase: str | None = None


class EscalateBody(BaseModel):
    """Body for escalating a submission."""
    reason: str = ""
    escalate_to: str = ""


class BulkDecisionBody(BaseModel):
    """Body for bulk approve/reject."""
    submission_ids: list[str] = Field(min_length=1)
    comment: str = ""


# =============================================================================
# Response Models
# =============================================================================

class CommentModel(BaseModel):
    """A comment on a submission."""
    id: str
    submission_id: str
    author_id: str
    author_name: str = ""
    message: str
    timestamp: str | None = None
    type: str = "feedback"
    phase: str | None = None


class SubmissionModel(BaseModel):
    """Full representation of a submission."""
    id: str
    name: str
    kind: str
    type: str
    asset_type: str | None = None
    linked_asset_id: str | None = None
    category: str = ""
    description: str = ""
    producer: str = ""
    producer_id: str = ""

    # Workflow
    status: str
    status_label: str = ""
    priority: str
    risk_score: int = 0
    auto_approval_eligible: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    allowed_actions: list[str] = Field(default_factory=list)

    submitted_at: str | None = None
    last_updated: str | None = None
    reviewed_by: str | None = None
    reviewed_at: str | None = None
    version: int = 0

    comment_count: int = 0
    comments: list[CommentModel] = Field(default_factory=list)

    # Present for open submissions only
    sla: str | None = None
    time_elapsed: str | None = None


class SubmissionListResponse(BaseModel):
    """One page of the filtered, sorted queue."""
    submissions: list[SubmissionModel]
    page: int
    page_size: int
    total_items: int
    total_pages: int
    has_next: bool = False
    has_previous: bool = False
    active_filters: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)


class TimelineEventModel(BaseModel):
    id: str
    type: str
    actor: str
    message: str
    timestamp: str


class TimelineResponse(BaseModel):
    submission_id: str
    events: list[TimelineEventModel]


class ApproverSuggestionModel(BaseModel):
    name: str
    role: str
    reason: str
    confidence: str
    required: bool = False


class SuggestionsResponse(BaseModel):
    """Suggested approvers for one submission."""
    submission_id: str
    suggestions: list[ApproverSuggestionModel]
    required: list[str] = Field(default_factory=list)


class CommentListResponse(BaseModel):
    """Comments of one submission, optionally narrowed to a review phase."""
    submission_id: str
    phase: str = "all"
    comments: list[CommentModel]
    counts_by_phase: dict[str, int] = Field(default_factory=dict)


class BulkResultResponse(BaseModel):
    succeeded: list[str]
    failed: dict[str, str] = Field(default_factory=dict)


class ReviewerBacklogModel(BaseModel):
    approver: str
    count: int
    oldest_pending_days: int
    is_aging: bool = False
    is_overdue: bool = False


class SummaryResponse(BaseModel):
    """Dashboard summary over the whole collection."""
    counts: dict[str, int]
    pending: int = 0
    under_review: int = 0
    high_priority_pending: int = 0
    auto_eligible_pending: int = 0
    approval_rate: int = 0
    reviewers: list[ReviewerBacklogModel] = Field(default_factory=list)
