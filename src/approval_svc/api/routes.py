"""FastAPI routes for the Submission Review & Approval workflow."""

from __future__ import annotations

import logging
from typing import Awaitable, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ..backend.base import BackendError, BackendTimeout
from ..identity import Actor, ActorExtractor
from ..service import WorkflowService
from ..submissions.errors import (
    AutoApprovalDenied,
    InvalidTransition,
    SubmissionNotFound,
    ValidationFailed,
)
from ..submissions.autoapproval import suggest_approvers
from ..submissions.mutations import utcnow
from ..submissions.query import (
    ALL,
    PAGE_SIZE,
    FilterState,
    QueryState,
    SortKey,
    SortState,
    comment_counts_by_phase,
    filter_comments,
)
from ..submissions.serializer import format_timestamp
from ..submissions.status import allowed_actions
from ..submissions.store import SubmissionStore
from ..submissions.summary import (
    DEFAULT_SLA_DAYS,
    approval_rate,
    dashboard_stats,
    pending_by_reviewer,
    sla_urgency,
    status_counts,
    time_elapsed,
)
from ..submissions.timeline import build_timeline
from ..submissions.types import Comment, Submission
from .models import (
    ApproverSuggestionModel,
    BulkDecisionBody,
    BulkResultResponse,
    CommentBody,
    CommentListResponse,
    CommentModel,
    DecisionBody,
    EscalateBody,
    ReviewerBacklogModel,
    RevisionBody,
    SubmissionListResponse,
    SubmissionModel,
    SuggestionsResponse,
    SummaryResponse,
    TimelineEventModel,
    TimelineResponse,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Create router
router = APIRouter(prefix="/submissions", tags=["Submissions"])

# Configuration - set during app startup
_service: WorkflowService | None = None
_store: SubmissionStore | None = None
_extractor: ActorExtractor = ActorExtractor()
_page_size: int = PAGE_SIZE
_default_sla_days: int = DEFAULT_SLA_DAYS


def configure(
    service: WorkflowService,
    extractor: ActorExtractor | None = None,
    page_size: int = PAGE_SIZE,
    default_sla_days: int = DEFAULT_SLA_DAYS,
) -> None:
    """Configure the submission routes with the workflow service."""
    global _service, _store, _extractor, _page_size, _default_sla_days
    _service = service
    _store = service.store
    _extractor = extractor or ActorExtractor()
    _page_size = page_size
    _default_sla_days = default_sla_days


def _get_service() -> WorkflowService:
    """Get the service, raising if not configured."""
    if _service is None:
        raise HTTPException(status_code=503, detail="Submission module not initialized")
    return _service


def _get_store() -> SubmissionStore:
    if _store is None:
        raise HTTPException(status_code=503, detail="Submission module not initialized")
    return _store


def _actor(request: Request) -> Actor:
    return _extractor.extract(request)


async def _execute(awaitable: Awaitable[T]) -> T:
    """Await a workflow call, translating its errors to HTTP responses."""
    try:
        return await awaitable
    except ValidationFailed as e:
        raise HTTPException(status_code=422, detail={"message": str(e), "errors": e.errors})
    except SubmissionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except AutoApprovalDenied as e:
        raise HTTPException(
            status_code=409,
            detail={
                "message": str(e),
                "failed_checks": e.failed_checks,
                "suggested_actions": e.suggested_actions,
            },
        )
    except BackendTimeout as e:
        raise HTTPException(status_code=504, detail=str(e))
    except BackendError as e:
        raise HTTPException(status_code=502, detail=str(e))


def _comment_to_model(comment: Comment) -> CommentModel:
    return CommentModel(
        id=comment.id,
        submission_id=comment.submission_id,
        author_id=comment.author_id,
        author_name=comment.author_name,
        message=comment.message,
        timestamp=format_timestamp(comment.timestamp),
        type=comment.type.value,
        phase=comment.phase,
    )


def _submission_to_model(submission: Submission, include_comments: bool = True) -> SubmissionModel:
    """Convert a Submission to its Pydantic response model."""
    now = utcnow()
    urgency = sla_urgency(submission, now, _default_sla_days)
    return SubmissionModel(
        id=submission.id,
        name=submission.name,
        kind=submission.kind.value,
        type=submission.search_type,
        asset_type=submission.asset_type.value if submission.asset_type else None,
        linked_asset_id=submission.linked_asset_id,
        category=submission.category,
        description=submission.description,
        producer=submission.producer,
        producer_id=submission.producer_id,
        status=submission.status.value,
        status_label=submission.status.label,
        priority=submission.priority.value,
        risk_score=submission.risk_score,
        auto_approval_eligible=submission.auto_approval_eligible,
        metadata=dict(submission.metadata),
        allowed_actions=[a.value for a in allowed_actions(submission.status)],
        submitted_at=format_timestamp(submission.submitted_at),
        last_updated=format_timestamp(submission.last_updated),
        reviewed_by=submission.reviewed_by,
        reviewed_at=format_timestamp(submission.reviewed_at),
        version=submission.version,
        comment_count=submission.comment_count,
        comments=[_comment_to_model(c) for c in submission.comments] if include_comments else [],
        sla=urgency.value if urgency else None,
        time_elapsed=time_elapsed(submission, now) if submission.is_open else None,
    )


# =============================================================================
# List / Summary
# =============================================================================

@router.get("", response_model=SubmissionListResponse)
async def list_submissions(
    search: str = "",
    status: str = ALL,
    asset_type: str = Query(ALL, alias="type"),
    sub_type: str = ALL,
    reviewer: str = ALL,
    phase: str = ALL,
    action: str = ALL,
    classification: str = ALL,
    producer_id: str | None = None,
    sort: SortKey = SortKey.SUBMITTED_AT,
    direction: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1, le=100),
):
    """
    List submissions: filter, then sort, then paginate.

    ``status`` accepts a status value, ``open`` (pending or under review) or
    ``all``. Out-of-range pages are clamped to the last page.
    """
    store = _get_store()

    submissions = store.snapshot()
    if producer_id:
        submissions = [s for s in submissions if s.producer_id == producer_id]

    state = QueryState(
        filters=FilterState(
            search=search,
            status=status,
            asset_type=asset_type,
            sub_type=sub_type,
            reviewer=reviewer,
            phase=phase,
            action=action,
            classification=classification,
        ),
        sort=SortState(key=sort, descending=direction == "desc"),
        page=page,
        page_size=page_size or _page_size,
    )
    result = state.evaluate(submissions)

    return SubmissionListResponse(
        submissions=[_submission_to_model(s, include_comments=False) for s in result.items],
        page=result.page,
        page_size=result.page_size,
        total_items=result.total_items,
        total_pages=result.total_pages,
        has_next=result.has_next,
        has_previous=result.has_previous,
        active_filters=state.filters.active_filter_count,
        by_status=status_counts(submissions),
    )


@router.get("/summary", response_model=SummaryResponse)
async def summary(producer_id: str | None = None):
    """Status counts, queue statistics and per-reviewer backlog."""
    store = _get_store()

    submissions = store.snapshot()
    if producer_id:
        submissions = [s for s in submissions if s.producer_id == producer_id]

    stats = dashboard_stats(submissions)
    backlog = pending_by_reviewer(submissions, utcnow())
    return SummaryResponse(
        counts=status_counts(submissions),
        pending=stats.pending,
        under_review=stats.under_review,
        high_priority_pending=stats.high_priority_pending,
        auto_eligible_pending=stats.auto_eligible_pending,
        approval_rate=approval_rate(submissions),
        reviewers=[
            ReviewerBacklogModel(
                approver=b.approver,
                count=b.count,
                oldest_pending_days=b.oldest_pending_days,
                is_aging=b.is_aging,
                is_overdue=b.is_overdue,
            )
            for b in backlog
        ],
    )


# =============================================================================
# Bulk
# =============================================================================

@router.post("/bulk/approve", response_model=BulkResultResponse)
async def bulk_approve(body: BulkDecisionBody, actor: Actor = Depends(_actor)):
    """Approve many submissions with one comment. Best-effort per item."""
    service = _get_service()
    result = await _execute(service.bulk_approve(body.submission_ids, body.comment, actor))
    return BulkResultResponse(**result.to_dict())


@router.post("/bulk/reject", response_model=BulkResultResponse)
async def bulk_reject(body: BulkDecisionBody, actor: Actor = Depends(_actor)):
    """Reject many submissions with one comment. Best-effort per item."""
    service = _get_service()
    result = await _execute(service.bulk_reject(body.submission_ids, body.comment, actor))
    return BulkResultResponse(**result.to_dict())


# =============================================================================
# Submit
# =============================================================================

@router.post("/assets", response_model=SubmissionModel, status_code=201)
async def submit_asset(body: dict, actor: Actor = Depends(_actor)):
    """Submit a new data asset for review."""
    service = _get_service()
    submission = await _execute(service.submit_asset(body, actor))
    return _submission_to_model(submission)


@router.post("/access-requests", response_model=SubmissionModel, status_code=201)
async def submit_access_request(body: dict, actor: Actor = Depends(_actor)):
    """Request access to an existing asset."""
    service = _get_service()
    submission = await _execute(service.submit_access_request(body, actor))
    return _submission_to_model(submission)


# =============================================================================
# Get / Timeline / Comments
# =============================================================================

@router.get("/{submission_id}", response_model=SubmissionModel)
async def get_submission(submission_id: str):
    """Get a single submission with its comments."""
    store = _get_store()

    submission = store.get(submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail=f"Submission not found: {submission_id}")

    return _submission_to_model(submission)


@router.get("/{submission_id}/timeline", response_model=TimelineResponse)
async def get_timeline(submission_id: str):
    """Chronological history of a submission."""
    store = _get_store()

    submission = store.get(submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail=f"Submission not found: {submission_id}")

    return TimelineResponse(
        submission_id=submission_id,
        events=[
            TimelineEventModel(
                id=e.id,
                type=e.type.value,
                actor=e.actor,
                message=e.message,
                timestamp=format_timestamp(e.timestamp),
            )
            for e in build_timeline(submission)
        ],
    )


@router.get("/{submission_id}/suggestions", response_model=SuggestionsResponse)
async def get_suggestions(submission_id: str):
    """Approvers to involve, from asset type, category and classification."""
    store = _get_store()

    submission = store.get(submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail=f"Submission not found: {submission_id}")

    suggestions = suggest_approvers(submission)
    return SuggestionsResponse(
        submission_id=submission_id,
        suggestions=[
            ApproverSuggestionModel(
                name=s.name,
                role=s.role,
                reason=s.reason,
                confidence=s.confidence,
                required=s.required,
            )
            for s in suggestions
        ],
        required=[s.name for s in suggestions if s.required],
    )


@router.get("/{submission_id}/comments", response_model=CommentListResponse)
async def get_comments(submission_id: str, phase: str = ALL):
    """Comments of a submission, optionally for one review phase."""
    store = _get_store()

    submission = store.get(submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail=f"Submission not found: {submission_id}")

    return CommentListResponse(
        submission_id=submission_id,
        phase=phase,
        comments=[_comment_to_model(c) for c in filter_comments(submission, phase)],
        counts_by_phase=comment_counts_by_phase(submission),
    )


# =============================================================================
# Workflow actions
# =============================================================================

@router.post("/{submission_id}/approve", response_model=SubmissionModel)
async def approve_submission(submission_id: str, body: DecisionBody, actor: Actor = Depends(_actor)):
    """Approve a submission. A comment is required."""
    service = _get_service()
    updated = await _execute(service.approve(submission_id, body.comment, actor))
    return _submission_to_model(updated)


@router.post("/{submission_id}/reject", response_model=SubmissionModel)
async def reject_submission(submission_id: str, body: DecisionBody, actor: Actor = Depends(_actor)):
    """Reject a submission with feedback. A comment is required."""
    service = _get_service()
    updated = await _execute(service.reject(submission_id, body.comment, actor))
    return _submission_to_model(updated)


@router.post("/{submission_id}/request-revision", response_model=SubmissionModel)
async def request_revision(submission_id: str, body: RevisionBody, actor: Actor = Depends(_actor)):
    """Send a submission back to its producer, referring them to a team."""
    service = _get_service()
    updated = await _execute(
        service.request_revision(submission_id, body.comment, body.refer_to_team, actor)
    )
    return _submission_to_model(updated)


@router.post("/{submission_id}/comments", response_model=SubmissionModel)
async def add_comment(submission_id: str, body: CommentBody, actor: Actor = Depends(_actor)):
    """Add a discussion comment. Status is unchanged."""
    service = _get_service()
    updated = await _execute(service.add_comment(submission_id, body.message, actor, phase=body.phase))
    return _submission_to_model(updated)


@router.post("/{submission_id}/escalate", response_model=SubmissionModel)
async def escalate_submission(submission_id: str, body: EscalateBody, actor: Actor = Depends(_actor)):
    """Escalate to a more senior approver. Status is unchanged."""
    service = _get_service()
    updated = await _execute(service.escalate(submission_id, body.reason, body.escalate_to, actor))
    return _submission_to_model(updated)


@router.post("/{submission_id}/start-review", response_model=SubmissionModel)
async def start_review(submission_id: str, actor: Actor = Depends(_actor)):
    """Move a submission into review and claim it."""
    service = _get_service()
    updated = await _execute(service.start_review(submission_id, actor))
    return _submission_to_model(updated)


@router.post("/{submission_id}/retry-auto-approval", response_model=SubmissionModel)
async def retry_auto_approval(submission_id: str):
    """
    Re-evaluate auto-approval.

    Returns 409 with the failed checks and suggested actions when the
    submission is still not eligible.
    """
    service = _get_service()
    updated = await _execute(service.retry_auto_approval(submission_id))
    return _submission_to_model(updated)


@router.post("/{submission_id}/route", response_model=SubmissionModel)
async def route_submission(submission_id: str):
    """Apply matching rules' routing actions (reviewer, tags, priority)."""
    service = _get_service()
    updated = await _execute(service.route(submission_id))
    return _submission_to_model(updated)
