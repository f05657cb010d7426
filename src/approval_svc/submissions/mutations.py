"""Workflow mutations - pure functions from a Submission to its next state.

Every mutation validates its input first, then returns a new Submission with
``last_updated`` advanced (never moved backwards) and ``version`` bumped.
Comment-appending mutations return the appended Comment alongside, so callers
can persist it.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Iterable, Sequence

from ..identity import Actor, ActorRole
from .autoapproval import EligibilityResult, RuleAction, RuleActionType
from .errors import SubmissionNotFound, ValidationFailed
from .status import WorkflowAction, transition
from .types import (
    Comment,
    CommentType,
    EscalationTarget,
    Priority,
    Submission,
)
from .validation import (
    validate_comment,
    validate_decision,
    validate_escalation,
    validate_revision,
)

Mutation = tuple[Submission, Comment | None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_comment_id() -> str:
    return str(uuid.uuid4())


def _touch(submission: Submission, now: datetime | None, **changes) -> Submission:
    """Replace fields, advance ``last_updated`` and bump ``version``."""
    now = now or utcnow()
    floor = submission.last_updated or submission.submitted_at
    if floor is not None and now < floor:
        now = floor
    return replace(
        submission,
        last_updated=now,
        version=submission.version + 1,
        **changes,
    )


def _comment(
    submission: Submission,
    actor: Actor,
    message: str,
    comment_type: CommentType,
    now: datetime,
    phase: str | None = None,
) -> Comment:
    return Comment(
        id=new_comment_id(),
        submission_id=submission.id,
        author_id=actor.id,
        author_name=actor.name,
        message=message,
        timestamp=now,
        type=comment_type,
        phase=phase,
    )


def _append(submission: Submission, comment: Comment, now: datetime, **changes) -> Submission:
    return _touch(submission, now, comments=submission.comments + (comment,), **changes)


# =============================================================================
# Decisions
# =============================================================================

def approve(
    submission: Submission,
    comment: str,
    actor: Actor,
    now: datetime | None = None,
) -> Mutation:
    """Approve with an explanatory comment. Refused if already approved."""
    text = validate_decision(comment)
    status = transition(WorkflowAction.APPROVE, submission.status, submission.id)
    now = now or utcnow()
    note = _comment(submission, actor, text, CommentType.APPROVAL, now)
    updated = _append(
        submission, note, now,
        status=status,
        reviewed_by=actor.name,
        reviewed_at=now,
    )
    return updated, note


def reject(
    submission: Submission,
    comment: str,
    actor: Actor,
    now: datetime | None = None,
) -> Mutation:
    """Reject with feedback for the producer. Refused if already rejected."""
    text = validate_decision(comment)
    status = transition(WorkflowAction.REJECT, submission.status, submission.id)
    now = now or utcnow()
    note = _comment(submission, actor, text, CommentType.FEEDBACK, now)
    updated = _append(
        submission, note, now,
        status=status,
        reviewed_by=actor.name,
        reviewed_at=now,
    )
    return updated, note


def request_revision(
    submission: Submission,
    comment: str,
    refer_to_team: str,
    actor: Actor,
    now: datetime | None = None,
) -> Mutation:
    """Send back to pending, noting which team the producer should work with."""
    revision = validate_revision(comment, refer_to_team)
    status = transition(WorkflowAction.REQUEST_REVISION, submission.status, submission.id)
    now = now or utcnow()
    note = _comment(submission, actor, revision.comment, CommentType.REVISION_REQUEST, now)
    metadata = {
        **submission.metadata,
        "current_step": f"Referred to {revision.refer_to_team} for revision",
    }
    updated = _append(submission, note, now, status=status, metadata=metadata)
    return updated, note


def start_review(
    submission: Submission,
    actor: Actor,
    now: datetime | None = None,
) -> Submission:
    """Move into review and claim the submission if no reviewer is assigned."""
    status = transition(WorkflowAction.START_REVIEW, submission.status, submission.id)
    now = now or utcnow()
    metadata = dict(submission.metadata)
    metadata.setdefault("reviewer", actor.name)
    metadata["review_started_at"] = now.isoformat()
    return _touch(submission, now, status=status, metadata=metadata)


# =============================================================================
# Discussion
# =============================================================================

def add_comment(
    submission: Submission,
    message: str,
    actor: Actor,
    phase: str | None = None,
    now: datetime | None = None,
) -> Mutation:
    """
    Append a discussion comment. Status is unchanged.

    Producers and consumers ask questions; reviewers give feedback.
    """
    data = validate_comment(message, phase)
    comment_type = (
        CommentType.QUESTION
        if actor.role in (ActorRole.PRODUCER, ActorRole.CONSUMER)
        else CommentType.FEEDBACK
    )
    now = now or utcnow()
    note = _comment(submission, actor, data.message, comment_type, now, phase=data.phase or None)
    return _append(submission, note, now), note


def escalate(
    submission: Submission,
    reason: str,
    escalate_to: str | EscalationTarget,
    actor: Actor,
    now: datetime | None = None,
) -> Mutation:
    """Record an escalation as a system comment. Status is unchanged."""
    target = escalate_to.value if isinstance(escalate_to, EscalationTarget) else escalate_to
    data = validate_escalation(reason, target)
    now = now or utcnow()
    message = f"Escalated to {data.escalate_to.label} by {actor.name}: {data.reason}"
    note = _comment(submission, Actor.system(), message, CommentType.FEEDBACK, now)
    return _append(submission, note, now), note


# =============================================================================
# Automation
# =============================================================================

def assess_eligibility(
    submission: Submission,
    result: EligibilityResult,
    now: datetime | None = None,
) -> Submission:
    """Set the advisory auto-approval flag. No-op if it already agrees."""
    if submission.auto_approval_eligible == result.eligible:
        return submission
    return _touch(submission, now, auto_approval_eligible=result.eligible)


def auto_approve(
    submission: Submission,
    result: EligibilityResult,
    now: datetime | None = None,
) -> Mutation:
    """Approve on behalf of the system after a positive eligibility decision."""
    if not result.eligible:
        raise ValidationFailed(list(result.failed_checks) or ["Submission is not eligible"])
    status = transition(WorkflowAction.AUTO_APPROVE, submission.status, submission.id)
    now = now or utcnow()
    rule_name = result.matched_rule.name if result.matched_rule else "policy"
    note = _comment(
        submission, Actor.system(),
        f"Automatically approved by rule '{rule_name}'",
        CommentType.APPROVAL, now,
    )
    system = Actor.system()
    updated = _append(
        submission, note, now,
        status=status,
        auto_approval_eligible=True,
        reviewed_by=system.name,
        reviewed_at=now,
    )
    return updated, note


def apply_routing(
    submission: Submission,
    actions: Sequence[RuleAction],
    now: datetime | None = None,
) -> Submission:
    """Apply assign_reviewer / add_tag / set_priority rule actions."""
    metadata = dict(submission.metadata)
    priority = submission.priority
    for action in actions:
        if action.type == RuleActionType.ASSIGN_REVIEWER:
            metadata["reviewer"] = action.value
        elif action.type == RuleActionType.ADD_TAG:
            tags = list(metadata.get("tags", []))
            if action.value not in tags:
                tags.append(action.value)
            metadata["tags"] = tags
        elif action.type == RuleActionType.SET_PRIORITY:
            priority = Priority(action.value)

    if metadata == submission.metadata and priority == submission.priority:
        return submission
    return _touch(submission, now, metadata=metadata, priority=priority)


# =============================================================================
# Collection helpers
# =============================================================================

def replace_in(collection: Iterable[Submission], submission: Submission) -> list[Submission]:
    """New collection with the same-id entry swapped for ``submission``."""
    return [submission if s.id == submission.id else s for s in collection]


def apply_to(
    collection: Iterable[Submission],
    submission_id: str,
    fn: Callable[[Submission], Submission],
) -> list[Submission]:
    """
    Apply ``fn`` to one submission of an immutable collection.

    Raises:
        SubmissionNotFound: If no submission has ``submission_id``.
    """
    items = list(collection)
    for i, submission in enumerate(items):
        if submission.id == submission_id:
            items[i] = fn(submission)
            return items
    raise SubmissionNotFound(submission_id)
