"""Status model - the permissive approval state machine."""

from __future__ import annotations

from enum import Enum

from .errors import InvalidTransition
from .types import SubmissionStatus


class WorkflowAction(str, Enum):
    """Actions a reviewer or the system can take on a submission."""
    START_REVIEW = "start_review"
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_REVISION = "request_revision"
    AUTO_APPROVE = "auto_approve"
    ESCALATE = "escalate"
    COMMENT = "comment"


# Target status per action. Actions not listed leave the status unchanged.
_TARGETS: dict[WorkflowAction, SubmissionStatus] = {
    WorkflowAction.START_REVIEW: SubmissionStatus.UNDER_REVIEW,
    WorkflowAction.APPROVE: SubmissionStatus.APPROVED,
    WorkflowAction.REJECT: SubmissionStatus.REJECTED,
    WorkflowAction.REQUEST_REVISION: SubmissionStatus.PENDING,
    WorkflowAction.AUTO_APPROVE: SubmissionStatus.AUTO_APPROVED,
}

# Everything is allowed except these.
_BLOCKED: dict[WorkflowAction, frozenset[SubmissionStatus]] = {
    WorkflowAction.APPROVE: frozenset({SubmissionStatus.APPROVED, SubmissionStatus.AUTO_APPROVED}),
    WorkflowAction.REJECT: frozenset({SubmissionStatus.REJECTED}),
    WorkflowAction.AUTO_APPROVE: frozenset({SubmissionStatus.APPROVED, SubmissionStatus.AUTO_APPROVED}),
    WorkflowAction.START_REVIEW: frozenset({SubmissionStatus.UNDER_REVIEW}),
}


def target_status(action: WorkflowAction, current: SubmissionStatus) -> SubmissionStatus:
    """Status a submission ends up in after ``action``."""
    return _TARGETS.get(action, current)


def changes_status(action: WorkflowAction) -> bool:
    return action in _TARGETS


def can_apply(action: WorkflowAction, current: SubmissionStatus) -> bool:
    """Check whether ``action`` is allowed from ``current``."""
    return current not in _BLOCKED.get(action, frozenset())


def allowed_actions(current: SubmissionStatus) -> list[WorkflowAction]:
    """All actions allowed from ``current``, in declaration order."""
    return [a for a in WorkflowAction if can_apply(a, current)]


def transition(
    action: WorkflowAction,
    current: SubmissionStatus,
    submission_id: str = "",
) -> SubmissionStatus:
    """
    Apply ``action`` to ``current``.

    Returns:
        The new status.

    Raises:
        InvalidTransition: If the action is blocked from the current status.
    """
    if not can_apply(action, current):
        raise InvalidTransition(submission_id, action, current)
    return target_status(action, current)
