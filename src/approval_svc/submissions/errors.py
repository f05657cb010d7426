"""Workflow errors."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .status import WorkflowAction
    from .types import SubmissionStatus


class WorkflowError(Exception):
    """Base exception for workflow errors."""
    pass


class ValidationFailed(WorkflowError):
    """Raised when user input fails validation. Never reaches the backend."""

    def __init__(self, errors: list[str]):
        super().__init__(errors[0] if errors else "Validation failed")
        self.errors = errors


class SubmissionNotFound(WorkflowError):
    """Raised when a submission id is not in the store."""

    def __init__(self, submission_id: str):
        super().__init__(f"Submission not found: {submission_id}")
        self.submission_id = submission_id


class InvalidTransition(WorkflowError):
    """Raised when an action is not allowed from the current status."""

    def __init__(self, submission_id: str, action: "WorkflowAction", current: "SubmissionStatus"):
        super().__init__(
            f"Cannot {action.value.replace('_', ' ')} submission {submission_id} "
            f"(current status: {current.value})"
        )
        self.submission_id = submission_id
        self.action = action
        self.current = current


class AutoApprovalDenied(WorkflowError):
    """
    Raised when the auto-approval predicate evaluates negatively.

    Carries the failed checks and remediation guidance; the submission
    stays in the manual review queue.
    """

    def __init__(
        self,
        submission_id: str,
        failed_checks: list[str],
        suggested_actions: list[str],
    ):
        super().__init__(
            f"Auto-approval failed for {submission_id}: {', '.join(failed_checks)}"
        )
        self.submission_id = submission_id
        self.failed_checks = failed_checks
        self.suggested_actions = suggested_actions
