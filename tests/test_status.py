"""Tests for the approval status model."""

import pytest

from approval_svc.submissions.errors import InvalidTransition
from approval_svc.submissions.status import (
    WorkflowAction,
    allowed_actions,
    can_apply,
    changes_status,
    target_status,
    transition,
)
from approval_svc.submissions.types import SubmissionStatus


class TestTransitions:
    """Target statuses per action."""

    @pytest.mark.parametrize("action,expected", [
        (WorkflowAction.START_REVIEW, SubmissionStatus.UNDER_REVIEW),
        (WorkflowAction.APPROVE, SubmissionStatus.APPROVED),
        (WorkflowAction.REJECT, SubmissionStatus.REJECTED),
        (WorkflowAction.REQUEST_REVISION, SubmissionStatus.PENDING),
        (WorkflowAction.AUTO_APPROVE, SubmissionStatus.AUTO_APPROVED),
    ])
    def test_status_changing_actions(self, action, expected):
        assert transition(action, SubmissionStatus.PENDING) == expected

    @pytest.mark.parametrize("status", list(SubmissionStatus))
    def test_escalate_and_comment_keep_status(self, status):
        assert transition(WorkflowAction.ESCALATE, status) == status
        assert transition(WorkflowAction.COMMENT, status) == status

    def test_changes_status(self):
        assert changes_status(WorkflowAction.APPROVE)
        assert not changes_status(WorkflowAction.ESCALATE)
        assert not changes_status(WorkflowAction.COMMENT)

    def test_rejected_can_be_approved(self):
        """The model is permissive: a rejected submission can still be approved."""
        assert transition(WorkflowAction.APPROVE, SubmissionStatus.REJECTED) == SubmissionStatus.APPROVED

    def test_approved_can_be_sent_back(self):
        assert transition(WorkflowAction.REQUEST_REVISION, SubmissionStatus.APPROVED) == SubmissionStatus.PENDING

    def test_target_status_ignores_guards(self):
        assert target_status(WorkflowAction.APPROVE, SubmissionStatus.APPROVED) == SubmissionStatus.APPROVED


class TestGuards:
    """Re-deciding a decided submission is refused."""

    @pytest.mark.parametrize("action,status", [
        (WorkflowAction.APPROVE, SubmissionStatus.APPROVED),
        (WorkflowAction.APPROVE, SubmissionStatus.AUTO_APPROVED),
        (WorkflowAction.REJECT, SubmissionStatus.REJECTED),
        (WorkflowAction.AUTO_APPROVE, SubmissionStatus.APPROVED),
        (WorkflowAction.AUTO_APPROVE, SubmissionStatus.AUTO_APPROVED),
        (WorkflowAction.START_REVIEW, SubmissionStatus.UNDER_REVIEW),
    ])
    def test_blocked(self, action, status):
        assert not can_apply(action, status)
        with pytest.raises(InvalidTransition) as exc_info:
            transition(action, status, "S1")
        assert exc_info.value.submission_id == "S1"
        assert exc_info.value.current == status

    def test_error_message_names_action_and_status(self):
        with pytest.raises(InvalidTransition, match="approve submission S9.*approved"):
            transition(WorkflowAction.APPROVE, SubmissionStatus.APPROVED, "S9")

    def test_allowed_actions_from_pending(self):
        assert allowed_actions(SubmissionStatus.PENDING) == list(WorkflowAction)

    def test_allowed_actions_from_approved(self):
        actions = allowed_actions(SubmissionStatus.APPROVED)
        assert WorkflowAction.APPROVE not in actions
        assert WorkflowAction.AUTO_APPROVE not in actions
        assert WorkflowAction.REJECT in actions
        assert WorkflowAction.COMMENT in actions
