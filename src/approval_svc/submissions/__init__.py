"""
Submission Review & Approval Workflow

Data assets submitted by producers and access requests raised by consumers
move through review until an approver (or an auto-approval rule) decides.
This package holds the state model: types, the status machine, pure
workflow mutations, queries, the timeline and summary views.
"""

from .types import (
    AssetType,
    Comment,
    CommentType,
    EscalationTarget,
    Priority,
    Submission,
    SubmissionKind,
    SubmissionStatus,
)
from .errors import (
    AutoApprovalDenied,
    InvalidTransition,
    SubmissionNotFound,
    ValidationFailed,
    WorkflowError,
)
from .store import MergeResult, SubmissionStore
from .loader import load_submissions_from_yaml, save_submissions_to_yaml

__all__ = [
    "AssetType",
    "Comment",
    "CommentType",
    "EscalationTarget",
    "Priority",
    "Submission",
    "SubmissionKind",
    "SubmissionStatus",
    "AutoApprovalDenied",
    "InvalidTransition",
    "SubmissionNotFound",
    "ValidationFailed",
    "WorkflowError",
    "MergeResult",
    "SubmissionStore",
    "load_submissions_from_yaml",
    "save_submissions_to_yaml",
]
