"""Validation layer - pydantic schemas for workflow and submission payloads."""

from __future__ import annotations

from typing import Any, Literal, TypeVar

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .errors import ValidationFailed
from .types import AssetType, EscalationTarget

MAX_COMMENT_LENGTH = 2000

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

M = TypeVar("M", bound=BaseModel)


class _Stripped(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


# =============================================================================
# Workflow inputs
# =============================================================================

class CommentInput(_Stripped):
    """A discussion message."""
    message: str = Field(min_length=1, max_length=MAX_COMMENT_LENGTH)
    phase: str | None = None


class DecisionInput(_Stripped):
    """Comment explaining an approve or reject decision."""
    comment: str = Field(min_length=1, max_length=MAX_COMMENT_LENGTH)


class RevisionInput(DecisionInput):
    """Comment plus the team the submission is referred back to."""
    refer_to_team: str = Field(min_length=1, max_length=100)


class EscalationInput(_Stripped):
    reason: str = Field(min_length=1, max_length=MAX_COMMENT_LENGTH)
    escalate_to: EscalationTarget


# =============================================================================
# Submission forms
# =============================================================================

class DataGovernance(_Stripped):
    has_personal_data: bool = False
    data_classification: Literal["public", "internal", "confidential"]
    retention_period: str = Field(min_length=1)


class TechnicalSpecs(_Stripped):
    update_frequency: str | None = None
    availability: str | None = None
    authentication: str | None = None


class AssetSubmissionForm(_Stripped):
    """Registration of a new data asset by a producer."""
    name: str = Field(min_length=1, max_length=100)
    type: AssetType
    description: str = Field(min_length=1, max_length=1000)
    category: str = Field(min_length=1)
    producer: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=255, pattern=_EMAIL_PATTERN)
    format: str | None = None
    size: str | None = None
    endpoint: AnyHttpUrl | None = None
    documentation: AnyHttpUrl | None = None
    data_governance: DataGovernance
    technical_specs: TechnicalSpecs = Field(default_factory=TechnicalSpecs)
    approvers: list[str] = Field(default_factory=list)

    @field_validator("endpoint", "documentation", mode="before")
    @classmethod
    def _empty_url_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class AccessRequestForm(_Stripped):
    """A consumer's request for access to an existing asset."""
    asset_id: str = Field(min_length=1)
    business_justification: str = Field(min_length=20)
    use_case: str = Field(min_length=20)
    expected_tps: str | None = None
    connected_app: str | None = None
    requested_access_level: Literal["read", "write", "admin"] = "read"


# =============================================================================
# Helpers
# =============================================================================

def _messages(error: ValidationError) -> list[str]:
    messages = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return messages


def parse(model: type[M], data: dict[str, Any]) -> M:
    """
    Validate ``data`` against ``model``.

    Raises:
        ValidationFailed: With one message per failing field.
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed(_messages(e)) from e


def validate_comment(message: str | None, phase: str | None = None) -> CommentInput:
    if not message or not message.strip():
        raise ValidationFailed(["Comment cannot be empty"])
    if len(message.strip()) > MAX_COMMENT_LENGTH:
        raise ValidationFailed([f"Comment must be less than {MAX_COMMENT_LENGTH} characters"])
    return parse(CommentInput, {"message": message, "phase": phase})


def validate_decision(comment: str | None) -> str:
    """Approve, reject and bulk decisions all require an explanatory comment."""
    if not comment or not comment.strip():
        raise ValidationFailed(["A comment is required for this decision"])
    return parse(DecisionInput, {"comment": comment}).comment


def validate_revision(comment: str | None, refer_to_team: str | None) -> RevisionInput:
    if not comment or not comment.strip():
        raise ValidationFailed(["Please explain what revisions are needed"])
    return parse(RevisionInput, {"comment": comment, "refer_to_team": refer_to_team or ""})


def validate_escalation(reason: str | None, escalate_to: str | None) -> EscalationInput:
    if not reason or not reason.strip() or not escalate_to:
        raise ValidationFailed(["Please provide a reason and select who to escalate to"])
    return parse(EscalationInput, {"reason": reason, "escalate_to": escalate_to})
