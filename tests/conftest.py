"""Shared test fixtures for the approval service tests."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Allow running from a source checkout without installing
_SRC = Path(__file__).parent.parent / "src"
if _SRC.exists() and str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

from approval_svc.backend import InMemoryBackend
from approval_svc.identity import Actor, ActorRole
from approval_svc.service import WorkflowService
from approval_svc.submissions.autoapproval import (
    AutoApprovalPolicy,
    AutoApprovalRule,
    ConditionOperator,
    RuleAction,
    RuleActionType,
    RuleCondition,
)
from approval_svc.submissions.store import SubmissionStore
from approval_svc.submissions.types import (
    AssetType,
    Comment,
    CommentType,
    Priority,
    Submission,
    SubmissionKind,
    SubmissionStatus,
)


NOW = datetime(2024, 1, 20, 12, 0, tzinfo=timezone.utc)


def make_submission(id: str = "S1", **overrides) -> Submission:
    """Submission with sensible defaults; any field can be overridden."""
    defaults = dict(
        name=f"Asset {id}",
        kind=SubmissionKind.ASSET,
        asset_type=AssetType.DATASET,
        category="Finance",
        description="Test asset",
        producer="Data Team",
        producer_id="u-producer",
        status=SubmissionStatus.PENDING,
        priority=Priority.MEDIUM,
        submitted_at=NOW - timedelta(days=2),
        last_updated=NOW - timedelta(days=2),
        version=1,
    )
    defaults.update(overrides)
    return Submission(id=id, **defaults)


def make_comment(id: str = "c1", submission_id: str = "S1", **overrides) -> Comment:
    defaults = dict(
        author_id="u-reviewer",
        author_name="Sarah Chen",
        message="Looks good",
        timestamp=NOW - timedelta(days=1),
        type=CommentType.FEEDBACK,
    )
    defaults.update(overrides)
    return Comment(id=id, submission_id=submission_id, **defaults)


# =============================================================================
# Actors
# =============================================================================

@pytest.fixture
def steward() -> Actor:
    return Actor(id="u-sarah", display_name="Sarah Chen", role=ActorRole.STEWARD)


@pytest.fixture
def producer() -> Actor:
    return Actor(id="u-producer", display_name="Pat Producer", role=ActorRole.PRODUCER)


# =============================================================================
# Submissions
# =============================================================================

@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def submissions() -> list[Submission]:
    """A small mixed queue, in submission order."""
    return [
        make_submission(
            "S1",
            name="Customer Transactions",
            priority=Priority.HIGH,
            submitted_at=NOW - timedelta(days=6),
            last_updated=NOW - timedelta(days=6),
            metadata={"reviewer": "Sarah Chen", "classification": "confidential", "phase": "compliance"},
        ),
        make_submission(
            "S2",
            name="Product Catalog API",
            asset_type=AssetType.API,
            status=SubmissionStatus.UNDER_REVIEW,
            priority=Priority.MEDIUM,
            submitted_at=NOW - timedelta(days=4),
            last_updated=NOW - timedelta(days=3),
            metadata={"reviewer": "Mark Li", "classification": "internal", "phase": "technical"},
        ),
        make_submission(
            "S3",
            name="Web Clickstream",
            asset_type=AssetType.STREAM,
            status=SubmissionStatus.APPROVED,
            priority=Priority.LOW,
            submitted_at=NOW - timedelta(days=10),
            last_updated=NOW - timedelta(days=9),
            metadata={"classification": "public"},
        ),
        make_submission(
            "S4",
            name="churn model",
            asset_type=AssetType.MODEL,
            status=SubmissionStatus.PENDING,
            priority=Priority.LOW,
            submitted_at=NOW - timedelta(days=1),
            last_updated=NOW - timedelta(days=1),
            metadata={"reviewer": "Sarah Chen", "classification": "internal"},
        ),
        make_submission(
            "AR1",
            name="Access to Customer Transactions",
            kind=SubmissionKind.ACCESS_REQUEST,
            asset_type=None,
            linked_asset_id="S1",
            status=SubmissionStatus.REJECTED,
            priority=Priority.MEDIUM,
            submitted_at=NOW - timedelta(days=3),
            last_updated=NOW - timedelta(days=2),
            metadata={"sub_type": "read"},
        ),
    ]


@pytest.fixture
def store(submissions) -> SubmissionStore:
    store = SubmissionStore()
    store.load(submissions)
    return store


@pytest.fixture
def backend(submissions) -> InMemoryBackend:
    backend = InMemoryBackend()
    backend.seed(submissions)
    return backend


@pytest.fixture
def policy() -> AutoApprovalPolicy:
    """Auto-approves public datasets; routes confidential assets."""
    return AutoApprovalPolicy(
        rules=[
            AutoApprovalRule(
                id="r-public",
                name="Public datasets",
                asset_type="dataset",
                conditions=(RuleCondition("classification", ConditionOperator.EQUALS, "public"),),
                actions=(RuleAction(RuleActionType.AUTO_APPROVE),),
            ),
            AutoApprovalRule(
                id="r-confidential",
                name="Confidential routing",
                conditions=(RuleCondition("classification", ConditionOperator.EQUALS, "confidential"),),
                actions=(
                    RuleAction(RuleActionType.ASSIGN_REVIEWER, "Compliance Team"),
                    RuleAction(RuleActionType.SET_PRIORITY, "high"),
                    RuleAction(RuleActionType.ADD_TAG, "confidential"),
                ),
            ),
        ],
        max_risk_score=30,
    )


@pytest.fixture
def service(store, backend, policy) -> WorkflowService:
    return WorkflowService(store=store, backend=backend, policy=policy, timeout_seconds=1.0)
