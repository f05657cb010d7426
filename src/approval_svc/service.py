"""Workflow service - the write path for approvals.

Every operation follows the same sequence:
1. Validate the caller's input (nothing is sent on failure)
2. Compute the next Submission with a pure mutation
3. Persist it to the backend, bounded by a timeout
4. Commit it to the store only once the backend has accepted it

Writes to the same submission are serialised with one asyncio lock per id.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable

from .backend.base import BackendError, BackendTimeout, SubmissionBackend
from .identity import Actor
from .submissions import mutations
from .submissions.autoapproval import AutoApprovalPolicy, required_approvers
from .submissions.errors import AutoApprovalDenied, WorkflowError
from .submissions.status import WorkflowAction, transition
from .submissions.store import SubmissionStore
from .submissions.types import (
    Comment,
    Priority,
    Submission,
    SubmissionKind,
    SubmissionStatus,
)
from .submissions.validation import (
    AccessRequestForm,
    AssetSubmissionForm,
    parse,
    validate_decision,
)


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0

# Risk contributions for newly submitted assets
_RISK_PERSONAL_DATA = 40
_RISK_BY_CLASSIFICATION = {"public": 0, "internal": 10, "confidential": 30}
_RISK_ACCESS_LEVEL = {"read": 0, "write": 20, "admin": 40}


@dataclass
class BulkResult:
    """Per-item outcome of a bulk decision."""
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {"succeeded": list(self.succeeded), "failed": dict(self.failed)}


def new_submission_id(prefix: str = "SUB") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


@dataclass
class WorkflowService:
    """
    Approval workflow operations over a store and a backend.

    The store is the single source of truth for reads; the backend is only
    written to. Remote changes reach the store through the SyncAdapter.
    """
    store: SubmissionStore
    backend: SubmissionBackend
    policy: AutoApprovalPolicy = field(default_factory=AutoApprovalPolicy)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    _locks: dict[str, asyncio.Lock] = field(default_factory=dict, init=False)

    async def load(self, producer_id: str | None = None) -> int:
        """Replace the store's contents with the backend's submissions."""
        submissions = await self._call(self.backend.fetch_submissions(producer_id), "fetch submissions")
        return self.store.load(submissions)

    # =========================================================================
    # Decisions
    # =========================================================================

    async def approve(self, submission_id: str, comment: str, actor: Actor) -> Submission:
        return await self._mutate(
            submission_id, "approve",
            lambda s: mutations.approve(s, comment, actor),
        )

    async def reject(self, submission_id: str, comment: str, actor: Actor) -> Submission:
        return await self._mutate(
            submission_id, "reject",
            lambda s: mutations.reject(s, comment, actor),
        )

    async def request_revision(
        self,
        submission_id: str,
        comment: str,
        refer_to_team: str,
        actor: Actor,
    ) -> Submission:
        return await self._mutate(
            submission_id, "request revision",
            lambda s: mutations.request_revision(s, comment, refer_to_team, actor),
        )

    async def start_review(self, submission_id: str, actor: Actor) -> Submission:
        return await self._mutate(
            submission_id, "start review",
            lambda s: mutations.start_review(s, actor),
        )

    # =========================================================================
    # Discussion
    # =========================================================================

    async def add_comment(
        self,
        submission_id: str,
        message: str,
        actor: Actor,
        phase: str | None = None,
    ) -> Submission:
        return await self._mutate(
            submission_id, "comment",
            lambda s: mutations.add_comment(s, message, actor, phase=phase),
        )

    async def escalate(
        self,
        submission_id: str,
        reason: str,
        escalate_to: str,
        actor: Actor,
    ) -> Submission:
        return await self._mutate(
            submission_id, "escalate",
            lambda s: mutations.escalate(s, reason, escalate_to, actor),
        )

    # =========================================================================
    # Automation
    # =========================================================================

    async def retry_auto_approval(self, submission_id: str) -> Submission:
        """
        Re-run the eligibility predicate and auto-approve if it passes.

        Raises:
            InvalidTransition: If the submission is already approved.
            AutoApprovalDenied: With the failed checks, if still ineligible.
                The advisory flag is updated and the submission stays in
                the manual review queue.
        """
        self.store.require(submission_id)
        async with self._lock_for(submission_id):
            current = self.store.require(submission_id)
            transition(WorkflowAction.AUTO_APPROVE, current.status, current.id)

            result = self.policy.evaluate(current)
            if not result.eligible:
                flagged = mutations.assess_eligibility(current, result)
                if flagged is not current:
                    await self._persist(flagged)
                    self.store.merge(flagged)
                logger.info(f"Auto-approval denied for {submission_id}: {list(result.failed_checks)}")
                raise AutoApprovalDenied(
                    submission_id,
                    list(result.failed_checks),
                    list(result.suggested_actions),
                )

            updated, note = mutations.auto_approve(current, result)
            await self._persist(updated, note, previous=current)
            self.store.merge(updated)

        logger.info(f"Submission {submission_id} status -> {updated.status.value}")
        return updated

    async def route(self, submission_id: str) -> Submission:
        """Apply matching rules' routing actions and refresh the eligibility flag."""
        def apply(submission: Submission) -> Submission:
            routed = mutations.apply_routing(submission, self.policy.routing_actions(submission))
            return mutations.assess_eligibility(routed, self.policy.evaluate(routed))

        return await self._mutate(submission_id, "route", apply)

    # =========================================================================
    # Bulk
    # =========================================================================

    async def bulk_approve(self, submission_ids: Iterable[str], comment: str, actor: Actor) -> BulkResult:
        return await self._bulk(submission_ids, comment, self.approve, actor)

    async def bulk_reject(self, submission_ids: Iterable[str], comment: str, actor: Actor) -> BulkResult:
        return await self._bulk(submission_ids, comment, self.reject, actor)

    async def _bulk(
        self,
        submission_ids: Iterable[str],
        comment: str,
        operation: Callable,
        actor: Actor,
    ) -> BulkResult:
        """Best-effort per item; the shared comment is validated once up front."""
        text = validate_decision(comment)
        result = BulkResult()
        for submission_id in dict.fromkeys(submission_ids):
            try:
                await operation(submission_id, text, actor)
                result.succeeded.append(submission_id)
            except (WorkflowError, BackendError) as e:
                result.failed[submission_id] = str(e)

        if result.failed:
            logger.warning(
                f"Bulk {operation.__name__}: {len(result.succeeded)} succeeded, "
                f"{len(result.failed)} failed"
            )
        return result

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit_asset(self, form: dict[str, Any] | AssetSubmissionForm, actor: Actor) -> Submission:
        """Register a new asset for review."""
        if not isinstance(form, AssetSubmissionForm):
            form = parse(AssetSubmissionForm, form)

        governance = form.data_governance
        risk = _RISK_BY_CLASSIFICATION.get(governance.data_classification, 0)
        if governance.has_personal_data:
            risk += _RISK_PERSONAL_DATA

        metadata: dict[str, Any] = {
            "classification": governance.data_classification,
            "has_personal_data": governance.has_personal_data,
            "retention_period": governance.retention_period,
            "email": form.email,
            "governance_checks": {
                "classification": "passed",
                "pii_review": "pending" if governance.has_personal_data else "passed",
            },
            "current_step": "Awaiting review",
        }
        for key in ("format", "size"):
            value = getattr(form, key)
            if value:
                metadata[key] = value
        for key in ("endpoint", "documentation"):
            value = getattr(form, key)
            if value is not None:
                metadata[key] = str(value)
        specs = form.technical_specs.model_dump(exclude_none=True)
        if specs:
            metadata["technical_specs"] = specs

        now = mutations.utcnow()
        submission = Submission(
            id=new_submission_id(),
            name=form.name,
            kind=SubmissionKind.ASSET,
            asset_type=form.type,
            category=form.category,
            description=form.description,
            producer=form.producer,
            producer_id=actor.id,
            status=SubmissionStatus.PENDING,
            priority=Priority.HIGH if risk >= 50 else Priority.MEDIUM,
            risk_score=risk,
            metadata=metadata,
            submitted_at=now,
            last_updated=now,
        )
        approvers = [a for a in form.approvers if a] or required_approvers(submission)
        if approvers:
            submission = replace(submission, metadata={**metadata, "approvers": approvers})
        return await self._create(submission)

    async def submit_access_request(
        self,
        form: dict[str, Any] | AccessRequestForm,
        actor: Actor,
    ) -> Submission:
        """Request access to an existing asset on behalf of ``actor``."""
        if not isinstance(form, AccessRequestForm):
            form = parse(AccessRequestForm, form)

        asset = self.store.get(form.asset_id)
        asset_name = asset.name if asset is not None else form.asset_id

        metadata: dict[str, Any] = {
            "use_case": form.use_case,
            "sub_type": form.requested_access_level,
            "current_step": "Awaiting review",
        }
        if form.expected_tps:
            metadata["expected_tps"] = form.expected_tps
        if form.connected_app:
            metadata["connected_app"] = form.connected_app
        if asset is not None and asset.metadata.get("classification"):
            metadata["classification"] = asset.metadata["classification"]

        now = mutations.utcnow()
        submission = Submission(
            id=new_submission_id("AR"),
            name=f"Access to {asset_name}",
            kind=SubmissionKind.ACCESS_REQUEST,
            asset_type=None,
            linked_asset_id=form.asset_id,
            category=asset.category if asset is not None else "",
            description=form.business_justification,
            producer=actor.name,
            producer_id=actor.id,
            status=SubmissionStatus.PENDING,
            priority=Priority.MEDIUM,
            risk_score=_RISK_ACCESS_LEVEL[form.requested_access_level],
            metadata=metadata,
            submitted_at=now,
            last_updated=now,
        )
        return await self._create(submission)

    async def _create(self, submission: Submission) -> Submission:
        """Route, assess and insert a new submission, auto-approving if eligible."""
        submission = mutations.apply_routing(submission, self.policy.routing_actions(submission))
        result = self.policy.evaluate(submission)
        submission = mutations.assess_eligibility(submission, result)

        assessed = submission
        note: Comment | None = None
        if result.eligible:
            submission, note = mutations.auto_approve(assessed, result)

        await self._call(self.backend.insert_submission(submission), f"insert {submission.id}")
        if note is not None:
            # A failed note leaves the submission pending, ready for a retry
            await self._insert_comment(note, submission, assessed)
        self.store.merge(submission)

        logger.info(f"Submission {submission.id} created with status {submission.status.value}")
        return submission

    # =========================================================================
    # Internals
    # =========================================================================

    def _lock_for(self, submission_id: str) -> asyncio.Lock:
        lock = self._locks.get(submission_id)
        if lock is None:
            lock = self._locks[submission_id] = asyncio.Lock()
        return lock

    async def _mutate(
        self,
        submission_id: str,
        action: str,
        fn: Callable[[Submission], Submission | mutations.Mutation],
    ) -> Submission:
        """Apply ``fn`` to the stored submission, persist, then commit."""
        # Unknown ids never get a lock
        self.store.require(submission_id)
        async with self._lock_for(submission_id):
            current = self.store.require(submission_id)
            outcome = fn(current)
            if isinstance(outcome, tuple):
                updated, note = outcome
            else:
                updated, note = outcome, None

            if updated is current:
                return current

            await self._persist(updated, note, previous=current)
            self.store.merge(updated)

        if updated.status != current.status:
            logger.info(f"Submission {submission_id} status -> {updated.status.value}")
        else:
            logger.info(f"Submission {submission_id}: {action}")
        return updated

    async def _persist(
        self,
        submission: Submission,
        comment: Comment | None = None,
        previous: Submission | None = None,
    ) -> None:
        await self._call(self.backend.update_submission(submission), f"update {submission.id}")
        if comment is not None:
            await self._insert_comment(comment, submission, previous)

    async def _insert_comment(
        self,
        comment: Comment,
        written: Submission,
        previous: Submission | None,
    ) -> None:
        """
        Insert the comment that goes with ``written``.

        If the insert fails, ``previous`` is written back one version above
        ``written`` and committed to the store, so the echo of the
        half-applied write arrives stale and the action can be retried.
        """
        try:
            await self._call(self.backend.insert_comment(comment), f"insert comment on {written.id}")
        except BackendError:
            if previous is not None:
                await self._revert(previous, written)
            raise

    async def _revert(self, previous: Submission, written: Submission) -> None:
        restored = replace(previous, version=written.version + 1, last_updated=written.last_updated)
        try:
            await self._call(self.backend.update_submission(restored), f"revert {previous.id}")
        except BackendError as e:
            logger.error(f"Submission {previous.id} left at v{written.version} without its comment: {e}")
            return
        self.store.merge(restored)
        logger.warning(f"Submission {previous.id} reverted to {previous.status.value} (v{restored.version})")

    async def _call(self, awaitable, description: str):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.error(f"Backend timed out after {self.timeout_seconds}s: {description}")
            raise BackendTimeout(f"Timed out after {self.timeout_seconds}s: {description}") from e
        except BackendError as e:
            logger.error(f"Backend call failed ({description}): {e}")
            raise
