"""Summary views - read-only projections over the current collection."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable

from .types import (
    Priority,
    Submission,
    SubmissionStatus,
)

DEFAULT_SLA_DAYS = 5
AGING_DAYS = 3
OVERDUE_DAYS = 7

UNASSIGNED = "Unassigned"


def status_counts(submissions: Iterable[Submission]) -> dict[str, int]:
    """Counts per status (every status present, zero if none) plus ``total``."""
    counts = {status.value: 0 for status in SubmissionStatus}
    total = 0
    for submission in submissions:
        counts[submission.status.value] += 1
        total += 1
    counts["total"] = total
    return counts


@dataclass(frozen=True, slots=True)
class DashboardStats:
    pending: int
    under_review: int
    high_priority_pending: int
    auto_eligible_pending: int
    total: int


def dashboard_stats(submissions: Iterable[Submission]) -> DashboardStats:
    items = list(submissions)
    pending = [s for s in items if s.status == SubmissionStatus.PENDING]
    return DashboardStats(
        pending=len(pending),
        under_review=sum(1 for s in items if s.status == SubmissionStatus.UNDER_REVIEW),
        high_priority_pending=sum(1 for s in pending if s.priority == Priority.HIGH),
        auto_eligible_pending=sum(1 for s in pending if s.auto_approval_eligible),
        total=len(items),
    )


# =============================================================================
# Reviewer backlog
# =============================================================================

@dataclass(frozen=True, slots=True)
class ReviewerBacklog:
    approver: str
    count: int
    oldest_pending_days: int

    @property
    def is_aging(self) -> bool:
        return self.oldest_pending_days > AGING_DAYS

    @property
    def is_overdue(self) -> bool:
        return self.oldest_pending_days > OVERDUE_DAYS


def _approvers(submission: Submission) -> list[str]:
    approvers = submission.metadata.get("approvers")
    if isinstance(approvers, str):
        approvers = [approvers]
    if approvers:
        return [str(a) for a in approvers]
    reviewer = submission.metadata.get("reviewer")
    return [str(reviewer)] if reviewer else [UNASSIGNED]


def _age_days(submission: Submission, now: datetime) -> int:
    if submission.submitted_at is None:
        return 0
    return max(0, (now - submission.submitted_at).days)


def pending_by_reviewer(submissions: Iterable[Submission], now: datetime) -> list[ReviewerBacklog]:
    """Open items per approver, busiest first."""
    counts: dict[str, int] = {}
    oldest: dict[str, int] = {}
    for submission in submissions:
        if not submission.is_open:
            continue
        age = _age_days(submission, now)
        for approver in _approvers(submission):
            counts[approver] = counts.get(approver, 0) + 1
            oldest[approver] = max(oldest.get(approver, 0), age)

    backlog = [
        ReviewerBacklog(approver=name, count=counts[name], oldest_pending_days=oldest[name])
        for name in counts
    ]
    backlog.sort(key=lambda b: (-b.count, b.approver))
    return backlog


# =============================================================================
# SLA
# =============================================================================

class SlaUrgency(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    URGENT = "urgent"
    OVERDUE = "overdue"

    @property
    def label(self) -> str:
        return {
            SlaUrgency.NORMAL: "ON TRACK",
            SlaUrgency.WARNING: "DUE SOON",
            SlaUrgency.URGENT: "URGENT",
            SlaUrgency.OVERDUE: "OVERDUE",
        }[self]


_LEADING_INT = re.compile(r"^\s*(\d+)")


def sla_target_days(submission: Submission, default_days: int = DEFAULT_SLA_DAYS) -> int:
    """Leading integer of ``metadata.sla_target`` ("5 business days" -> 5)."""
    target = submission.metadata.get("sla_target")
    if isinstance(target, (int, float)) and not isinstance(target, bool):
        return int(target)
    match = _LEADING_INT.match(str(target or ""))
    return int(match.group(1)) if match else default_days


def sla_urgency(
    submission: Submission,
    now: datetime,
    default_days: int = DEFAULT_SLA_DAYS,
) -> SlaUrgency | None:
    """SLA state of an open item; None once a decision has been made."""
    if submission.is_terminal or submission.submitted_at is None:
        return None

    elapsed = _age_days(submission, now)
    target = sla_target_days(submission, default_days)
    if elapsed >= target:
        return SlaUrgency.OVERDUE
    if elapsed >= target * 0.75:
        return SlaUrgency.URGENT
    if elapsed >= target * 0.5:
        return SlaUrgency.WARNING
    return SlaUrgency.NORMAL


def time_elapsed(submission: Submission, now: datetime) -> str:
    """Compact age such as ``"3d 4h"`` or ``"5h"``."""
    if submission.submitted_at is None:
        return "0h"
    hours = max(0, int((now - submission.submitted_at).total_seconds() // 3600))
    days = hours // 24
    if days > 0:
        return f"{days}d {hours % 24}h"
    return f"{hours}h"


# =============================================================================
# Producer views
# =============================================================================

def approval_rate(submissions: Iterable[Submission]) -> int:
    """Percentage of submissions approved (manually or automatically)."""
    items = list(submissions)
    if not items:
        return 0
    approved = sum(
        1 for s in items
        if s.status in (SubmissionStatus.APPROVED, SubmissionStatus.AUTO_APPROVED)
    )
    return round(approved / len(items) * 100)


_PROGRESS = {
    SubmissionStatus.PENDING: 25,
    SubmissionStatus.UNDER_REVIEW: 75,
    SubmissionStatus.APPROVED: 100,
    SubmissionStatus.AUTO_APPROVED: 100,
    SubmissionStatus.REJECTED: 0,
}


def review_progress(status: SubmissionStatus) -> int:
    return _PROGRESS[status]
