"""Filter / sort / paginate engine for submission queues.

All functions are pure: they take a sequence of submissions and return new
sequences without touching the store.
"""

from __future__ import annotations

import locale
import logging
import math
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Sequence

from .types import OPEN_STATUSES, Comment, Submission

logger = logging.getLogger(__name__)

PAGE_SIZE = 10

ALL = "all"
OPEN = "open"

# Filter fields that match the same-named metadata key
_METADATA_FILTERS = ("sub_type", "reviewer", "phase", "action", "classification")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


# =============================================================================
# Filtering
# =============================================================================

@dataclass(frozen=True, slots=True)
class FilterState:
    """Simultaneous queue filters. ``"all"`` imposes no restriction."""
    search: str = ""
    status: str = ALL           # a SubmissionStatus value, "open", or "all"
    asset_type: str = ALL       # dataset | api | stream | model | access_request
    sub_type: str = ALL
    reviewer: str = ALL
    phase: str = ALL
    action: str = ALL
    classification: str = ALL

    @property
    def active_filter_count(self) -> int:
        """Number of restricting filters, not counting free-text search."""
        return sum(
            1 for f in fields(self)
            if f.name != "search" and getattr(self, f.name) != ALL
        )

    def cleared(self) -> FilterState:
        return FilterState()

    def updated(self, **changes: str) -> FilterState:
        return replace(self, **changes)


def _text_matches(submission: Submission, needle: str) -> bool:
    needle = needle.strip().casefold()
    if not needle:
        return True
    haystack = (
        submission.name,
        submission.producer,
        submission.id,
        submission.search_type,
        submission.category,
    )
    return any(needle in (value or "").casefold() for value in haystack)


def _status_matches(submission: Submission, status: str) -> bool:
    if status == ALL:
        return True
    if status == OPEN:
        return submission.status in OPEN_STATUSES
    return submission.status.value == status


def matches(submission: Submission, filters: FilterState) -> bool:
    """True if ``submission`` passes every active filter (logical AND)."""
    if not _text_matches(submission, filters.search):
        return False
    if not _status_matches(submission, filters.status):
        return False
    if filters.asset_type != ALL and submission.search_type != filters.asset_type:
        return False
    for name in _METADATA_FILTERS:
        wanted = getattr(filters, name)
        if wanted != ALL and str(submission.metadata.get(name, "")) != wanted:
            return False
    return True


def filter_submissions(
    submissions: Iterable[Submission],
    filters: FilterState,
) -> list[Submission]:
    """Filtered subset, preserving input order."""
    return [s for s in submissions if matches(s, filters)]


# =============================================================================
# Sorting
# =============================================================================

class SortKey(str, Enum):
    NAME = "name"
    SUBMITTED_AT = "submitted_at"
    LAST_UPDATED = "last_updated"
    PRIORITY = "priority"
    TYPE = "type"
    REVIEWER = "reviewer"
    PHASE = "phase"


@dataclass(frozen=True, slots=True)
class SortState:
    key: SortKey = SortKey.SUBMITTED_AT
    descending: bool = True

    def toggled(self, key: SortKey) -> SortState:
        """Clicking the active column flips direction; a new column starts descending."""
        if key == self.key:
            return SortState(key=key, descending=not self.descending)
        return SortState(key=key, descending=True)


def use_system_collation() -> bool:
    """
    Collate names by the process locale (LC_COLLATE from the environment).

    Until this is called, text sorts in the C locale: code point order of
    the casefolded text.
    """
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        logger.warning(f"Locale collation unavailable, sorting by code point: {e}")
        return False
    logger.info(f"Sorting names with collation {locale.setlocale(locale.LC_COLLATE)}")
    return True


def _text_key(value: Any) -> tuple[str, str]:
    text = "" if value is None else str(value)
    return (locale.strxfrm(text.casefold()), locale.strxfrm(text))


def _instant(value: datetime | None) -> datetime:
    return value if value is not None else _EPOCH


_SORT_KEYS: dict[SortKey, Callable[[Submission], Any]] = {
    SortKey.NAME: lambda s: _text_key(s.name),
    SortKey.SUBMITTED_AT: lambda s: _instant(s.submitted_at),
    SortKey.LAST_UPDATED: lambda s: _instant(s.last_updated),
    SortKey.PRIORITY: lambda s: s.priority.rank,
    SortKey.TYPE: lambda s: _text_key(s.search_type),
    SortKey.REVIEWER: lambda s: _text_key(s.metadata.get("reviewer")),
    SortKey.PHASE: lambda s: _text_key(s.metadata.get("phase")),
}


def sort_submissions(
    submissions: Iterable[Submission],
    sort: SortState = SortState(),
) -> list[Submission]:
    """Stable sort; submissions with equal keys keep their relative order."""
    return sorted(submissions, key=_SORT_KEYS[sort.key], reverse=sort.descending)


def queue_order(submissions: Iterable[Submission]) -> list[Submission]:
    """Default review queue: highest priority first, then newest first."""
    return sorted(
        submissions,
        key=lambda s: (s.priority.rank, _instant(s.submitted_at)),
        reverse=True,
    )


# =============================================================================
# Pagination
# =============================================================================

@dataclass(frozen=True, slots=True)
class Page:
    items: tuple[Submission, ...]
    page: int
    page_size: int
    total_items: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


def total_pages(count: int, page_size: int = PAGE_SIZE) -> int:
    """Number of pages; an empty result still has one (empty) page."""
    return max(1, math.ceil(count / page_size))


def clamp_page(page: int, count: int, page_size: int = PAGE_SIZE) -> int:
    return min(max(page, 1), total_pages(count, page_size))


def paginate(
    submissions: Sequence[Submission],
    page: int = 1,
    page_size: int = PAGE_SIZE,
) -> Page:
    """Window ``submissions`` into a page. Out-of-range pages are clamped."""
    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")

    count = len(submissions)
    page = clamp_page(page, count, page_size)
    start = (page - 1) * page_size
    return Page(
        items=tuple(submissions[start:start + page_size]),
        page=page,
        page_size=page_size,
        total_items=count,
        total_pages=total_pages(count, page_size),
    )


# =============================================================================
# Composed view state
# =============================================================================

@dataclass(slots=True)
class QueryState:
    """
    Filter, sort and page selection of one dashboard view.

    Changing filters resets to the first page. Changing sort keeps the page
    number; it is clamped when the view is evaluated.
    """
    filters: FilterState = field(default_factory=FilterState)
    sort: SortState = field(default_factory=SortState)
    page: int = 1
    page_size: int = PAGE_SIZE

    def set_filters(self, filters: FilterState) -> None:
        if filters != self.filters:
            self.filters = filters
            self.page = 1

    def update_filter(self, **changes: str) -> None:
        self.set_filters(self.filters.updated(**changes))

    def clear_filters(self) -> None:
        self.set_filters(self.filters.cleared())

    def sort_by(self, key: SortKey) -> None:
        self.sort = self.sort.toggled(key)

    def go_to(self, page: int) -> None:
        self.page = page

    def evaluate(self, submissions: Iterable[Submission]) -> Page:
        """filter -> sort -> paginate. Also clamps the stored page."""
        ordered = sort_submissions(filter_submissions(submissions, self.filters), self.sort)
        result = paginate(ordered, self.page, self.page_size)
        self.page = result.page
        return result


# =============================================================================
# Discussion helpers
# =============================================================================

def filter_comments(submission: Submission, phase: str = ALL) -> list[Comment]:
    if phase == ALL:
        return list(submission.comments)
    return [c for c in submission.comments if c.phase == phase]


def comment_counts_by_phase(submission: Submission) -> dict[str, int]:
    counts: dict[str, int] = {}
    for comment in submission.comments:
        if comment.phase:
            counts[comment.phase] = counts.get(comment.phase, 0) + 1
    return counts
