"""Tests for filtering, sorting and pagination."""

import locale
from datetime import timedelta

import pytest

from approval_svc.submissions.query import (
    FilterState,
    QueryState,
    SortKey,
    SortState,
    clamp_page,
    comment_counts_by_phase,
    filter_comments,
    filter_submissions,
    paginate,
    queue_order,
    sort_submissions,
    total_pages,
    use_system_collation,
)
from approval_svc.submissions.types import Priority, SubmissionStatus

from conftest import NOW, make_comment, make_submission


def _ids(items):
    return [s.id for s in items]


class TestFilters:
    """Filter composition."""

    def test_default_filters_keep_everything_in_order(self, submissions):
        assert _ids(filter_submissions(submissions, FilterState())) == _ids(submissions)

    def test_open_status_keeps_pending_and_under_review_in_input_order(self, submissions):
        result = filter_submissions(submissions, FilterState(status="open"))
        assert _ids(result) == ["S1", "S2", "S4"]
        assert all(s.status in (SubmissionStatus.PENDING, SubmissionStatus.UNDER_REVIEW) for s in result)

    def test_exact_status(self, submissions):
        assert _ids(filter_submissions(submissions, FilterState(status="approved"))) == ["S3"]

    def test_search_is_case_insensitive_over_name_producer_id_type(self, submissions):
        assert _ids(filter_submissions(submissions, FilterState(search="CHURN"))) == ["S4"]
        assert _ids(filter_submissions(submissions, FilterState(search="ar1"))) == ["AR1"]
        assert _ids(filter_submissions(submissions, FilterState(search="stream"))) == ["S3"]
        assert len(filter_submissions(submissions, FilterState(search="data team"))) == 5

    def test_type_filter_uses_access_request_tag(self, submissions):
        assert _ids(filter_submissions(submissions, FilterState(asset_type="access_request"))) == ["AR1"]
        assert _ids(filter_submissions(submissions, FilterState(asset_type="api"))) == ["S2"]

    def test_metadata_filters(self, submissions):
        assert _ids(filter_submissions(submissions, FilterState(reviewer="Sarah Chen"))) == ["S1", "S4"]
        assert _ids(filter_submissions(submissions, FilterState(classification="internal"))) == ["S2", "S4"]
        assert _ids(filter_submissions(submissions, FilterState(sub_type="read"))) == ["AR1"]

    def test_filters_are_conjunctive(self, submissions):
        """Combined result equals the intersection of each single-filter result."""
        a = FilterState(reviewer="Sarah Chen")
        b = FilterState(classification="internal")
        combined = filter_submissions(submissions, FilterState(reviewer="Sarah Chen", classification="internal"))
        intersection = [
            s for s in filter_submissions(submissions, a)
            if s in filter_submissions(submissions, b)
        ]
        assert _ids(combined) == _ids(intersection) == ["S4"]

    def test_active_filter_count_ignores_search(self):
        assert FilterState(search="x").active_filter_count == 0
        assert FilterState(status="open", reviewer="Mark Li").active_filter_count == 2
        assert FilterState(status="open").cleared() == FilterState()


class TestSorting:
    """Sorting by column."""

    def test_priority_descending(self, submissions):
        result = sort_submissions(submissions, SortState(SortKey.PRIORITY, descending=True))
        priorities = [s.priority for s in result]
        assert priorities == sorted(priorities, key=lambda p: p.rank, reverse=True)
        assert priorities[0] == Priority.HIGH
        assert priorities[-1] == Priority.LOW

    def test_priority_sort_is_stable(self, submissions):
        result = sort_submissions(submissions, SortState(SortKey.PRIORITY, descending=True))
        assert _ids(result) == ["S1", "S2", "AR1", "S3", "S4"]

    def test_sorting_twice_is_idempotent(self, submissions):
        sort = SortState(SortKey.NAME, descending=False)
        once = sort_submissions(submissions, sort)
        assert _ids(sort_submissions(once, sort)) == _ids(once)

    def test_name_sort_is_case_insensitive(self, submissions):
        result = sort_submissions(submissions, SortState(SortKey.NAME, descending=False))
        assert _ids(result) == ["AR1", "S4", "S1", "S2", "S3"]

    def test_submitted_at_descending_is_newest_first(self, submissions):
        result = sort_submissions(submissions, SortState())
        stamps = [s.submitted_at for s in result]
        assert stamps == sorted(stamps, reverse=True)

    def test_missing_timestamps_sort_last_when_descending(self):
        items = [
            make_submission("A", submitted_at=None),
            make_submission("B", submitted_at=NOW),
        ]
        assert _ids(sort_submissions(items, SortState(SortKey.SUBMITTED_AT))) == ["B", "A"]

    def test_toggle(self):
        sort = SortState(SortKey.NAME, descending=True)
        assert sort.toggled(SortKey.NAME) == SortState(SortKey.NAME, descending=False)
        assert sort.toggled(SortKey.PRIORITY) == SortState(SortKey.PRIORITY, descending=True)

    def test_queue_order_is_priority_then_newest(self):
        items = [
            make_submission("old-high", priority=Priority.HIGH, submitted_at=NOW - timedelta(days=5)),
            make_submission("low", priority=Priority.LOW, submitted_at=NOW),
            make_submission("new-high", priority=Priority.HIGH, submitted_at=NOW - timedelta(days=1)),
        ]
        assert _ids(queue_order(items)) == ["new-high", "old-high", "low"]


class TestPagination:
    """Pagination covers the collection exactly once."""

    @pytest.mark.parametrize("count,page_size", [(0, 10), (1, 10), (10, 10), (11, 10), (25, 7)])
    def test_pages_partition_the_collection(self, count, page_size):
        items = [make_submission(f"S{i}") for i in range(count)]
        pages = total_pages(count, page_size)

        seen = []
        for number in range(1, pages + 1):
            seen.extend(paginate(items, number, page_size).items)

        assert _ids(seen) == _ids(items)

    def test_empty_collection_has_one_page(self):
        page = paginate([], 1)
        assert page.total_pages == 1
        assert page.items == ()
        assert not page.has_next
        assert not page.has_previous

    def test_out_of_range_page_is_clamped(self):
        items = [make_submission(f"S{i}") for i in range(12)]
        page = paginate(items, 9, 10)
        assert page.page == 2
        assert len(page.items) == 2
        assert clamp_page(0, 12, 10) == 1

    def test_invalid_page_size(self):
        with pytest.raises(ValueError):
            paginate([], 1, 0)


class TestQueryState:
    """Composed filter -> sort -> paginate state."""

    def test_filter_change_resets_page(self):
        state = QueryState(page=3)
        state.update_filter(status="open")
        assert state.page == 1

    def test_unchanged_filter_keeps_page(self):
        state = QueryState(page=3)
        state.update_filter(status="all")
        assert state.page == 3

    def test_sort_change_keeps_page_then_clamps(self, submissions):
        state = QueryState(page=4, page_size=2)
        state.sort_by(SortKey.PRIORITY)
        assert state.page == 4
        result = state.evaluate(submissions)
        assert result.page == 3
        assert state.page == 3

    def test_evaluate_filters_then_sorts_then_paginates(self, submissions):
        state = QueryState(
            filters=FilterState(status="open"),
            sort=SortState(SortKey.PRIORITY, descending=True),
            page_size=2,
        )
        result = state.evaluate(submissions)
        assert _ids(result.items) == ["S1", "S2"]
        assert result.total_items == 3
        assert result.total_pages == 2


class TestCommentFilters:

    def test_filter_by_phase(self):
        submission = make_submission(comments=(
            make_comment("c1", phase="schema"),
            make_comment("c2", phase="compliance"),
            make_comment("c3"),
        ))
        assert [c.id for c in filter_comments(submission)] == ["c1", "c2", "c3"]
        assert [c.id for c in filter_comments(submission, "schema")] == ["c1"]
        assert comment_counts_by_phase(submission) == {"schema": 1, "compliance": 1}


class TestCollation:

    def test_uses_environment_locale(self, monkeypatch):
        calls = []

        def fake_setlocale(category, value=None):
            calls.append((category, value))
            return "en_US.UTF-8"

        monkeypatch.setattr(locale, "setlocale", fake_setlocale)
        assert use_system_collation()
        assert calls[0] == (locale.LC_COLLATE, "")

    def test_unsupported_locale_keeps_code_point_order(self, monkeypatch):
        def fake_setlocale(category, value=None):
            raise locale.Error("unsupported locale setting")

        monkeypatch.setattr(locale, "setlocale", fake_setlocale)
        assert use_system_collation() is False

        names = ["beta", "Alpha", "alpha"]
        ordered = sort_submissions(
            [make_submission(f"S{i}", name=n) for i, n in enumerate(names)],
            SortState(SortKey.NAME, descending=False),
        )
        assert [s.name for s in ordered] == ["Alpha", "alpha", "beta"]
