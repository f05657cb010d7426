"""Tests for the submission store merge semantics."""

import threading
from dataclasses import replace

import pytest

from approval_svc.submissions.errors import SubmissionNotFound
from approval_svc.submissions.store import MergeResult, SubmissionStore
from approval_svc.submissions.types import SubmissionStatus

from conftest import make_comment, make_submission


class TestMerge:

    def test_insert_then_apply(self):
        store = SubmissionStore()
        assert store.merge(make_submission("S1", version=1)) == MergeResult.INSERTED
        assert store.merge(make_submission("S1", version=2, status=SubmissionStatus.APPROVED)) == MergeResult.APPLIED
        assert store.require("S1").status == SubmissionStatus.APPROVED
        assert len(store) == 1

    def test_stale_version_is_dropped(self):
        store = SubmissionStore()
        store.merge(make_submission("S1", version=5, status=SubmissionStatus.APPROVED))
        assert store.merge(make_submission("S1", version=4, status=SubmissionStatus.PENDING)) == MergeResult.STALE
        assert store.require("S1").status == SubmissionStatus.APPROVED

    def test_stale_version_applies_when_drop_disabled(self):
        store = SubmissionStore(drop_stale=False)
        store.merge(make_submission("S1", version=5))
        assert store.merge(make_submission("S1", version=4)) == MergeResult.APPLIED

    def test_equal_version_replaces(self):
        store = SubmissionStore()
        store.merge(make_submission("S1", version=3, name="Old"))
        assert store.merge(make_submission("S1", version=3, name="New")) == MergeResult.APPLIED
        assert store.require("S1").name == "New"

    def test_merge_keeps_local_comments(self):
        store = SubmissionStore()
        store.merge(make_submission("S1", version=1, comments=(make_comment("c1"),)))
        store.merge(make_submission("S1", version=2, comments=()))
        assert [c.id for c in store.require("S1").comments] == ["c1"]

    def test_merge_unions_comments_without_duplicates(self):
        store = SubmissionStore()
        store.merge(make_submission("S1", version=1, comments=(make_comment("c1"),)))
        store.merge(make_submission("S1", version=2, comments=(make_comment("c1"), make_comment("c2"))))
        assert [c.id for c in store.require("S1").comments] == ["c1", "c2"]


class TestAppendComment:

    def test_append(self):
        store = SubmissionStore()
        store.merge(make_submission("S1"))
        comment = make_comment("c1")
        assert store.append_comment(comment) == MergeResult.APPLIED
        assert store.require("S1").comments == (comment,)

    def test_echo_is_ignored(self):
        store = SubmissionStore()
        store.merge(make_submission("S1"))
        store.append_comment(make_comment("c1"))
        assert store.append_comment(make_comment("c1")) == MergeResult.DUPLICATE
        assert store.require("S1").comment_count == 1

    def test_orphan(self):
        store = SubmissionStore()
        assert store.append_comment(make_comment("c1", submission_id="missing")) == MergeResult.ORPHANED
        assert len(store) == 0

    def test_append_advances_last_updated(self, now):
        store = SubmissionStore()
        store.merge(make_submission("S1"))
        store.append_comment(make_comment("c1", timestamp=now))
        assert store.require("S1").last_updated == now


class TestReads:

    def test_require_missing(self, store):
        with pytest.raises(SubmissionNotFound):
            store.require("missing")

    def test_snapshot_is_a_copy(self, store):
        snapshot = store.snapshot()
        snapshot.clear()
        assert len(store) == 5

    def test_count_by_status(self, store):
        counts = store.count_by_status()
        assert counts["pending"] == 2
        assert counts["total"] == 5
        assert [s.id for s in store.find_by_status(SubmissionStatus.UNDER_REVIEW)] == ["S2"]

    def test_listeners_see_old_and_new(self, store):
        seen = []
        store.add_listener(lambda old, new: seen.append((old.status if old else None, new.status)))
        current = store.require("S1")
        store.merge(replace(current, status=SubmissionStatus.APPROVED, version=current.version + 1))
        assert seen == [(SubmissionStatus.PENDING, SubmissionStatus.APPROVED)]

    def test_concurrent_merges_leave_whole_records(self):
        store = SubmissionStore()
        store.merge(make_submission("S1", version=0))

        def writer(start):
            for v in range(start, start + 200):
                store.merge(make_submission("S1", version=v, name=f"v{v}"))

        threads = [threading.Thread(target=writer, args=(i * 200,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        final = store.require("S1")
        assert final.name == f"v{final.version}"
        assert final.version == 799
        assert "S1" in store
