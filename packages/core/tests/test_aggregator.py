"""Tests for report aggregation, rendering and publishing."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from prsage_core.aggregator import (
    ReviewPublisher,
    aggregate,
    final_state,
    overall_status,
    render_report,
    status_description,
)
from prsage_core.classifier import Classification
from prsage_core.errors import PublishError, SourceControlError
from prsage_core.models import (
    AnalysisOutcome,
    EligibleFile,
    FileChange,
    ReviewRef,
    SkippedFile,
)

REF = ReviewRef(repo="acme/web", number=7)


def _ok(path, had_context=False):
    return AnalysisOutcome(path=path, language="Python", review=f"Looks fine: {path}", had_context=had_context)


def _failed(path):
    return AnalysisOutcome(path=path, language="Python", error="Analysis failed: timeout")


def _classification(eligible_paths, skipped=(), total=None):
    eligible = tuple(EligibleFile(change=FileChange(path=p, diff="+x")) for p in eligible_paths)
    return Classification(
        eligible=eligible,
        skipped=tuple(skipped),
        total_changed=total if total is not None else len(eligible) + len(skipped),
    )


def _source_control():
    sc = MagicMock()
    sc.post_comment = AsyncMock()
    sc.set_commit_status = AsyncMock()
    return sc


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


class TestOverallStatus:
    def test_all_succeeded(self):
        assert overall_status([_ok("a.py"), _ok("b.py")]) == "success"

    def test_some_failed(self):
        assert overall_status([_ok("a.py"), _failed("b.py")]) == "partial"

    def test_all_failed(self):
        assert overall_status([_failed("a.py"), _failed("b.py")]) == "failed"

    def test_nothing_analyzed(self):
        assert overall_status([]) == "empty"


class TestAggregate:
    def test_counts(self):
        outcomes = [_ok("a.py"), _failed("b.py"), _ok("c.py")]
        skipped = [SkippedFile("logo.png", "binary")]
        report = aggregate(outcomes, _classification(["a.py", "b.py", "c.py"], skipped), 3.2)

        assert report.status == "partial"
        assert report.total_changed == 4
        assert report.eligible == 3
        assert report.analyzed == 2
        assert report.failed == 1
        assert report.analyzed + report.failed == len(report.outcomes)
        assert report.skipped == tuple(skipped)
        assert report.elapsed == 3.2

    def test_timed_out_files_recorded(self):
        report = aggregate([_ok("a.py")], _classification(["a.py", "b.py"]), 1.0, timed_out=["b.py"])
        assert report.timed_out == ("b.py",)
        assert report.eligible == 2

    def test_final_state(self):
        assert final_state(aggregate([_ok("a.py")], _classification(["a.py"]), 1.0)) == "success"
        assert final_state(aggregate([_ok("a.py"), _failed("b.py")], _classification(["a.py", "b.py"]), 1.0)) == (
            "success"
        )
        assert final_state(aggregate([], _classification([]), 0.1)) == "success"
        assert final_state(aggregate([_failed("a.py")], _classification(["a.py"]), 1.0)) == "failed"


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRenderReport:
    def test_empty_review_posts_notice(self):
        skipped = [SkippedFile("yarn.lock", "pattern"), SkippedFile("old.py", "deleted")]
        body = render_report(aggregate([], _classification([], skipped), 0.2))
        assert body.startswith("## AI Code Review Results")
        assert "No reviewable files found" in body
        assert "Lock files" in body

    def test_sections_in_outcome_order(self):
        report = aggregate([_ok("b.py"), _ok("a.py")], _classification(["b.py", "a.py"]), 12.34)
        body = render_report(report)
        assert body.index("### `b.py`") < body.index("### `a.py`")
        assert "**Status:** success" in body
        assert "**Files analyzed:** 2/2 eligible (2 changed)" in body
        assert "**Duration:** 12.3s" in body

    def test_long_duration_in_minutes(self):
        body = render_report(aggregate([_ok("a.py")], _classification(["a.py"]), 150))
        assert "**Duration:** 2.5 min" in body

    def test_context_marker_only_when_applied(self):
        outcomes = [_ok("a.py", had_context=True), _ok("b.py")]
        body = render_report(aggregate(outcomes, _classification(["a.py", "b.py"]), 1))
        assert body.count("*Best practices reference applied*") == 1

    def test_failed_file_noted_inline(self):
        body = render_report(aggregate([_ok("a.py"), _failed("b.py")], _classification(["a.py", "b.py"]), 1))
        assert "> Analysis failed: Analysis failed: timeout" in body
        assert "**1** file(s) could not be analyzed" in body

    def test_skipped_files_listed_with_reasons(self):
        skipped = [SkippedFile("logo.png", "binary"), SkippedFile("big.js", "size")]
        body = render_report(aggregate([_ok("a.py")], _classification(["a.py"], skipped), 1))
        assert "<details><summary>Skipped 2 file(s)" in body
        assert "- `logo.png` (binary file)" in body
        assert "- `big.js` (diff exceeds size limit)" in body

    def test_timed_out_files_listed(self):
        report = aggregate([], _classification(["a.py"]), 1, timed_out=["a.py"])
        body = render_report(report)
        assert "No reviewable files found" not in body
        assert "review timed out" in body
        assert "- `a.py`" in body

    def test_footer(self):
        body = render_report(aggregate([_ok("a.py")], _classification(["a.py"]), 1))
        assert body.rstrip().endswith("*Please review AI suggestions carefully before implementing changes.*")


def test_status_descriptions():
    assert status_description(aggregate([], _classification([]), 1)) == "AI review completed: no reviewable files"
    partial = aggregate([_ok("a.py"), _failed("b.py")], _classification(["a.py", "b.py"]), 1)
    assert status_description(partial) == "AI review completed: 1/2 files analyzed"
    failed = aggregate([_failed("a.py")], _classification(["a.py"]), 1)
    assert status_description(failed) == "AI review failed: 0/1 files analyzed"


def test_status_description_when_every_file_timed_out():
    report = aggregate([], _classification(["a.py", "b.py"]), 30.0, timed_out=["a.py", "b.py"])
    assert report.status == "empty"
    assert status_description(report) == "AI review timed out: 0/2 files analyzed"
    assert final_state(report) == "success"


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


class TestReviewPublisher:
    @pytest.mark.asyncio
    async def test_posts_comment_then_final_status(self):
        sc = _source_control()
        report = aggregate([_ok("a.py")], _classification(["a.py"]), 1)

        body = await ReviewPublisher(sc).publish(REF, report)

        sc.post_comment.assert_awaited_once_with(REF, body)
        sc.set_commit_status.assert_awaited_once_with(REF, "success", "AI review completed: 1/1 files analyzed")

    @pytest.mark.asyncio
    async def test_failed_review_sets_failed_state(self):
        sc = _source_control()
        await ReviewPublisher(sc).publish(REF, aggregate([_failed("a.py")], _classification(["a.py"]), 1))
        assert sc.set_commit_status.await_args.args[1] == "failed"

    @pytest.mark.asyncio
    async def test_comment_failure_raises_publish_error_and_marks_failed(self):
        sc = _source_control()
        sc.post_comment.side_effect = SourceControlError("forbidden", status=403)

        with pytest.raises(PublishError) as exc_info:
            await ReviewPublisher(sc).publish(REF, aggregate([_ok("a.py")], _classification(["a.py"]), 1))

        assert exc_info.value.status == 403
        sc.set_commit_status.assert_awaited_once()
        assert sc.set_commit_status.await_args.args[1] == "failed"

    @pytest.mark.asyncio
    async def test_status_failure_raises_publish_error(self):
        sc = _source_control()
        sc.set_commit_status.side_effect = SourceControlError("boom", status=500)
        with pytest.raises(PublishError):
            await ReviewPublisher(sc).publish(REF, aggregate([_ok("a.py")], _classification(["a.py"]), 1))
        sc.post_comment.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_mark_running_is_best_effort(self, caplog):
        sc = _source_control()
        sc.set_commit_status.side_effect = SourceControlError("rate limited", status=403)
        with caplog.at_level("WARNING", logger="prsage_core.aggregator"):
            await ReviewPublisher(sc).mark_running(REF)
        assert "Could not set running status" in caplog.text
