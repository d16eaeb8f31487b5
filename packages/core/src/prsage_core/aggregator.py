"""Fold per-file outcomes into one report and publish it.

Publishing has exactly two visible effects on the source-control host: one
comment with the rendered report and a commit status. Neither is retried; a
failure surfaces as PublishError, distinct from per-file analysis failures.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, Protocol

from prsage_core.classifier import Classification
from prsage_core.errors import PublishError, SourceControlError
from prsage_core.models import (
    STATUS_EMPTY,
    STATUS_FAILED,
    STATUS_PARTIAL,
    STATUS_SUCCESS,
    AnalysisOutcome,
    ChangeSet,
    ReviewMetadata,
    ReviewRef,
    ReviewReport,
)

logger = logging.getLogger(__name__)

STATE_PENDING = "pending"
STATE_RUNNING = "running"
STATE_SUCCESS = "success"
STATE_FAILED = "failed"

_SKIP_REASONS = {
    "deleted": "deleted",
    "pattern": "matched a skip pattern",
    "binary": "binary file",
    "size": "diff exceeds size limit",
    "empty": "no diff text",
    "file_limit": "over the per-review file limit",
}

_FOOTER = (
    "*Generated by prsage AI code review.*\n"
    "*Please review AI suggestions carefully before implementing changes.*"
)

_EMPTY_NOTICE = (
    "No reviewable files found in this change.\n\n"
    "*Files may have been skipped due to:*\n"
    "- Binary files\n"
    "- Generated/minified code\n"
    "- Lock files\n"
    "- Files exceeding size limits"
)


class SourceControl(Protocol):
    async def get_change_set(self, ref: ReviewRef) -> ChangeSet: ...

    async def get_metadata(self, ref: ReviewRef) -> ReviewMetadata: ...

    async def post_comment(self, ref: ReviewRef, text: str) -> None: ...

    async def set_commit_status(self, ref: ReviewRef, state: str, description: str) -> None: ...


def overall_status(outcomes: Iterable[AnalysisOutcome]) -> str:
    outcomes = list(outcomes)
    if not outcomes:
        return STATUS_EMPTY
    failed = sum(1 for o in outcomes if not o.succeeded)
    if failed == len(outcomes):
        return STATUS_FAILED
    if failed:
        return STATUS_PARTIAL
    return STATUS_SUCCESS


def aggregate(
    outcomes: Iterable[AnalysisOutcome],
    classification: Classification,
    elapsed: float,
    timed_out: Iterable[str] = (),
) -> ReviewReport:
    outcomes = tuple(outcomes)
    failed = sum(1 for o in outcomes if not o.succeeded)
    return ReviewReport(
        outcomes=outcomes,
        total_changed=classification.total_changed,
        eligible=len(classification.eligible),
        analyzed=len(outcomes) - failed,
        failed=failed,
        elapsed=elapsed,
        status=overall_status(outcomes),
        skipped=classification.skipped,
        timed_out=tuple(timed_out),
    )


def _format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    return f"{seconds / 60:.1f} min"


def _render_outcome(outcome: AnalysisOutcome) -> list[str]:
    lines = [f"### `{outcome.path}`\n"]
    if outcome.language:
        lines.append(f"**Language:** {outcome.language}\n")
    if outcome.succeeded:
        if outcome.had_context:
            lines.append("*Best practices reference applied*\n")
        lines.append(f"{outcome.review}\n")
    else:
        lines.append(f"> Analysis failed: {outcome.error}\n")
    lines.append("---\n")
    return lines


def render_report(report: ReviewReport) -> str:
    """Render the report as the Markdown body of a single comment."""
    lines = ["## AI Code Review Results\n"]

    if report.status == STATUS_EMPTY and not report.timed_out:
        lines.append(_EMPTY_NOTICE)
        return "\n".join(lines)

    lines.append(
        f"**Status:** {report.status} · "
        f"**Files analyzed:** {report.analyzed}/{report.eligible} eligible "
        f"({report.total_changed} changed) · "
        f"**Duration:** {_format_duration(report.elapsed)}\n"
    )
    if report.failed:
        lines.append(f"**{report.failed}** file(s) could not be analyzed; see the notes below.\n")
    lines.append("---\n")

    for outcome in report.outcomes:
        lines.extend(_render_outcome(outcome))

    if report.timed_out:
        lines.append(f"**Not reviewed (review timed out):** {len(report.timed_out)} file(s)")
        lines.extend(f"- `{path}`" for path in report.timed_out)
        lines.append("")

    if report.skipped:
        counts = Counter(s.reason for s in report.skipped)
        summary = ", ".join(f"{n} {_SKIP_REASONS.get(reason, reason)}" for reason, n in counts.items())
        lines.append(f"<details><summary>Skipped {len(report.skipped)} file(s): {summary}</summary>\n")
        lines.extend(f"- `{s.path}` ({_SKIP_REASONS.get(s.reason, s.reason)})" for s in report.skipped)
        lines.append("\n</details>\n")

    lines.append(_FOOTER)
    return "\n".join(lines)


def status_description(report: ReviewReport) -> str:
    if report.status == STATUS_EMPTY and report.timed_out:
        return f"AI review timed out: 0/{report.eligible} files analyzed"
    if report.status == STATUS_EMPTY:
        return "AI review completed: no reviewable files"
    if report.status == STATUS_FAILED:
        return f"AI review failed: 0/{report.eligible} files analyzed"
    return f"AI review completed: {report.analyzed}/{report.eligible} files analyzed"


def final_state(report: ReviewReport) -> str:
    return STATE_FAILED if report.status == STATUS_FAILED else STATE_SUCCESS


class ReviewPublisher:
    """Posts the rendered report and keeps the commit status in step with the review."""

    def __init__(self, source_control: SourceControl):
        self.source_control = source_control

    async def mark_running(self, ref: ReviewRef) -> None:
        """Best-effort: a failure here is logged, not fatal. The final status still matters."""
        try:
            await self.source_control.set_commit_status(ref, STATE_RUNNING, "AI code review in progress...")
        except SourceControlError as e:
            logger.warning("Could not set running status on %s: %s", ref, e)

    async def mark_failed(self, ref: ReviewRef, description: str) -> None:
        try:
            await self.source_control.set_commit_status(ref, STATE_FAILED, description)
        except SourceControlError as e:
            logger.error("Could not set failed status on %s: %s", ref, e)

    async def publish(self, ref: ReviewRef, report: ReviewReport) -> str:
        body = render_report(report)
        try:
            await self.source_control.post_comment(ref, body)
        except SourceControlError as e:
            logger.error("Failed to post review on %s: %s", ref, e)
            await self.mark_failed(ref, "AI review could not be posted - check logs")
            raise PublishError(f"Could not post review: {e}", status=e.status) from e

        try:
            await self.source_control.set_commit_status(ref, final_state(report), status_description(report))
        except SourceControlError as e:
            logger.error("Failed to set commit status on %s: %s", ref, e)
            raise PublishError(f"Could not set commit status: {e}", status=e.status) from e

        logger.info("Review posted on %s: %s", ref, report.status)
        return body
