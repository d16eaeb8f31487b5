"""Decide which changed files are eligible for review.

Classification is a pure function of the change set and the options: it never
touches the network and never raises for a well-formed change set. Every file
either ends up in ``eligible`` or in ``skipped`` with a reason, so
``len(eligible) + len(skipped) == total_changed`` always holds.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from prsage_core.config import ReviewOptions
from prsage_core.models import ChangeSet, EligibleFile, SkippedFile
from prsage_core.utils.code import detect_language, is_binary_file

logger = logging.getLogger(__name__)

SKIP_DELETED = "deleted"
SKIP_PATTERN = "pattern"
SKIP_BINARY = "binary"
SKIP_SIZE = "size"
SKIP_FILE_LIMIT = "file_limit"
SKIP_EMPTY = "empty"


@dataclass(frozen=True)
class SubstringPattern:
    """Matches any path containing ``text``."""

    text: str

    def matches(self, path: str) -> bool:
        return self.text in path


@dataclass(frozen=True)
class GlobPattern:
    """Single-wildcard glob: the first ``*`` matches any run of characters.

    The match is unanchored, like a regex search: "*.lock" matches
    "web/yarn.lock" and "dist/*" matches "app/dist/main.js".
    """

    prefix: str
    suffix: str

    @property
    def regex(self) -> str:
        return re.escape(self.prefix) + ".*" + re.escape(self.suffix)

    def matches(self, path: str) -> bool:
        return re.search(self.regex, path) is not None


def parse_pattern(pattern: str) -> SubstringPattern | GlobPattern:
    if "*" in pattern:
        prefix, suffix = pattern.split("*", 1)
        return GlobPattern(prefix=prefix, suffix=suffix)
    return SubstringPattern(text=pattern)


@dataclass(frozen=True)
class Classification:
    eligible: tuple[EligibleFile, ...]
    skipped: tuple[SkippedFile, ...]
    total_changed: int

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


def _skip_reason(change, matchers, max_diff_size: int) -> str | None:
    if change.deleted:
        return SKIP_DELETED
    if any(m.matches(change.path) for m in matchers):
        return SKIP_PATTERN
    if is_binary_file(change.path):
        return SKIP_BINARY
    if change.diff_size > max_diff_size:
        return SKIP_SIZE
    if not change.diff:
        # No patch text: GitHub omits it for renames without edits and very large files.
        return SKIP_EMPTY
    return None


def classify(change_set: ChangeSet, options: ReviewOptions) -> Classification:
    matchers = [parse_pattern(p) for p in options.skip_patterns if p]
    eligible: list[EligibleFile] = []
    skipped: list[SkippedFile] = []

    for change in change_set.files:
        reason = _skip_reason(change, matchers, options.max_diff_size)
        if reason == SKIP_SIZE:
            logger.warning(
                "Diff too large, skipping %s (%d > %d chars)", change.path, change.diff_size, options.max_diff_size
            )
        elif reason is not None:
            logger.debug("Skipping %s (%s)", change.path, reason)
        elif len(eligible) >= options.max_files:
            reason = SKIP_FILE_LIMIT

        if reason is None:
            eligible.append(EligibleFile(change=change, language=detect_language(change.path)))
        else:
            skipped.append(SkippedFile(path=change.path, reason=reason))

    over_limit = sum(1 for s in skipped if s.reason == SKIP_FILE_LIMIT)
    if over_limit:
        logger.warning("File limit exceeded: reviewing %d file(s), %d left out", len(eligible), over_limit)

    return Classification(eligible=tuple(eligible), skipped=tuple(skipped), total_changed=len(change_set))
