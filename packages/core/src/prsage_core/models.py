"""Value objects passed between the pipeline stages.

Every type here is a frozen dataclass: a ChangeSet is created once per review
invocation and nothing downstream mutates it, so stages can share instances
freely (including across concurrently running file analyses).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

ORIGIN_REMOTE = "remote"
ORIGIN_LOCAL = "local"
ORIGIN_NONE = "none"

STATUS_SUCCESS = "success"
STATUS_PARTIAL = "partial"
STATUS_EMPTY = "empty"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class ReviewRef:
    """Identifies one change under review on the source-control host."""

    repo: str  # "owner/name"
    number: int

    def __str__(self) -> str:
        return f"{self.repo}#{self.number}"


@dataclass(frozen=True)
class FileChange:
    path: str
    diff: str = ""
    deleted: bool = False

    @property
    def diff_size(self) -> int:
        return len(self.diff)


@dataclass(frozen=True)
class ChangeSet:
    files: tuple[FileChange, ...] = ()

    def __post_init__(self):
        seen: set[str] = set()
        for change in self.files:
            if change.path in seen:
                raise ValueError(f"Duplicate path in change set: {change.path!r}")
            seen.add(change.path)

    @classmethod
    def of(cls, *files: FileChange) -> ChangeSet:
        return cls(files=tuple(files))

    def __len__(self) -> int:
        return len(self.files)


@dataclass(frozen=True)
class EligibleFile:
    """A FileChange that passed classification, tagged with its language (None if unknown)."""

    change: FileChange
    language: str | None = None

    @property
    def path(self) -> str:
        return self.change.path

    @property
    def diff(self) -> str:
        return self.change.diff


@dataclass(frozen=True)
class ContextSource:
    name: str
    content: str = ""


@dataclass(frozen=True)
class ContextResult:
    answer: str | None = None
    sources: tuple[ContextSource, ...] = ()
    origin: str = ORIGIN_NONE

    def __post_init__(self):
        if self.origin not in (ORIGIN_REMOTE, ORIGIN_LOCAL, ORIGIN_NONE):
            raise ValueError(f"Unknown context origin: {self.origin!r}")
        if self.origin == ORIGIN_NONE and self.answer is not None:
            raise ValueError("A ContextResult with origin 'none' cannot carry an answer.")
        if self.origin != ORIGIN_NONE and self.sources and self.answer is None:
            raise ValueError("A sourced ContextResult must carry an answer.")

    @classmethod
    def empty(cls) -> ContextResult:
        return cls()

    @property
    def found(self) -> bool:
        return self.origin != ORIGIN_NONE and bool(self.answer)


@dataclass(frozen=True)
class ReviewMetadata:
    """Change-level information shared by every file's analysis request."""

    title: str = ""
    description: str = ""
    conversation_id: str | None = None
    head_sha: str | None = None


@dataclass(frozen=True)
class AnalysisRequest:
    file_path: str
    diff: str
    language: str | None = None
    context: str | None = None
    metadata: ReviewMetadata = field(default_factory=ReviewMetadata)
    checklist: tuple[str, ...] = ()


@dataclass(frozen=True)
class AnalysisResult:
    text: str
    conversation_id: str | None = None
    message_id: str | None = None


@dataclass(frozen=True)
class AnalysisOutcome:
    """Per-file result of the dispatcher. Exactly one of review / error is set."""

    path: str
    language: str | None = None
    review: str | None = None
    error: str | None = None
    had_context: bool = False
    sources: tuple[ContextSource, ...] = ()

    def __post_init__(self):
        if (self.review is None) == (self.error is None):
            raise ValueError("AnalysisOutcome needs exactly one of review or error.")

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class SkippedFile:
    path: str
    reason: str  # "deleted" | "pattern" | "binary" | "size" | "empty" | "file_limit"


@dataclass(frozen=True)
class ReviewReport:
    outcomes: tuple[AnalysisOutcome, ...]
    total_changed: int
    eligible: int
    analyzed: int
    failed: int
    elapsed: float
    status: str
    skipped: tuple[SkippedFile, ...] = ()
    timed_out: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status in (STATUS_SUCCESS, STATUS_EMPTY)


@dataclass(frozen=True)
class ReviewRequest:
    ref: ReviewRef
    conversation_id: str | None = None


@dataclass(frozen=True)
class ReviewReceipt:
    review_id: str
    ref: ReviewRef
    accepted_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
