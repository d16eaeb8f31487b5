"""Bounded-concurrency fan-out of per-file analysis calls.

Files are analysed in fixed-size batches: batches run one after another, the
files inside a batch run concurrently. A batch's results are folded back in
file order before the next batch starts, so output order always matches input
order regardless of which call finishes first.

A file's failure is recorded on its AnalysisOutcome and never cancels sibling
calls. An optional deadline stops new batches from starting; batches already
in flight are allowed to finish, and the files never started are reported
back as timed out.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Iterable, Protocol

from prsage_core.errors import AnalysisError
from prsage_core.knowledge.retriever import ContextRetriever
from prsage_core.knowledge.rules import checklist_for, derive_category
from prsage_core.models import (
    AnalysisOutcome,
    AnalysisRequest,
    AnalysisResult,
    ContextResult,
    EligibleFile,
    ReviewMetadata,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 3


class Analyzer(Protocol):
    async def analyze(self, request: AnalysisRequest) -> AnalysisResult: ...


@dataclass(frozen=True)
class DispatchResult:
    outcomes: tuple[AnalysisOutcome, ...]
    timed_out: tuple[str, ...] = ()
    batches: int = 0


def batched(files: list[EligibleFile], size: int) -> list[list[EligibleFile]]:
    return [files[i : i + size] for i in range(0, len(files), size)]


class AnalysisDispatcher:
    def __init__(
        self,
        analyzer: Analyzer,
        retriever: ContextRetriever | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        no_context_categories: Iterable[str] = (),
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.analyzer = analyzer
        self.retriever = retriever
        self.batch_size = batch_size
        self.no_context_categories = frozenset(no_context_categories)

    async def dispatch_all(
        self,
        files: list[EligibleFile] | tuple[EligibleFile, ...],
        metadata: ReviewMetadata,
        deadline: float | None = None,
    ) -> DispatchResult:
        """Analyse every file and return one outcome per started file, in input order.

        ``deadline`` is a ``time.monotonic()`` timestamp. It is checked only
        between batches.
        """
        batches = batched(list(files), self.batch_size)
        outcomes: list[AnalysisOutcome] = []
        timed_out: list[str] = []
        started = 0

        for index, batch in enumerate(batches, 1):
            if deadline is not None and time.monotonic() >= deadline:
                timed_out = [f.path for b in batches[index - 1 :] for f in b]
                logger.warning("Review deadline reached; %d file(s) not started", len(timed_out))
                break

            logger.info("Analyzing batch %d/%d (%d file(s))", index, len(batches), len(batch))
            settled = await asyncio.gather(*(self.analyze_file(f, metadata) for f in batch), return_exceptions=True)
            started += 1

            # Positional fold: settled[i] always belongs to batch[i].
            for file, result in zip(batch, settled):
                if isinstance(result, BaseException):
                    if not isinstance(result, Exception):
                        raise result
                    logger.error("Unexpected failure analyzing %s: %s", file.path, result)
                    result = AnalysisOutcome(path=file.path, language=file.language, error=str(result) or repr(result))
                outcomes.append(result)

        return DispatchResult(outcomes=tuple(outcomes), timed_out=tuple(timed_out), batches=started)

    async def _context_for(self, file: EligibleFile, category: str) -> ContextResult:
        if self.retriever is None or category in self.no_context_categories:
            return ContextResult.empty()
        return await self.retriever.retrieve(file.path, file.diff)

    async def analyze_file(self, file: EligibleFile, metadata: ReviewMetadata) -> AnalysisOutcome:
        """Analyse one file. Never raises for analysis failures: they become the outcome's error."""
        category = derive_category(file.path)
        context = await self._context_for(file, category)
        request = AnalysisRequest(
            file_path=file.path,
            diff=file.diff,
            language=file.language,
            context=context.answer if context.found else None,
            metadata=metadata,
            checklist=tuple(checklist_for(category)),
        )

        logger.debug("Analyzing %s (%s, context: %s)", file.path, file.language or "unknown", context.origin)
        try:
            result = await self.analyzer.analyze(request)
        except AnalysisError as e:
            status = f" (status {e.status})" if e.status else ""
            logger.error("Analysis failed for %s%s: %s", file.path, status, e)
            return AnalysisOutcome(path=file.path, language=file.language, error=f"{e}{status}")

        return AnalysisOutcome(
            path=file.path,
            language=file.language,
            review=result.text,
            had_context=context.found,
            sources=context.sources,
        )
