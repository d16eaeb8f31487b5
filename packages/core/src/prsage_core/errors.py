"""Error taxonomy for the review pipeline.

Only ``PublishError`` and ``ReviewError`` ever reach the caller of
``ReviewPipeline.run_pipeline``. Analysis and retrieval errors are caught at
the file level and folded into the report.
"""

from __future__ import annotations


class PrsageError(Exception):
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class AnalysisError(PrsageError):
    """A single file's analysis call failed (timeout, remote fault, bad input)."""


class RetrievalError(PrsageError):
    """A context retrieval tier failed. Never propagated past ContextRetriever."""


class SourceControlError(PrsageError):
    """The source-control host rejected or failed a request."""


class PublishError(SourceControlError):
    """The aggregated report could not be posted or the final status not set."""


class ReviewError(PrsageError):
    """The review could not start, e.g. the change set could not be fetched."""
