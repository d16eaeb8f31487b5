"""Core review orchestration.

One review invocation runs:
    running status → fetch change set → classify → dispatch (batched)
    → aggregate → post report + final status

``acknowledge`` and ``run_pipeline`` are split so that a caller who must
answer quickly (a webhook, for instance) can hand back a receipt and schedule
the slow part without awaiting it.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
import uuid

from prsage_core.aggregator import ReviewPublisher, SourceControl, aggregate
from prsage_core.classifier import classify
from prsage_core.config import ReviewOptions, knowledge_dir
from prsage_core.dispatcher import AnalysisDispatcher, Analyzer, DispatchResult
from prsage_core.errors import ReviewError, SourceControlError
from prsage_core.gh.pull_request import GitHubSourceControl, get_repo
from prsage_core.knowledge.cache import ContextCache
from prsage_core.knowledge.local import LocalKnowledgeBase
from prsage_core.knowledge.remote import DifyKnowledgeClient
from prsage_core.knowledge.retriever import ContextRetriever
from prsage_core.models import ReviewReceipt, ReviewRef, ReviewReport, ReviewRequest
from prsage_core.providers.anthropic import AnthropicAnalyzer
from prsage_core.providers.base import BaseAnalyzer
from prsage_core.providers.dify import DifyAnalyzer
from prsage_core.providers.openai import OpenAIAnalyzer

logger = logging.getLogger(__name__)


def validate_request(request: ReviewRequest) -> None:
    """Raise ValueError unless the request names owner/name and a positive change number."""
    owner, _, name = request.ref.repo.partition("/")
    if not owner or not name or "/" in name:
        raise ValueError(f"Repository must be in owner/name format, got {request.ref.repo!r}")
    if isinstance(request.ref.number, bool) or not isinstance(request.ref.number, int) or request.ref.number < 1:
        raise ValueError(f"Change number must be a positive integer, got {request.ref.number!r}")


class ReviewPipeline:
    def __init__(
        self,
        source_control: SourceControl,
        analyzer: Analyzer,
        options: ReviewOptions | None = None,
        retriever: ContextRetriever | None = None,
    ):
        self.options = options or ReviewOptions()
        self.source_control = source_control
        self.retriever = retriever if self.options.rag_enabled else None
        self.dispatcher = AnalysisDispatcher(
            analyzer,
            self.retriever,
            batch_size=self.options.batch_size,
            no_context_categories=self.options.no_context_categories,
        )
        self.publisher = ReviewPublisher(source_control)

    def acknowledge(self, request: ReviewRequest) -> ReviewReceipt:
        """Validate a review request and return a receipt. Does no I/O."""
        validate_request(request)
        receipt = ReviewReceipt(review_id=uuid.uuid4().hex, ref=request.ref)
        logger.info("Accepted review %s for %s", receipt.review_id, request.ref)
        return receipt

    async def run_pipeline(self, request: ReviewRequest) -> ReviewReport:
        """Run one review end to end and return the published report.

        File-level failures end up inside the report. Only a failure to fetch
        the change (ReviewError) or to publish the result (PublishError) is
        raised.
        """
        ref = request.ref
        start = time.monotonic()
        deadline = start + self.options.review_timeout if self.options.review_timeout else None
        logger.info("Starting review of %s", ref)

        await self.publisher.mark_running(ref)
        try:
            change_set = await self.source_control.get_change_set(ref)
            metadata = await self.source_control.get_metadata(ref)
        except SourceControlError as e:
            logger.error("Could not fetch change %s: %s", ref, e)
            await self.publisher.mark_failed(ref, "AI review failed - check logs")
            raise ReviewError(f"Review failed: {e}", status=e.status) from e

        if request.conversation_id:
            metadata = dataclasses.replace(metadata, conversation_id=request.conversation_id)

        classification = classify(change_set, self.options)
        logger.info(
            "%d of %d changed file(s) eligible for review", len(classification.eligible), classification.total_changed
        )

        if classification.eligible:
            result = await self.dispatcher.dispatch_all(classification.eligible, metadata, deadline=deadline)
        else:
            result = DispatchResult(outcomes=())

        report = aggregate(result.outcomes, classification, time.monotonic() - start, result.timed_out)
        await self.publisher.publish(ref, report)
        logger.info(
            "Review of %s finished: %s (%d analyzed, %d failed, %.1fs)",
            ref,
            report.status,
            report.analyzed,
            report.failed,
            report.elapsed,
        )
        return report


def build_analyzer(config: dict) -> BaseAnalyzer:
    model = config["model"]
    if model == "anthropic":
        return AnthropicAnalyzer(api_key=config["anthropic_api_key"])
    if model == "openai":
        return OpenAIAnalyzer(api_key=config["openai_api_key"])
    if model == "dify":
        return DifyAnalyzer(
            api_key=config["dify_api_key"],
            base_url=config["dify_api_url"],
            user=config.get("dify_user", "prsage-bot"),
        )
    raise ValueError(f"Unknown model provider: {model!r}. Choose 'anthropic', 'openai' or 'dify'.")


def build_retriever(config: dict, options: ReviewOptions) -> ContextRetriever:
    """Remote tier only when a Dify key is configured; the local tree is always available."""
    remote = None
    if config.get("dify_api_key"):
        remote = DifyKnowledgeClient(
            api_key=config["dify_api_key"],
            base_url=config["dify_api_url"],
            knowledge_base=config.get("knowledge_base", "frontend-best-practices"),
            user=config.get("dify_user", "prsage-bot"),
        )
    return ContextRetriever(
        remote=remote,
        local=LocalKnowledgeBase(knowledge_dir(config)),
        cache=ContextCache(capacity=options.cache_capacity, ttl=options.cache_ttl),
    )


async def _run(pipeline: ReviewPipeline, request: ReviewRequest, analyzer: BaseAnalyzer) -> ReviewReport:
    try:
        return await pipeline.run_pipeline(request)
    finally:
        await analyzer.aclose()
        remote = pipeline.retriever.remote if pipeline.retriever else None
        if isinstance(remote, DifyKnowledgeClient):
            await remote.aclose()


def run_review(
    repo: str,
    pr_number: int,
    config: dict,
    conversation_id: str | None = None,
    repo_obj=None,
    source_control: SourceControl | None = None,
) -> ReviewReport:
    """Build a pipeline from configuration and run one review to completion.

    ``source_control`` replaces the GitHub adapter entirely (shadow mode
    passes a wrapper that prints instead of posting).
    """
    request = ReviewRequest(ref=ReviewRef(repo=repo, number=pr_number), conversation_id=conversation_id)
    # Reject a bad reference before any client or connection exists.
    validate_request(request)

    options = ReviewOptions.from_config(config)
    if source_control is None:
        this_repo = repo_obj if repo_obj is not None else get_repo(repo, token=config["github_token"])
        source_control = GitHubSourceControl(this_repo, status_context=config.get("status_context", "prsage/ai-review"))

    analyzer = build_analyzer(config)
    retriever = build_retriever(config, options) if options.rag_enabled else None
    pipeline = ReviewPipeline(source_control, analyzer, options, retriever)
    pipeline.acknowledge(request)
    return asyncio.run(_run(pipeline, request, analyzer))