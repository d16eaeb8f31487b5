"""Two-tier best-practice context retrieval with caching.

Lookup order for a file:
    cache → remote knowledge service → local document tree → empty result

Retrieval is an enrichment, never a requirement: ``retrieve`` always returns
a ContextResult and never raises. A degraded tier is logged and the next tier
is tried.
"""

from __future__ import annotations

import logging
from typing import Protocol

from prsage_core.errors import RetrievalError
from prsage_core.knowledge.cache import ContextCache, cache_key
from prsage_core.knowledge.local import LocalKnowledgeBase
from prsage_core.knowledge.rules import TOPIC_QUERIES, build_query, derive_category
from prsage_core.models import ORIGIN_REMOTE, ContextResult, ContextSource

logger = logging.getLogger(__name__)


class KnowledgeSource(Protocol):
    async def query(self, category: str, text: str) -> dict | None: ...


class ContextRetriever:
    def __init__(
        self,
        remote: KnowledgeSource | None = None,
        local: LocalKnowledgeBase | None = None,
        cache: ContextCache | None = None,
    ):
        self.remote = remote
        self.local = local
        self.cache = cache if cache is not None else ContextCache()

    async def retrieve(self, file_path: str, diff: str) -> ContextResult:
        category = derive_category(file_path)
        query = build_query(file_path, diff)
        return await self.lookup(category, query, label=file_path)

    async def lookup(self, category: str, query: str, label: str = "") -> ContextResult:
        key = cache_key(category, query)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Context cache hit for %s (%s)", label, category)
            return cached

        result = await self._from_remote(category, query, label)
        if result is None:
            result = await self._from_local(category, query, label)
        if result is None:
            logger.info("No best-practice context for %s (%s)", label, category)
            return ContextResult.empty()

        self.cache.put(key, result)
        return result

    async def _from_remote(self, category: str, query: str, label: str) -> ContextResult | None:
        if self.remote is None:
            return None
        try:
            payload = await self.remote.query(category, query)
        except RetrievalError as e:
            logger.warning("Remote knowledge unavailable for %s, using local fallback: %s", label, e)
            return None
        except Exception as e:
            logger.warning("Unexpected remote knowledge failure for %s: %s", label, e)
            return None

        if not payload or not payload.get("answer"):
            logger.debug("Remote knowledge had nothing for %s (%s)", label, category)
            return None

        sources = tuple(
            ContextSource(name=s.get("name", ""), content=s.get("content", "")) for s in payload.get("sources", [])
        )
        logger.info("Context for %s retrieved remotely (%s, %d source(s))", label, category, len(sources))
        return ContextResult(answer=payload["answer"], sources=sources, origin=ORIGIN_REMOTE)

    async def _from_local(self, category: str, query: str, label: str) -> ContextResult | None:
        if self.local is None:
            return None
        try:
            result = await self.local.search(query, category)
        except RetrievalError as e:
            logger.warning("Local knowledge also failed for %s: %s", label, e)
            return None
        except Exception as e:
            logger.warning("Unexpected local knowledge failure for %s: %s", label, e)
            return None

        if result is not None:
            logger.info(
                "Context for %s retrieved from local files (%s, %d source(s))", label, category, len(result.sources)
            )
        return result

    async def best_practice(self, topic: str) -> str | None:
        """Return best-practice guidance for a named topic, or None for unknown topics."""
        query = TOPIC_QUERIES.get(topic)
        if query is None:
            logger.warning("Unknown best practice topic: %s", topic)
            return None

        result = await self._from_remote("general", query, label=topic)
        if result is not None:
            return result.answer
        if self.local is None:
            return None
        try:
            return await self.local.best_practice(topic)
        except RetrievalError as e:
            logger.warning("Could not read best practice %s: %s", topic, e)
            return None
