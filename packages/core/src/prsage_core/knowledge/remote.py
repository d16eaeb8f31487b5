"""Remote knowledge tier backed by a Dify knowledge-base application."""

from __future__ import annotations

import logging

import httpx

from prsage_core.errors import RetrievalError
from prsage_core.utils.http import dify_client, status_of

logger = logging.getLogger(__name__)


class DifyKnowledgeClient:
    """Query a Dify app that answers from a best-practices knowledge base.

    ``query`` returns ``None`` when the service has nothing relevant to say and
    raises ``RetrievalError`` on transport or HTTP failures. Telling the two
    apart lets the retriever log a degraded remote tier separately.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.dify.ai/v1",
        knowledge_base: str = "frontend-best-practices",
        user: str = "prsage-bot",
        client: httpx.AsyncClient | None = None,
    ):
        if not api_key and client is None:
            raise ValueError("DifyKnowledgeClient requires an API key.")
        self.knowledge_base = knowledge_base
        self.user = user
        self.client = client if client is not None else dify_client(api_key, base_url)

    async def query(self, category: str, text: str) -> dict | None:
        payload = {
            "inputs": {"category": category, "knowledge_base": self.knowledge_base},
            "query": f"Based on best practices: {text}",
            "response_mode": "blocking",
            "user": self.user,
        }
        try:
            response = await self.client.post("/chat-messages", json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RetrievalError(f"Knowledge query failed: {e}", status=status_of(e)) from e

        answer = (data.get("answer") or "").strip()
        resources = (data.get("metadata") or {}).get("retriever_resources") or []
        logger.debug("Knowledge query for %s returned %d document(s)", category, len(resources))
        if not answer:
            return None

        return {
            "answer": answer,
            "sources": [
                {"name": r.get("document_name") or r.get("dataset_name") or "unknown", "content": r.get("content", "")}
                for r in resources
            ],
            "message_id": data.get("message_id"),
        }

    async def aclose(self) -> None:
        await self.client.aclose()
