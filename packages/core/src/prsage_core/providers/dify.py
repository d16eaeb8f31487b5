from __future__ import annotations

import httpx

from prsage_core.models import AnalysisRequest, AnalysisResult
from prsage_core.providers.base import BaseAnalyzer
from prsage_core.utils.http import dify_client


class DifyAnalyzer(BaseAnalyzer):
    """Analyzer backed by a Dify chat app in blocking mode.

    Dify keeps conversation state server-side, so the request's conversation id
    is forwarded and the one Dify returns is surfaced on the result.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.dify.ai/v1",
        user: str = "prsage-bot",
        client: httpx.AsyncClient | None = None,
    ):
        if not api_key and client is None:
            raise ValueError("DifyAnalyzer requires an API key.")
        self.user = user
        self.client = client if client is not None else dify_client(api_key, base_url)

    async def _call_api(self, system_prompt: str, user_prompt: str, request: AnalysisRequest) -> AnalysisResult:
        meta = request.metadata
        response = await self.client.post(
            "/chat-messages",
            json={
                "inputs": {
                    "file_name": request.file_path,
                    "language": request.language or "auto-detect",
                    "change_title": meta.title,
                    "change_description": meta.description,
                    "best_practices": request.context or "",
                },
                "query": f"{system_prompt}\n\n{user_prompt}",
                "response_mode": "blocking",
                "user": self.user,
                "conversation_id": meta.conversation_id or "",
            },
        )
        response.raise_for_status()
        data = response.json()
        return AnalysisResult(
            text=(data.get("answer") or "").strip(),
            conversation_id=data.get("conversation_id"),
            message_id=data.get("message_id"),
        )

    async def aclose(self) -> None:
        await self.client.aclose()
