from __future__ import annotations

try:
    from openai import AsyncOpenAI as _AsyncOpenAI
except ImportError:
    _AsyncOpenAI = None  # type: ignore[assignment,misc]

from prsage_core.models import AnalysisRequest, AnalysisResult
from prsage_core.providers.base import BaseAnalyzer


class OpenAIAnalyzer(BaseAnalyzer):
    MODEL = "gpt-4o"
    TEMPERATURE = 0.2

    def __init__(self, api_key: str):
        if _AsyncOpenAI is None:
            raise ImportError(
                "The 'openai' package is required for this provider. " "Install it with: pip install 'prsage[openai]'"
            )
        self.client = _AsyncOpenAI(api_key=api_key)

    async def _call_api(self, system_prompt: str, user_prompt: str, request: AnalysisRequest) -> AnalysisResult:
        response = await self.client.chat.completions.create(
            model=self.MODEL,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        return AnalysisResult(text=(response.choices[0].message.content or "").strip(), message_id=response.id)

    async def aclose(self) -> None:
        await self.client.close()
