from __future__ import annotations

from prsage_core.models import AnalysisRequest, AnalysisResult
from prsage_core.providers.base import BaseAnalyzer


class AnthropicAnalyzer(BaseAnalyzer):
    MODEL = "claude-sonnet-4-20250514"
    # Free-form markdown reviews read better with a little more variety than
    # structured output would tolerate.
    TEMPERATURE = 0.3

    def __init__(self, api_key: str):
        try:
            from anthropic import AsyncAnthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'prsage[anthropic]'"
            )
        self.client = AsyncAnthropic(api_key=api_key)

    async def _call_api(self, system_prompt: str, user_prompt: str, request: AnalysisRequest) -> AnalysisResult:
        # __init__ already validated the package is installed.
        from anthropic.types import TextBlock

        response = await self.client.messages.create(
            model=self.MODEL,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return AnalysisResult(text="".join(text_blocks).strip(), message_id=getattr(response, "id", None))

    async def aclose(self) -> None:
        await self.client.close()
