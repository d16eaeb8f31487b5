"""Base analyzer implementing the Template Method pattern.

All providers share the same analysis algorithm:
    analyze() → _build_system_prompt() + _build_user_prompt()
              → _call_with_retry() → _call_api()   ← only this differs per provider

Subclasses implement two things only:
  - __init__: validate and store the SDK / HTTP client
  - _call_api: make one raw API call and return an AnalysisResult

Unlike a best-effort enrichment, a failed analysis must be visible in the
report, so exhausted retries raise AnalysisError instead of returning nothing.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from prsage_core.errors import AnalysisError
from prsage_core.models import AnalysisRequest, AnalysisResult
from prsage_core.utils.code import is_frontend_language
from prsage_core.utils.http import status_of

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_TOKENS = 4096

_FRONTEND_CHECKS = """
**Frontend-Specific Checks:**
- Accessibility (WCAG compliance, ARIA labels, keyboard navigation)
- Responsive design considerations
- State management patterns
- Component reusability
- Browser compatibility
- Bundle size impact
"""


class BaseAnalyzer(ABC):
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS
    RETRY_BASE_DELAY: float = 1.0

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """Review one file's diff and return the model's review text.

        Raises AnalysisError when the request is unusable or the provider keeps
        failing after MAX_RETRIES attempts.
        """
        if not request.diff or not request.diff.strip():
            raise AnalysisError(f"Empty diff for {request.file_path}", status=400)

        system = self._build_system_prompt()
        user = self._build_user_prompt(request)
        result = await self._call_with_retry(system, user, request)
        if not result.text or not result.text.strip():
            raise AnalysisError(f"{self.__class__.__name__} returned an empty review for {request.file_path}")
        return result

    async def aclose(self) -> None:
        """Release network resources. Providers holding a client override this."""

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def _call_api(self, system_prompt: str, user_prompt: str, request: AnalysisRequest) -> AnalysisResult:
        """Make a single API call and return the parsed result.

        It should raise on failure; _call_with_retry handles retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    async def _call_with_retry(self, system_prompt: str, user_prompt: str, request: AnalysisRequest) -> AnalysisResult:
        """Retry _call_api up to MAX_RETRIES times with exponential backoff."""
        for attempt in range(self.MAX_RETRIES):
            try:
                return await self._call_api(system_prompt, user_prompt, request)
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts for %s: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        request.file_path,
                        e,
                    )
                    raise AnalysisError(f"Analysis failed: {e}", status=status_of(e)) from e
                delay = self.RETRY_BASE_DELAY * 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ss...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)
        raise AnalysisError("MAX_RETRIES must be at least 1")

    def _build_system_prompt(self) -> str:
        return """You are an expert code reviewer. Analyze code changes carefully and give
clear, actionable, constructive feedback. Avoid assumptions when context is unclear."""

    def _build_user_prompt(self, request: AnalysisRequest) -> str:
        """Build the per-file prompt: context, diff, optional best practices and checklist."""
        meta = request.metadata
        context_lines = [f"- File: {request.file_path}", f"- Language: {request.language or 'auto-detect'}"]
        if meta.title:
            context_lines.append(f"- Change Title: {meta.title}")
        if meta.description:
            context_lines.append(f"- Change Description: {meta.description}")

        best_practices = ""
        if request.context:
            best_practices = f"\n**Best Practices Reference:**\n{request.context}\n"

        checklist = ""
        if request.checklist:
            items = "\n".join(f"- [ ] {item}" for item in request.checklist)
            checklist = f"\n**Checklist:**\n{items}\n"

        frontend = _FRONTEND_CHECKS if is_frontend_language(request.language) else ""

        return f"""Analyze the following code changes.

**Context:**
{chr(10).join(context_lines)}

**Changes:**
```diff
{request.diff}
```
{best_practices}{checklist}
**Review Guidelines:**
Provide a detailed code review covering:

1. **Bugs & Errors**: Identify potential bugs, logic errors, or edge cases
2. **Security**: Highlight security vulnerabilities or concerns
3. **Performance**: Suggest optimizations and performance improvements
4. **Code Quality**: Comment on code structure, naming, and maintainability
5. **Best Practices**: Verify adherence to language-specific best practices
6. **Testing**: Identify missing tests or test scenarios
7. **Documentation**: Note missing or unclear documentation
{frontend}
**Format:**
- Use clear, actionable feedback
- Prioritize issues by severity (Critical, Major, Minor)
- Provide code examples for suggestions
- Use GitHub-flavored markdown"""
