"""Local fallback knowledge source: a read-only tree of Markdown documents.

Layout is ``<root>/<category>/<document>.md``. Relevance is deliberately
approximate: documents are picked by filename/keyword overlap and sections by
keyword presence, with no ranking beyond "first matches win".
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path

from prsage_core.errors import RetrievalError
from prsage_core.knowledge.rules import DEFAULT_CATEGORY, query_keywords, topic_keywords
from prsage_core.models import ORIGIN_LOCAL, ContextResult, ContextSource

logger = logging.getLogger(__name__)

_MAX_DOCUMENTS = 3
_FALLBACK_CHARS = 1_000
_MAX_ANSWER_CHARS = 2_000
_SOURCE_EXCERPT_CHARS = 200
_DOCUMENT_SEPARATOR = "\n\n---\n\n"

TOPIC_DOCUMENTS = {
    "react-hooks": "react/react-hooks.md",
    "react": "react/react-hooks.md",
    "accessibility": "frontend/accessibility.md",
    "performance": "frontend/performance.md",
    "security": "security/security.md",
    "api-design": "api/api-design.md",
    "error-handling": "general/error-handling.md",
}

# Categories whose material lives in a shared directory of the tree.
CATEGORY_DIRECTORIES = {
    "vue": "frontend",
    "angular": "frontend",
    "css": "frontend",
    "html": "frontend",
}


def _name_tokens(path: Path) -> set[str]:
    return {t for t in re.split(r"[^a-z0-9]+", path.stem.lower()) if t}


def extract_relevant_sections(content: str, query: str) -> str:
    """Keep the heading-delimited sections whose heading or body mentions a query keyword.

    Falls back to the first ~1000 characters when nothing matches.
    """
    keywords = query_keywords(query)
    sections: list[str] = []
    current: list[str] = []
    relevant = False

    for line in content.split("\n"):
        lowered = line.lower()
        if line.startswith("#"):
            if relevant and current:
                sections.append("\n".join(current))
            current = [line]
            relevant = any(k in lowered for k in keywords)
        else:
            current.append(line)
            if not relevant and any(k in lowered for k in keywords):
                relevant = True

    if relevant and current:
        sections.append("\n".join(current))

    if not sections:
        return content[:_FALLBACK_CHARS] + ("..." if len(content) > _FALLBACK_CHARS else "")
    return _DOCUMENT_SEPARATOR.join(sections)[:_MAX_ANSWER_CHARS]


class LocalKnowledgeBase:
    def __init__(self, root: Path | str, max_documents: int = _MAX_DOCUMENTS):
        self.root = Path(root)
        self.max_documents = max_documents
        self._documents: dict[Path, str] = {}

    def _all_documents(self, directory: Path) -> list[Path]:
        return sorted(p for p in directory.rglob("*.md") if p.is_file())

    def candidate_documents(self, query: str, category: str) -> list[Path]:
        """Pick up to ``max_documents`` documents for a query within a category.

        Documents whose filename tokens overlap the query keywords come first;
        without any such match the first documents of the category are used.
        A category with no directory matches names across the whole tree and
        otherwise falls back to the general documents.
        """
        category_dir = self.root / CATEGORY_DIRECTORIES.get(category, category)
        if category_dir.is_dir():
            documents = fallback = self._all_documents(category_dir)
        else:
            documents = self._all_documents(self.root)
            general_dir = self.root / DEFAULT_CATEGORY
            fallback = self._all_documents(general_dir) if general_dir.is_dir() else documents
        keywords = topic_keywords(query)
        named = [doc for doc in documents if _name_tokens(doc) & keywords]
        return (named or fallback)[: self.max_documents]

    def _select(self, query: str, category: str) -> list[Path]:
        if not self.root.is_dir():
            raise RetrievalError(f"Local knowledge base not found: {self.root}")
        return self.candidate_documents(query, category)

    def _read(self, path: Path) -> str:
        if path not in self._documents:
            self._documents[path] = path.read_text(encoding="utf-8")
        return self._documents[path]

    async def _read_all(self, paths: list[Path]) -> list[str]:
        try:
            return await asyncio.gather(*(asyncio.to_thread(self._read, p) for p in paths))
        except OSError as e:
            raise RetrievalError(f"Could not read local knowledge document: {e}") from e

    async def search(self, query: str, category: str) -> ContextResult | None:
        """Return a local ContextResult, or None when the tree has nothing for this query.

        Raises RetrievalError when the tree cannot be read.
        """
        # Directory scans block as much as reads do.
        documents = await asyncio.to_thread(self._select, query, category)
        if not documents:
            return None

        contents = await self._read_all(documents)
        combined = _DOCUMENT_SEPARATOR.join(c for c in contents if c.strip())
        if not combined:
            return None

        sources = tuple(
            ContextSource(name=doc.name, content=content[:_SOURCE_EXCERPT_CHARS] + "...")
            for doc, content in zip(documents, contents)
        )
        return ContextResult(
            answer=extract_relevant_sections(combined, query),
            sources=sources,
            origin=ORIGIN_LOCAL,
        )

    async def best_practice(self, topic: str) -> str | None:
        relative = TOPIC_DOCUMENTS.get(topic.lower())
        if relative is None:
            return None
        path = self.root / relative
        if not await asyncio.to_thread(path.is_file):
            return None
        (content,) = await self._read_all([path])
        return content

    def clear_cache(self) -> None:
        self._documents.clear()
        logger.info("Local knowledge document cache cleared")
