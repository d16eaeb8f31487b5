"""Data-driven rules that turn a file path and its diff into a knowledge query.

Both tables are evaluated top to bottom. For categories the first matching rule
wins; for query signals every matching rule contributes its phrase.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from prsage_core.utils.code import extension

DEFAULT_CATEGORY = "general"

# Words every query carries because of its fixed phrasing. They say nothing
# about the file, so they never select a document by name.
QUERY_FILLER_WORDS = frozenset({"best", "practices", "with", "focusing"})

_FRONTEND_PATH_HINTS = ("components", "views", "pages", "frontend", "client", "ui", "src/app", "public")


def _ext_in(*exts: str) -> Callable[[str, str], bool]:
    return lambda path, ext: ext in exts


def _path_has(*needles: str) -> Callable[[str, str], bool]:
    return lambda path, ext: any(n in path for n in needles)


def _frontend_script(path: str, ext: str) -> bool:
    return ext in ("js", "ts") and any(hint in path for hint in _FRONTEND_PATH_HINTS)


# (predicate(lowered_path, extension), category). Component frameworks come
# before plain languages, which come before path keywords.
CATEGORY_RULES: list[tuple[Callable[[str, str], bool], str]] = [
    (lambda path, ext: ext in ("jsx", "tsx") or "react" in path, "react"),
    (lambda path, ext: ext == "vue" or "vue" in path, "vue"),
    (_path_has("angular"), "angular"),
    (_ext_in("css", "scss", "less"), "css"),
    (_ext_in("html"), "html"),
    (_frontend_script, "frontend"),
    (_ext_in("py"), "python"),
    (_ext_in("go"), "golang"),
    (_ext_in("java"), "java"),
    (_path_has("auth", "security"), "security"),
    (_path_has("api", "controller"), "api"),
    (lambda path, ext: "model" in path or "repository" in path or ext == "sql", "database"),
]


@dataclass(frozen=True)
class Signal:
    name: str
    pattern: re.Pattern
    phrase: str  # appended to the query when the signal fires; "" = detected only


SIGNALS: list[Signal] = [
    Signal("state_management", re.compile(r"useState|useReducer|redux|vuex|store", re.I), " with state management"),
    Signal("async_operations", re.compile(r"async|await|Promise|then\(|catch\(", re.I), " and async operations"),
    Signal("network_calls", re.compile(r"fetch|axios|api\.|endpoint", re.I), " and API integration"),
    Signal("accessibility", re.compile(r"aria-|role=|alt=|label", re.I), " focusing on accessibility"),
    Signal("memoization", re.compile(r"useMemo|useCallback|memo\(|performance", re.I), " and performance optimization"),
    Signal("security", re.compile(r"password|token|auth|sanitize|escape", re.I), " and security hardening"),
    Signal("tests", re.compile(r"test\(|it\(|describe\(|expect\(", re.I), " and testing patterns"),
    Signal("error_handling", re.compile(r"try|catch|error|exception", re.I), " and error handling"),
]

CHECKLISTS: dict[str, list[str]] = {
    "react": [
        "Component follows single responsibility principle",
        "Props are properly typed/validated",
        "State updates are immutable",
        "Effects have proper dependencies",
        "No unnecessary re-renders",
        "Accessibility attributes present",
        "Error boundaries implemented",
        "Loading and error states handled",
    ],
    "vue": [
        "Component composition is clear",
        "Props are validated",
        "Reactive data is properly declared",
        "Computed properties for derived state",
        "Lifecycle hooks used appropriately",
        "Event handling is explicit",
        "Slots used for composition",
    ],
    "css": [
        "No inline styles",
        "Consistent naming convention",
        "Responsive design implemented",
        "Accessibility considerations",
        "Browser compatibility checked",
        "Performance optimized",
        "Maintainable structure",
    ],
    "api": [
        "Input validation implemented",
        "Error handling comprehensive",
        "Authentication/authorization checked",
        "Rate limiting considered",
        "Proper HTTP status codes",
        "API versioning maintained",
        "Documentation updated",
    ],
    "security": [
        "No hardcoded credentials",
        "Input sanitization applied",
        "SQL injection prevention",
        "XSS protection implemented",
        "CSRF tokens used",
        "Sensitive data encrypted",
        "Logging excludes PII",
    ],
}

TOPIC_QUERIES: dict[str, str] = {
    "react-hooks": "React hooks best practices and common pitfalls",
    "accessibility": "Web accessibility WCAG guidelines and ARIA usage",
    "security": "Frontend security best practices and vulnerabilities",
    "performance": "Web performance optimization techniques",
    "testing": "Frontend testing strategies and patterns",
    "css-architecture": "CSS architecture and maintainable styles",
    "api-design": "RESTful API design best practices",
    "error-handling": "Error handling and logging best practices",
}


def derive_category(file_path: str) -> str:
    path = file_path.lower()
    ext = extension(file_path)
    for predicate, category in CATEGORY_RULES:
        if predicate(path, ext):
            return category
    return DEFAULT_CATEGORY


def detect_signals(diff: str) -> list[str]:
    return [s.name for s in SIGNALS if s.pattern.search(diff or "")]


def build_query(file_path: str, diff: str) -> str:
    file_name = file_path.rsplit("/", 1)[-1]
    query = f"Best practices for {file_name}"
    for signal in SIGNALS:
        if signal.phrase and signal.pattern.search(diff or ""):
            query += signal.phrase
    return query


def checklist_for(category: str) -> list[str]:
    return list(CHECKLISTS.get(category, []))


def query_keywords(query: str) -> list[str]:
    """Lower-cased query words longer than three characters."""
    return [w for w in query.lower().split() if len(w) > 3]


def topic_keywords(query: str) -> set[str]:
    """Query keywords minus the filler words of the query template."""
    return set(query_keywords(query)) - QUERY_FILLER_WORDS
