import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "model": "anthropic",
    "skip_patterns": ["node_modules", "dist", "build", "*.lock"],  # substrings, or globs with one "*"
    "max_files": 20,
    "max_diff_size": 5000,
    "batch_size": 3,
    "cache_ttl": 3600,
    "cache_capacity": 100,
    "review_timeout": None,  # seconds; None = no overall deadline
    "rag_enabled": True,
    "no_context_categories": [],  # categories analysed on their diff alone
    "knowledge_base": "frontend-best-practices",
    "knowledge_base_path": None,  # None = use the built-in document tree
    "dify_api_url": "https://api.dify.ai/v1",
    "dify_user": "prsage-bot",
    "status_context": "prsage/ai-review",
}

MODELS = ("anthropic", "openai", "dify")

BUILTIN_KNOWLEDGE_DIR = Path(__file__).parent / "knowledge_base"


def load_config(config_path: str = ".prsage.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prsage.yml in the current directory
      3. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG, "skip_patterns": list(DEFAULT_CONFIG["skip_patterns"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Credentials never live in the config file.
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")
    config["dify_api_key"] = os.environ.get("DIFY_API_KEY")
    if os.environ.get("DIFY_API_URL"):
        config["dify_api_url"] = os.environ["DIFY_API_URL"]

    return config


@dataclass(frozen=True)
class ReviewOptions:
    """The subset of configuration the pipeline itself consumes, validated."""

    skip_patterns: tuple[str, ...] = tuple(DEFAULT_CONFIG["skip_patterns"])
    max_files: int = DEFAULT_CONFIG["max_files"]
    max_diff_size: int = DEFAULT_CONFIG["max_diff_size"]
    batch_size: int = DEFAULT_CONFIG["batch_size"]
    cache_ttl: float = DEFAULT_CONFIG["cache_ttl"]
    cache_capacity: int = DEFAULT_CONFIG["cache_capacity"]
    review_timeout: Optional[float] = None
    rag_enabled: bool = True
    no_context_categories: tuple[str, ...] = ()

    def __post_init__(self):
        for name in ("max_files", "max_diff_size", "batch_size", "cache_capacity"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be a positive integer, got {getattr(self, name)!r}")
        if self.cache_ttl < 0:
            raise ValueError(f"cache_ttl must not be negative, got {self.cache_ttl!r}")
        if self.review_timeout is not None and self.review_timeout <= 0:
            raise ValueError(f"review_timeout must be positive, got {self.review_timeout!r}")

    @classmethod
    def from_config(cls, config: dict) -> "ReviewOptions":
        patterns = config.get("skip_patterns") or []
        if isinstance(patterns, str):
            # Comma-separated form, as accepted from environment-style settings.
            patterns = [p.strip() for p in patterns.split(",") if p.strip()]
        if not isinstance(patterns, (list, tuple)):
            raise ValueError(f"skip_patterns must be a list of strings, got {type(patterns).__name__}")

        skip_context = config.get("no_context_categories") or []
        if isinstance(skip_context, str):
            skip_context = [c.strip() for c in skip_context.split(",") if c.strip()]

        model = config.get("model", DEFAULT_CONFIG["model"])
        if model not in MODELS:
            raise ValueError(f"Unknown model provider: {model!r}. Choose one of {', '.join(MODELS)}.")

        timeout = config.get("review_timeout")
        return cls(
            skip_patterns=tuple(str(p) for p in patterns),
            max_files=int(config.get("max_files", DEFAULT_CONFIG["max_files"])),
            max_diff_size=int(config.get("max_diff_size", DEFAULT_CONFIG["max_diff_size"])),
            batch_size=int(config.get("batch_size", DEFAULT_CONFIG["batch_size"])),
            cache_ttl=float(config.get("cache_ttl", DEFAULT_CONFIG["cache_ttl"])),
            cache_capacity=int(config.get("cache_capacity", DEFAULT_CONFIG["cache_capacity"])),
            review_timeout=float(timeout) if timeout is not None else None,
            rag_enabled=bool(config.get("rag_enabled", True)),
            no_context_categories=tuple(str(c) for c in skip_context),
        )


def knowledge_dir(config: dict) -> Path:
    """Resolve the local knowledge document tree, falling back to the built-in one."""
    custom = config.get("knowledge_base_path")
    if custom:
        p = Path(custom)
        if not p.is_dir():
            raise FileNotFoundError(f"Knowledge base directory not found: {custom}")
        return p
    return BUILTIN_KNOWLEDGE_DIR
