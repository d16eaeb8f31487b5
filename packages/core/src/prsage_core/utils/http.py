from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


async def _log_request(request: httpx.Request) -> None:
    logger.debug("%s %s", request.method, request.url)


def dify_client(api_key: str, base_url: str, timeout: float = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """Async HTTP client preconfigured for the Dify REST API."""
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
        timeout=timeout,
        event_hooks={"request": [_log_request]},
    )


def status_of(exc: Exception) -> int | None:
    """Best-effort HTTP status of an httpx or SDK exception."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    return status if isinstance(status, int) else None
