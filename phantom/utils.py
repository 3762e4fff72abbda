"""Utility functions for the orchestration client.

Stateless helpers:
- LinkedIn people-search URL construction from a profile query
- Launch argument payload construction
- Retry decorator wrapping Tenacity with standard config
- Safe JSON decoding of text that may or may not hold JSON
"""
from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, TYPE_CHECKING
from urllib.parse import quote

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from .bootstrap import DEFAULT_LINKEDIN_SEARCH_BASE

if TYPE_CHECKING:  # pragma: no cover
    from domain.models import ProfileQuery


# ---------------------------------------------------------------------------
# Search URL / launch arguments
# ---------------------------------------------------------------------------
def build_search_keywords(role: str, industry: str | None = None, organisation: str | None = None) -> str:
    """Join the query parts the way LinkedIn's keyword box expects them.

    The organisation is double-quoted so LinkedIn matches it as a phrase.
    """
    parts = [role.strip()]
    if industry and industry.strip():
        parts.append(industry.strip())
    if organisation and organisation.strip():
        parts.append(f'"{organisation.strip()}"')
    return " ".join(parts)


def build_search_url(query: "ProfileQuery", base: str = DEFAULT_LINKEDIN_SEARCH_BASE) -> str:
    keywords = build_search_keywords(query.role, query.industry, query.organisation)
    return f"{base}?keywords={quote(keywords, safe='')}"


def build_launch_arguments(query: "ProfileQuery", base: str = DEFAULT_LINKEDIN_SEARCH_BASE) -> dict[str, Any]:
    return {
        "linkedinSearchUrl": build_search_url(query, base),
        "numberOfProfiles": query.profiles_requested,
    }


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------
def try_json(text: str | None) -> Any:
    """Decode ``text`` as JSON, returning None when it is not JSON."""
    if not text:
        return None
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def dumps_compact(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


# ---------------------------------------------------------------------------
# Retry helper (wrapping Tenacity)
# ---------------------------------------------------------------------------
def retryable(*exc_types: type[BaseException], attempts: int = 4):
    """Decorator factory for retry logic with exponential backoff + jitter.

    Example:
        @retryable(httpx.TransportError, attempts=3)
        async def fragile(): ...
    """
    if not exc_types:
        exc_types = (Exception,)  # type: ignore

    def _decorator(fn: Callable[..., Awaitable[Any]]):
        return retry(
            reraise=True,
            stop=stop_after_attempt(max(1, attempts)),
            wait=wait_exponential_jitter(multiplier=0.4, max=6),
            retry=retry_if_exception_type(exc_types),
        )(fn)

    return _decorator


__all__ = [
    "build_search_keywords",
    "build_search_url",
    "build_launch_arguments",
    "try_json",
    "dumps_compact",
    "retryable",
]
