"""Output stage: fetch a finished container's result and normalize it.

The result payload comes in several envelopes: a bare list of records, an
object with a named field holding the list (sometimes as JSON text), or the
legacy ``{"data": {...}}`` double wrap. The shape is detected structurally
through ``SHAPE_MATCHERS``, evaluated in order; adding a shape means adding a
matcher.

Normalization is total: unknown shapes, HTTP errors and transport errors
all give an empty list.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Literal, Optional, Sequence

import httpx
import structlog

from domain.models import ProfileRecord

from .bootstrap import OUTPUT_SHAPES
from .dialects import Attempt, DialectState, probe_dialects
from .transport import RemoteTransport
from .utils import try_json

RECORD_FIELDS = ("output", "resultObject", "results", "profiles")


# ---------------------------------------------------------------------------
# Shape matchers
# ---------------------------------------------------------------------------
def _as_sequence(value: Any) -> Optional[list[Any]]:
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        decoded = try_json(value)
        if isinstance(decoded, list):
            return decoded
    return None


def _named_field(body: Any) -> Optional[list[Any]]:
    if not isinstance(body, dict):
        return None
    for key in RECORD_FIELDS:
        seq = _as_sequence(body.get(key))
        if seq is not None:
            return seq
    return None


def _envelope(body: Any) -> Optional[list[Any]]:
    if not isinstance(body, dict):
        return None
    inner = body.get("data")
    if isinstance(inner, str):
        inner = try_json(inner)
    if isinstance(inner, list):
        return inner
    return _named_field(inner)


@dataclass(frozen=True, slots=True)
class ShapeMatcher:
    name: str
    predicate: Callable[[Any], bool]
    extract: Callable[[Any], list[Any]]


SHAPE_MATCHERS: tuple[ShapeMatcher, ...] = (
    ShapeMatcher("bare-sequence", lambda body: isinstance(body, list), lambda body: body),
    ShapeMatcher("named-field", lambda body: _named_field(body) is not None, lambda body: _named_field(body) or []),
    ShapeMatcher("envelope", lambda body: _envelope(body) is not None, lambda body: _envelope(body) or []),
)


def match_shape(body: Any, matchers: Sequence[ShapeMatcher] = SHAPE_MATCHERS) -> Optional[tuple[str, list[Any]]]:
    """Return ``(shape name, raw records)`` for the first matcher accepting ``body``."""
    for matcher in matchers:
        if matcher.predicate(body):
            return matcher.name, matcher.extract(body)
    return None


# ---------------------------------------------------------------------------
# Record projection
# ---------------------------------------------------------------------------
def _first_text(raw: dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
    return None


def project_record(raw: dict[str, Any]) -> ProfileRecord:
    name = _first_text(raw, "name", "fullName")
    if name is None:
        parts = [p for p in (_first_text(raw, "firstName"), _first_text(raw, "lastName")) if p]
        name = " ".join(parts) or None
    return ProfileRecord(
        name=name,
        job=_first_text(raw, "jobTitle", "title", "headline"),
        company=_first_text(raw, "companyName", "company"),
        location=_first_text(raw, "location"),
        profile_url=_first_text(raw, "profileUrl", "linkedInProfileUrl", "url"),
    )


def project_records(items: Iterable[Any], limit: Optional[int] = None) -> list[ProfileRecord]:
    """Project dict entries in order, skipping anything else, up to ``limit``."""
    out: list[ProfileRecord] = []
    if limit is not None and limit <= 0:
        return out
    for item in items:
        if not isinstance(item, dict):
            continue
        out.append(project_record(item))
        if limit is not None and len(out) >= limit:
            break
    return out


def normalize_payload(body: Any, limit: Optional[int] = None) -> list[ProfileRecord]:
    matched = match_shape(body)
    if matched is None:
        return []
    return project_records(matched[1], limit)


# ---------------------------------------------------------------------------
# Output dialects
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class OutputDialect:
    name: str
    path: str
    id_placement: Literal["query", "path"]

    def request(self, container_id: str) -> tuple[str, Optional[dict[str, Any]]]:
        if self.id_placement == "path":
            return self.path.format(container_id=container_id), None
        return self.path, {"id": container_id}


OUTPUT_DIALECTS: tuple[OutputDialect, ...] = (
    OutputDialect("v2-fetch-output", "/api/v2/containers/fetch-output", "query"),
    OutputDialect("v2-fetch-result-object", "/api/v2/containers/fetch-result-object", "query"),
    OutputDialect("v1-envelope", "/api/v1/container/{container_id}/output", "path"),
)


class OutputNormalizer:
    def __init__(
        self,
        transport: RemoteTransport,
        state: DialectState,
        *,
        dialects: Sequence[OutputDialect] = OUTPUT_DIALECTS,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        self._transport = transport
        self._state = state
        self._dialects = tuple(dialects)
        self._logger = (logger or structlog.get_logger()).bind(component="normalizer")

    async def _attempt(self, dialect: OutputDialect, container_id: str) -> Attempt[tuple[str, list[Any]]]:
        path, params = dialect.request(container_id)
        try:
            resp = await self._transport.request("GET", path, params=params)
        except httpx.RequestError as exc:
            return Attempt.failure(raw=f"transport error: {exc}")
        if not resp.ok:
            return Attempt.failure(raw=resp.text)
        matched = match_shape(resp.body)
        if matched is None:
            return Attempt.failure(raw=resp.text)
        return Attempt.success(matched, raw=resp.text)

    async def fetch_results(self, container_id: str, limit: Optional[int] = None) -> list[ProfileRecord]:
        async def _try(dialect: OutputDialect) -> Attempt[tuple[str, list[Any]]]:
            return await self._attempt(dialect, container_id)

        result = await probe_dialects(self._state, self._dialects, _try, self._logger)
        if not result.ok or result.value is None:
            OUTPUT_SHAPES.labels(shape="unrecognized").inc()
            self._logger.warning(
                "output_shape_unrecognized",
                container_id=container_id,
                dialect=result.dialect,
                raw_preview=(result.raw or "")[:300],
            )
            return []
        shape, items = result.value
        OUTPUT_SHAPES.labels(shape=shape).inc()
        records = project_records(items, limit)
        self._logger.info(
            "output_normalized",
            container_id=container_id,
            dialect=result.dialect,
            shape=shape,
            received=len(items),
            returned=len(records),
        )
        return records


__all__ = [
    "RECORD_FIELDS",
    "ShapeMatcher",
    "SHAPE_MATCHERS",
    "match_shape",
    "project_record",
    "project_records",
    "normalize_payload",
    "OutputDialect",
    "OUTPUT_DIALECTS",
    "OutputNormalizer",
]
