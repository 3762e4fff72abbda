"""Probe-then-cache selection of remote request/response dialects.

The remote API accepts several historical shapes for each operation. Each
stage (launch, status, output) owns one ``DialectState``, a small state
machine ``UNKNOWN -> PROBING -> CONFIRMED(name)``. ``probe_dialects`` is the
single combinator the three stages share: try candidates in priority order,
keep the first success.

State lives on the client instance (no module globals). Concurrent flows may
probe at the same time; confirming is idempotent since a remote service
speaks the same dialect to every request of a process.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Generic, Optional, Protocol, Sequence, TypeVar

import structlog


class Phase(str, Enum):
    UNKNOWN = "unknown"
    PROBING = "probing"
    CONFIRMED = "confirmed"


class NamedDialect(Protocol):
    name: str


D = TypeVar("D", bound=NamedDialect)
T = TypeVar("T")


@dataclass(slots=True)
class DialectState:
    """Learned dialect of one stage.

    ``reprobe_after`` = K > 0 resets a confirmed dialect after K consecutive
    failures so the next call probes from the top again; 0 keeps it forever.
    """

    stage: str
    reprobe_after: int = 0
    phase: Phase = Phase.UNKNOWN
    confirmed: Optional[str] = None
    consecutive_failures: int = 0

    @property
    def is_confirmed(self) -> bool:
        return self.phase is Phase.CONFIRMED and self.confirmed is not None

    def candidates(self, dialects: Sequence[D]) -> list[D]:
        if self.is_confirmed:
            return [d for d in dialects if d.name == self.confirmed]
        return list(dialects)

    def begin_probe(self) -> None:
        if not self.is_confirmed:
            self.phase = Phase.PROBING

    def confirm(self, name: str) -> None:
        self.phase = Phase.CONFIRMED
        self.confirmed = name
        self.consecutive_failures = 0

    def record_success(self) -> None:
        self.consecutive_failures = 0

    def record_failure(self) -> bool:
        """Count a failure of the confirmed dialect; True when it was dropped."""
        if not self.is_confirmed:
            self.phase = Phase.UNKNOWN
            return False
        self.consecutive_failures += 1
        if self.reprobe_after > 0 and self.consecutive_failures >= self.reprobe_after:
            self.reset()
            return True
        return False

    def reset(self) -> None:
        self.phase = Phase.UNKNOWN
        self.confirmed = None
        self.consecutive_failures = 0

    def describe(self) -> Optional[str]:
        return self.confirmed if self.is_confirmed else None


@dataclass(frozen=True, slots=True)
class Attempt(Generic[T]):
    """Outcome of one dialect attempt: a value on success, raw text for diagnostics."""

    ok: bool
    value: Optional[T] = None
    raw: Optional[str] = None

    @classmethod
    def success(cls, value: T, raw: Optional[str] = None) -> "Attempt[T]":
        return cls(ok=True, value=value, raw=raw)

    @classmethod
    def failure(cls, raw: Optional[str] = None) -> "Attempt[T]":
        return cls(ok=False, raw=raw)


@dataclass(slots=True)
class ProbeResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    dialect: Optional[str] = None  # winning dialect, or last tried on failure
    raw: Optional[str] = None
    attempted: list[str] = field(default_factory=list)


async def probe_dialects(
    state: DialectState,
    dialects: Sequence[D],
    attempt: Callable[[D], Awaitable[Attempt[T]]],
    logger: Optional[structlog.BoundLogger] = None,
) -> ProbeResult[T]:
    """Try ``dialects`` in order under ``state`` and keep the first success.

    A confirmed state restricts the call to its dialect; a failure then does
    not fall through to other dialects within the same call.
    """
    log = logger or structlog.get_logger().bind(component="dialects")
    was_confirmed = state.is_confirmed
    candidates = state.candidates(dialects)
    state.begin_probe()
    result: ProbeResult[T] = ProbeResult(ok=False)

    for dialect in candidates:
        outcome = await attempt(dialect)
        result.attempted.append(dialect.name)
        result.dialect = dialect.name
        result.raw = outcome.raw
        if outcome.ok:
            result.ok = True
            result.value = outcome.value
            if was_confirmed:
                state.record_success()
            else:
                state.confirm(dialect.name)
                log.info("dialect_confirmed", stage=state.stage, dialect=dialect.name, attempted=result.attempted)
            return result
        log.debug("dialect_attempt_failed", stage=state.stage, dialect=dialect.name)

    if state.record_failure():
        log.warning("dialect_dropped", stage=state.stage, dialect=result.dialect, after=state.reprobe_after)
    return result


__all__ = [
    "Phase",
    "DialectState",
    "Attempt",
    "ProbeResult",
    "probe_dialects",
]
