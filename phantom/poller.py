"""Poll stage: wait until a launched container reaches a terminal state.

Terminal success is ``finished`` or ``done``; terminal failure is ``failed``
and raises ``JobFailed`` without waiting. Everything else, including
unreadable responses and transport errors, means "not yet": sleep the
interval and ask again.

By default polling is unbounded: a container that never terminates keeps
the calling flow waiting forever. ``PollPolicy`` can bound it by attempts
and/or wall time, in which case ``PollTimeout`` is raised.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Literal, Optional, Sequence

import httpx
import structlog

from .bootstrap import STATUS_POLLS
from .dialects import Attempt, DialectState, probe_dialects
from .errors import JobFailed, PollTimeout
from .transport import RemoteTransport

SUCCESS_STATUSES = frozenset({"finished", "done"})
FAILURE_STATUSES = frozenset({"failed"})


class JobStatus(str, Enum):
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"


def classify_status(raw: Optional[str]) -> JobStatus:
    value = (raw or "").strip().lower()
    if value in SUCCESS_STATUSES:
        return JobStatus.FINISHED
    if value in FAILURE_STATUSES:
        return JobStatus.FAILED
    return JobStatus.RUNNING


@dataclass(frozen=True, slots=True)
class PollPolicy:
    """Polling cadence. ``None`` bounds mean poll until a terminal state."""

    interval_seconds: float = 5.0
    max_attempts: Optional[int] = None
    max_duration_seconds: Optional[float] = None

    @property
    def unbounded(self) -> bool:
        return self.max_attempts is None and self.max_duration_seconds is None

    def exhausted(self, attempts: int, elapsed: float) -> bool:
        if self.max_attempts is not None and attempts >= self.max_attempts:
            return True
        if self.max_duration_seconds is not None and elapsed >= self.max_duration_seconds:
            return True
        return False


@dataclass(frozen=True, slots=True)
class StatusDialect:
    name: str
    path: str
    id_placement: Literal["query", "path"]
    envelope: Optional[str] = None

    def request(self, container_id: str) -> tuple[str, Optional[dict[str, Any]]]:
        if self.id_placement == "path":
            return self.path.format(container_id=container_id), None
        return self.path, {"id": container_id}

    def status(self, body: Any) -> Optional[str]:
        if self.envelope is not None:
            body = body.get(self.envelope) if isinstance(body, dict) else None
        if not isinstance(body, dict):
            return None
        value = body.get("status")
        if isinstance(value, str) and value.strip():
            return value
        return None


STATUS_DIALECTS: tuple[StatusDialect, ...] = (
    StatusDialect("v2-fetch-status", "/api/v2/containers/fetch-status", "query"),
    StatusDialect("v2-fetch", "/api/v2/containers/fetch", "query"),
    StatusDialect("v1-envelope", "/api/v1/container/{container_id}/status", "path", envelope="data"),
)


@dataclass(frozen=True, slots=True)
class StatusObservation:
    status: JobStatus
    observed: Optional[str]  # raw status string, None when unreadable
    raw: Optional[str]


class Poller:
    def __init__(
        self,
        transport: RemoteTransport,
        state: DialectState,
        *,
        policy: PollPolicy = PollPolicy(),
        dialects: Sequence[StatusDialect] = STATUS_DIALECTS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        self._transport = transport
        self._state = state
        self._policy = policy
        self._dialects = tuple(dialects)
        self._sleep = sleep
        self._clock = clock
        self._logger = (logger or structlog.get_logger()).bind(component="poller")

    @property
    def policy(self) -> PollPolicy:
        return self._policy

    async def _attempt(self, dialect: StatusDialect, container_id: str) -> Attempt[str]:
        path, params = dialect.request(container_id)
        try:
            resp = await self._transport.request("GET", path, params=params)
        except httpx.RequestError as exc:
            return Attempt.failure(raw=f"transport error: {exc}")
        if not resp.ok:
            return Attempt.failure(raw=resp.text)
        status = dialect.status(resp.body)
        if status is None:
            return Attempt.failure(raw=resp.text)
        return Attempt.success(status, raw=resp.text)

    async def poll_once(self, container_id: str) -> StatusObservation:
        async def _try(dialect: StatusDialect) -> Attempt[str]:
            return await self._attempt(dialect, container_id)

        result = await probe_dialects(self._state, self._dialects, _try, self._logger)
        if not result.ok:
            self._logger.warning("status_unreadable", container_id=container_id, dialect=result.dialect)
            return StatusObservation(JobStatus.RUNNING, None, result.raw)
        return StatusObservation(classify_status(result.value), result.value, result.raw)

    async def await_completion(self, container_id: str) -> None:
        started = self._clock()
        attempts = 0
        while True:
            attempts += 1
            obs = await self.poll_once(container_id)
            STATUS_POLLS.labels(status=obs.status.value if obs.observed else "unreadable").inc()
            self._logger.debug("status_poll", container_id=container_id, attempt=attempts, status=obs.observed)
            if obs.status is JobStatus.FINISHED:
                self._logger.info("container_finished", container_id=container_id, polls=attempts)
                return
            if obs.status is JobStatus.FAILED:
                self._logger.warning("job_failed", container_id=container_id, polls=attempts)
                raise JobFailed(container_id, obs.raw)
            if self._policy.exhausted(attempts, self._clock() - started):
                raise PollTimeout(container_id, attempts, obs.observed)
            await self._sleep(self._policy.interval_seconds)


__all__ = [
    "JobStatus",
    "classify_status",
    "PollPolicy",
    "StatusDialect",
    "STATUS_DIALECTS",
    "StatusObservation",
    "Poller",
]
