"""Error taxonomy of the orchestration client.

Every error surfaced to the front door carries enough of the raw remote
response to tell "request shape rejected" (LaunchFailure) from "remote job
failed" (JobFailed) from "remote job is slow" (PollTimeout).
"""
from __future__ import annotations

from typing import Any, Optional, Sequence

# Diagnostics are logged, so keep raw bodies bounded
_RAW_PREVIEW_CHARS = 2000


def _preview(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    return raw if len(raw) <= _RAW_PREVIEW_CHARS else raw[:_RAW_PREVIEW_CHARS] + "...[truncated]"


class PhantomError(Exception):
    """Base class for orchestration failures."""

    def diagnostics(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "message": str(self)}


class ConfigurationError(PhantomError):
    """Required credentials or identifiers are absent."""

    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"missing configuration: {', '.join(self.missing)}")

    def diagnostics(self) -> dict[str, Any]:
        return {**super().diagnostics(), "missing": self.missing}


class LaunchFailure(PhantomError):
    """No known launch dialect produced a container id."""

    def __init__(self, dialect: Optional[str], raw_response: Optional[str], attempted: Sequence[str] = ()):
        self.dialect = dialect
        self.raw_response = raw_response
        self.attempted = list(attempted)
        super().__init__(f"launch failed (last dialect: {dialect})")

    def diagnostics(self) -> dict[str, Any]:
        return {
            **super().diagnostics(),
            "dialect": self.dialect,
            "attempted": self.attempted,
            "raw_response": _preview(self.raw_response),
        }


class JobFailed(PhantomError):
    """The remote service reported a terminal failure for the container."""

    def __init__(self, container_id: str, raw_response: Optional[str]):
        self.container_id = container_id
        self.raw_response = raw_response
        super().__init__(f"container {container_id} failed")

    def diagnostics(self) -> dict[str, Any]:
        return {
            **super().diagnostics(),
            "container_id": self.container_id,
            "raw_response": _preview(self.raw_response),
        }


class PollTimeout(PhantomError):
    """A configured polling bound was exhausted before a terminal state."""

    def __init__(self, container_id: str, attempts: int, last_status: Optional[str]):
        self.container_id = container_id
        self.attempts = attempts
        self.last_status = last_status
        super().__init__(f"container {container_id} not terminal after {attempts} polls")

    def diagnostics(self) -> dict[str, Any]:
        return {
            **super().diagnostics(),
            "container_id": self.container_id,
            "attempts": self.attempts,
            "last_status": self.last_status,
        }


__all__ = [
    "PhantomError",
    "ConfigurationError",
    "LaunchFailure",
    "JobFailed",
    "PollTimeout",
]
