"""Launch stage: start a remote agent run and obtain its container id.

The launch endpoint has accepted several incompatible request shapes over
time. They differ in where the agent id travels (body, path or query),
whether the argument key is ``arguments`` or the legacy ``argument`` and
whether the argument payload is structured JSON or pre-serialized text.
They are tried newest first; the first one whose decoded response holds a
container id is kept for the lifetime of the client.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Optional, Sequence, TYPE_CHECKING

import httpx
import structlog

from .bootstrap import DEFAULT_LINKEDIN_SEARCH_BASE, LAUNCH_ATTEMPTS
from .dialects import Attempt, DialectState, probe_dialects
from .errors import LaunchFailure
from .transport import RemoteTransport
from .utils import build_launch_arguments, dumps_compact

if TYPE_CHECKING:  # pragma: no cover
    from domain.models import ProfileQuery


@dataclass(frozen=True, slots=True)
class LaunchRequest:
    method: str
    path: str
    params: Optional[dict[str, Any]]
    json: dict[str, Any]


@dataclass(frozen=True, slots=True)
class LaunchDialect:
    name: str
    path: str
    id_placement: Literal["body", "path", "query"]
    argument_key: str
    stringify_arguments: bool
    envelope: Optional[str] = None  # response field wrapping the container id
    extra_body: Mapping[str, Any] = field(default_factory=dict)

    def build(self, agent_id: str, arguments: dict[str, Any]) -> LaunchRequest:
        payload: Any = dumps_compact(arguments) if self.stringify_arguments else arguments
        body: dict[str, Any] = {self.argument_key: payload, **self.extra_body}
        params = None
        if self.id_placement == "body":
            body = {"id": agent_id, **body}
        elif self.id_placement == "query":
            params = {"id": agent_id}
        return LaunchRequest(method="POST", path=self.path.format(agent_id=agent_id), params=params, json=body)

    def container_id(self, body: Any) -> Optional[str]:
        if self.envelope is not None:
            body = body.get(self.envelope) if isinstance(body, dict) else None
        if not isinstance(body, dict):
            return None
        value = body.get("containerId")
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, (str, int)):
            return str(value).strip() or None
        return None


LAUNCH_DIALECTS: tuple[LaunchDialect, ...] = (
    LaunchDialect("v2-body-arguments", "/api/v2/agents/launch", "body", "arguments", False),
    LaunchDialect("v2-body-arguments-string", "/api/v2/agents/launch", "body", "arguments", True),
    LaunchDialect("v2-query-id", "/api/v2/agents/launch", "query", "arguments", False),
    LaunchDialect("v2-body-argument-legacy", "/api/v2/agents/launch", "body", "argument", True),
    LaunchDialect(
        "v1-path",
        "/api/v1/agent/{agent_id}/launch",
        "path",
        "argument",
        True,
        envelope="data",
        extra_body={"output": "first-result-object"},
    ),
)


class Launcher:
    """Start remote runs, negotiating the launch dialect once per client."""

    def __init__(
        self,
        transport: RemoteTransport,
        agent_id: str,
        state: DialectState,
        *,
        dialects: Sequence[LaunchDialect] = LAUNCH_DIALECTS,
        search_base: str = DEFAULT_LINKEDIN_SEARCH_BASE,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        self._transport = transport
        self._agent_id = agent_id
        self._state = state
        self._dialects = tuple(dialects)
        self._search_base = search_base
        self._logger = (logger or structlog.get_logger()).bind(component="launcher")

    async def _attempt(self, dialect: LaunchDialect, arguments: dict[str, Any]) -> Attempt[str]:
        req = dialect.build(self._agent_id, arguments)
        try:
            resp = await self._transport.request(req.method, req.path, params=req.params, json=req.json)
        except httpx.RequestError as exc:
            LAUNCH_ATTEMPTS.labels(dialect=dialect.name, outcome="transport_error").inc()
            return Attempt.failure(raw=f"transport error: {exc}")
        if not resp.ok:
            LAUNCH_ATTEMPTS.labels(dialect=dialect.name, outcome="rejected").inc()
            self._logger.debug("launch_rejected", dialect=dialect.name, status_code=resp.status_code)
            return Attempt.failure(raw=resp.text)
        container_id = dialect.container_id(resp.body)
        if container_id is None:
            # 2xx without the id field: wrong shape, not a transport problem
            LAUNCH_ATTEMPTS.labels(dialect=dialect.name, outcome="no_container_id").inc()
            return Attempt.failure(raw=resp.text)
        LAUNCH_ATTEMPTS.labels(dialect=dialect.name, outcome="ok").inc()
        return Attempt.success(container_id, raw=resp.text)

    async def launch(self, query: "ProfileQuery") -> str:
        arguments = build_launch_arguments(query, self._search_base)

        async def _try(dialect: LaunchDialect) -> Attempt[str]:
            return await self._attempt(dialect, arguments)

        result = await probe_dialects(self._state, self._dialects, _try, self._logger)
        if not result.ok or result.value is None:
            raise LaunchFailure(result.dialect, result.raw, result.attempted)
        self._logger.info("container_launched", container_id=result.value, dialect=result.dialect)
        return result.value


__all__ = ["LaunchDialect", "LaunchRequest", "LAUNCH_DIALECTS", "Launcher"]
