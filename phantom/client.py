"""Orchestration client: launch -> await completion -> fetch results.

One ``PhantomClient`` is meant to live for the whole process (the FastAPI
lifespan creates it) so the dialects it learns are reused by every request.
Stages run strictly in sequence within one flow; concurrent flows share only
the dialect states.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

import httpx
import structlog

from domain.models import ProfileQuery, ProfileRecord

from .bootstrap import (
    DEFAULT_LINKEDIN_SEARCH_BASE,
    JOB_DURATION_SECONDS,
    JOBS_TOTAL,
    PROFILES_RETURNED,
    Settings,
)
from .dialects import DialectState
from .errors import ConfigurationError, PhantomError
from .launcher import Launcher
from .normalizer import OutputNormalizer
from .poller import Poller, PollPolicy
from .transport import RemoteTransport


class PhantomClient:
    def __init__(
        self,
        transport: RemoteTransport,
        *,
        api_key: Optional[str],
        agent_id: Optional[str],
        policy: PollPolicy = PollPolicy(),
        reprobe_after: int = 0,
        max_results: int = 5,
        search_base: str = DEFAULT_LINKEDIN_SEARCH_BASE,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        self._transport = transport
        self._api_key = api_key
        self._agent_id = agent_id
        self.max_results = max_results
        self._logger = logger or structlog.get_logger().bind(component="phantom_client")

        self.launch_state = DialectState("launch", reprobe_after=reprobe_after)
        self.status_state = DialectState("status", reprobe_after=reprobe_after)
        self.output_state = DialectState("output", reprobe_after=reprobe_after)

        self.launcher = Launcher(
            transport, agent_id or "", self.launch_state, search_base=search_base, logger=self._logger
        )
        self.poller = Poller(transport, self.status_state, policy=policy, sleep=sleep, logger=self._logger)
        self.normalizer = OutputNormalizer(transport, self.output_state, logger=self._logger)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> "PhantomClient":
        transport = RemoteTransport(
            settings.phantom_base_url,
            settings.phantom_api_key,
            timeout=settings.httpx_timeout,
            retry_attempts=settings.http_retry_attempts,
            http_client=http_client,
            logger=logger,
        )
        policy = PollPolicy(
            interval_seconds=settings.poll_interval_seconds,
            max_attempts=settings.poll_max_attempts,
            max_duration_seconds=settings.poll_max_duration_seconds,
        )
        return cls(
            transport,
            api_key=settings.phantom_api_key,
            agent_id=settings.phantom_agent_id,
            policy=policy,
            reprobe_after=settings.dialect_reprobe_after,
            max_results=settings.max_results,
            search_base=settings.linkedin_search_base,
            sleep=sleep,
            logger=logger,
        )

    # ------------------------------------------------------------------
    def check_configuration(self) -> None:
        missing = [
            env for env, value in (
                ("PHANTOMBUSTER_API_KEY", self._api_key),
                ("PHANTOMBUSTER_AGENT_ID", self._agent_id),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(missing)

    @property
    def configured(self) -> bool:
        return bool(self._api_key and self._agent_id)

    def dialects(self) -> dict[str, Optional[str]]:
        return {
            "launch": self.launch_state.describe(),
            "status": self.status_state.describe(),
            "output": self.output_state.describe(),
        }

    async def search_profiles(self, query: ProfileQuery, limit: Optional[int] = None) -> list[ProfileRecord]:
        """Run one remote search end to end and return at most ``limit`` profiles."""
        self.check_configuration()
        cap = self.max_results if limit is None else limit
        log = self._logger.bind(role=query.role, organisation=query.organisation)
        t0 = time.perf_counter()
        try:
            container_id = await self.launcher.launch(query)
            await self.poller.await_completion(container_id)
            records = await self.normalizer.fetch_results(container_id, cap)
        except PhantomError as exc:
            JOBS_TOTAL.labels(outcome=type(exc).__name__).inc()
            log.warning("profile_search_failed", **exc.diagnostics())
            raise
        elapsed = time.perf_counter() - t0
        JOBS_TOTAL.labels(outcome="ok").inc()
        JOB_DURATION_SECONDS.observe(elapsed)
        PROFILES_RETURNED.inc(len(records))
        log.info("profile_search_complete", container_id=container_id, profiles=len(records), elapsed=f"{elapsed:.1f}s")
        return records

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def __aenter__(self) -> "PhantomClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


__all__ = ["PhantomClient"]
