"""Bootstrap module for the profile search service.

Central responsibilities:
- Load and validate settings from environment (.env supported by Settings class)
- Configure structured logging (structlog + optional rotating file handler)
- Expose Prometheus metric instruments (counters, histograms)
- Provide a shared context object holding the long-lived PhantomClient

Design notes:
- Idempotent initialization (bootstrap() returns the existing context unless forced)
- Missing API credentials do not prevent startup; they surface per request
  as ConfigurationError so /health keeps answering.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TYPE_CHECKING
import asyncio
import logging
from logging.handlers import RotatingFileHandler
import sys
import time

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from prometheus_client import Counter, Histogram

if TYPE_CHECKING:  # pragma: no cover
    from .client import PhantomClient

# ------------------------------------------------------------
# Settings
# ------------------------------------------------------------

DEFAULT_LINKEDIN_SEARCH_BASE = "https://www.linkedin.com/search/results/people/"


class Settings(BaseSettings):
    """Application settings loaded from environment.

    Uses Pydantic BaseSettings to automatically read from env vars.
    Defaults are safe for local development; credentials have none.
    """

    app_name: str = Field("linkedin-profile-api", alias="APP_NAME")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_file: str | None = Field(None, alias="LOG_FILE")
    log_max_bytes: int = Field(2_000_000, alias="LOG_MAX_BYTES")  # ~2MB
    log_backup_count: int = Field(5, alias="LOG_BACKUP_COUNT")
    quiet_startup: bool = Field(False, alias="QUIET_STARTUP")

    # Remote agent API
    phantom_api_key: Optional[str] = Field(None, alias="PHANTOMBUSTER_API_KEY")
    phantom_agent_id: Optional[str] = Field(None, alias="PHANTOMBUSTER_AGENT_ID")
    phantom_base_url: str = Field("https://api.phantombuster.com", alias="PHANTOMBUSTER_BASE_URL")

    # Timeouts & retries
    httpx_timeout: int = Field(20, alias="HTTPX_TIMEOUT")
    http_retry_attempts: int = Field(3, alias="HTTP_RETRY_ATTEMPTS")  # transport errors only

    # Polling policy (None = unbounded)
    poll_interval_seconds: float = Field(5.0, alias="POLL_INTERVAL_SECONDS")
    poll_max_attempts: Optional[int] = Field(None, alias="POLL_MAX_ATTEMPTS")
    poll_max_duration_seconds: Optional[float] = Field(None, alias="POLL_MAX_DURATION_SECONDS")

    # 0 keeps a confirmed dialect forever
    dialect_reprobe_after: int = Field(0, alias="DIALECT_REPROBE_AFTER")

    # Search & result sizing
    profiles_requested: int = Field(10, alias="PROFILES_REQUESTED")  # asked from the agent
    max_results: int = Field(5, alias="MAX_RESULTS")  # returned to the caller
    linkedin_search_base: str = Field(DEFAULT_LINKEDIN_SEARCH_BASE, alias="LINKEDIN_SEARCH_BASE")

    # HTTP server
    app_host: str = Field("0.0.0.0", alias="APP_HOST")
    app_port: int = Field(3000, alias="PORT")

    @field_validator("phantom_api_key", "phantom_agent_id", mode="before")
    @classmethod
    def _blank_is_missing(cls, v):  # noqa: D401
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("poll_max_attempts", "poll_max_duration_seconds", mode="before")
    @classmethod
    def _zero_is_unbounded(cls, v):  # noqa: D401
        if v in ("", None):
            return None
        try:
            return None if float(v) <= 0 else v
        except (TypeError, ValueError):
            return v

    @property
    def is_configured(self) -> bool:
        return bool(self.phantom_api_key and self.phantom_agent_id)

    # Pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )


# ------------------------------------------------------------
# Logging configuration (structlog)
# ------------------------------------------------------------

_SENSITIVE_KEYS = {
    "password",
    "authorization",
    "api_key",
    "phantom_api_key",
    "token",
    "x-phantombuster-key-1",
}


def redact_sensitive(logger, method_name, event_dict):  # noqa: D401
    """Shallow redaction of secrets that accidentally reach the log context."""

    def _scrub(value):
        if isinstance(value, dict):
            out = {}
            for k, v in value.items():
                ks = str(k).lower()
                if ks in _SENSITIVE_KEYS or any(sk in ks for sk in ("token", "password", "api_key", "authorization", "phantombuster-key")):
                    out[k] = "[REDACTED]"
                else:
                    out[k] = _scrub(v)
            return out
        if isinstance(value, (list, tuple)):
            return [_scrub(v) for v in value]
        return value

    return _scrub(event_dict)


def add_request_id(logger, method_name, event_dict):  # noqa: D401
    rid = structlog.contextvars.get_contextvars().get("request_id")
    if rid:
        event_dict["request_id"] = rid
    return event_dict


def configure_logging(level: str = "INFO", settings: Settings | None = None) -> None:
    """Configure structured logging with structlog.

    Uses a standard logging handler + structlog processors for JSON output.
    A rotating file handler is attached when LOG_FILE is set.
    """
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            timestamper,
            add_request_id,
            structlog.processors.add_log_level,
            redact_sensitive,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper(), logging.INFO)),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = []
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter("%(message)s"))
    handlers.append(stream_handler)

    if settings and settings.log_file:
        try:
            log_path = Path(settings.log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                settings.log_file,
                maxBytes=settings.log_max_bytes,
                backupCount=settings.log_backup_count,
                encoding="utf-8",
            )
            file_handler.setFormatter(logging.Formatter("%(message)s"))
            handlers.append(file_handler)
        except OSError as e:  # pragma: no cover
            print(f"Failed to set file handler: {e}", file=sys.stderr)

    root = logging.getLogger()
    root.handlers = handlers
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


# ------------------------------------------------------------
# Metrics instruments
# ------------------------------------------------------------
LAUNCH_ATTEMPTS = Counter(
    "phantom_launch_attempts_total", "Launch attempts per dialect", labelnames=("dialect", "outcome")
)
STATUS_POLLS = Counter(
    "phantom_status_polls_total", "Status polls by observed status", labelnames=("status",)
)
JOBS_TOTAL = Counter(
    "phantom_jobs_total", "Orchestration flows by outcome", labelnames=("outcome",)
)
JOB_DURATION_SECONDS = Histogram(
    "phantom_job_duration_seconds",
    "Wall time of one launch/poll/fetch flow",
    buckets=(1, 5, 15, 30, 60, 120, 300, 600, 1800),
)
PROFILES_RETURNED = Counter(
    "phantom_profiles_returned_total", "Normalized profile records returned to callers"
)
OUTPUT_SHAPES = Counter(
    "phantom_output_shapes_total", "Output payload shapes recognized", labelnames=("shape",)
)


# ------------------------------------------------------------
# Context dataclass
# ------------------------------------------------------------
@dataclass(slots=True)
class AppContext:
    settings: Settings
    logger: structlog.BoundLogger
    client: Optional["PhantomClient"] = None


_context_singleton: Optional[AppContext] = None
_context_lock = asyncio.Lock()


async def bootstrap(force: bool = False) -> AppContext:
    """Create (or return existing) application context.

    Args:
        force: Recreate the context even if already initialized (tests mostly).
    """
    global _context_singleton
    if _context_singleton and not force:
        return _context_singleton

    async with _context_lock:
        if _context_singleton and not force:
            return _context_singleton

        settings = Settings()  # Loads from env automatically
        configure_logging(settings.log_level, settings)
        logger = structlog.get_logger().bind(component="bootstrap")

        from .config_inspect import log_safe  # local import to avoid overhead if module unused
        log_safe(logger, settings)

        from .client import PhantomClient  # lazy: client imports bootstrap metrics

        t0 = time.perf_counter()
        previous = _context_singleton
        client = PhantomClient.from_settings(settings, logger=logger.bind(subsystem="phantom"))
        if previous and previous.client:
            await previous.client.aclose()
        ctx = AppContext(
            settings=settings,
            logger=logger.bind(subsystem="core"),
            client=client,
        )
        log_method = logger.debug if settings.quiet_startup else logger.info
        log_method(
            "bootstrap_complete",
            elapsed=f"{time.perf_counter() - t0:.3f}s",
            configured=settings.is_configured,
            base_url=settings.phantom_base_url,
            poll_interval_seconds=settings.poll_interval_seconds,
        )
        _context_singleton = ctx
        return ctx


async def shutdown() -> None:
    """Close the shared client and drop the context."""
    global _context_singleton
    ctx = _context_singleton
    _context_singleton = None
    if ctx and ctx.client:
        await ctx.client.aclose()


# ------------------------------------------------------------
# Helper accessors
# ------------------------------------------------------------
async def get_context() -> AppContext:
    """Public accessor for the global application context."""
    return await bootstrap()


# For ad-hoc manual test (python -m phantom.bootstrap)
if __name__ == "__main__":  # pragma: no cover
    async def _demo():
        ctx = await bootstrap(force=True)
        print("Context ready. Configured?", ctx.settings.is_configured)
        await shutdown()

    asyncio.run(_demo())
