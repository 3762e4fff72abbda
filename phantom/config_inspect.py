"""Masked view of the effective settings, logged once at startup.

The snapshot is taken from the loaded ``Settings`` (env and .env already
merged), keyed by env alias so operators see the names they set. Values of
secret-looking keys are masked.
"""
from __future__ import annotations

from typing import Any, Dict, TYPE_CHECKING
import re

if TYPE_CHECKING:  # pragma: no cover
    from .bootstrap import Settings

SECRET_PATTERN = re.compile(r"(api_key|token|secret|password)", re.IGNORECASE)

CREDENTIAL_ALIASES = ("PHANTOMBUSTER_API_KEY", "PHANTOMBUSTER_AGENT_ID")


def mask_value(key: str, value: Any) -> Any:
    if value is None or not SECRET_PATTERN.search(key):
        return value
    text = str(value)
    if len(text) > 6:
        return f"{text[:3]}***{text[-2:]}"
    return "***"


def safe_snapshot(settings: "Settings") -> Dict[str, Any]:
    data = settings.model_dump(by_alias=True)
    return {k: mask_value(k, data[k]) for k in sorted(data)}


def missing_credentials(settings: "Settings") -> list[str]:
    data = settings.model_dump(by_alias=True)
    return [alias for alias in CREDENTIAL_ALIASES if not data.get(alias)]


def log_safe(logger, settings: "Settings") -> None:
    logger.info(
        "runtime_config",
        missing_credentials=missing_credentials(settings),
        **safe_snapshot(settings),
    )


__all__ = ["mask_value", "safe_snapshot", "missing_credentials", "log_safe"]
