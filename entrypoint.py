"""Process entrypoint: serve the FastAPI app with uvicorn.

Behavior:
 - Settings (.env included) are read through phantom.bootstrap.Settings.
 - Respects APP_HOST / PORT.
 - Honors LOG_LEVEL / LOG_FILE via bootstrap logging configuration.
 - Test shortcut: set ENTRYPOINT_TEST_MODE=1 to skip launching the server (used in unit tests).

Usage (source):
  python entrypoint.py
"""
from __future__ import annotations
import asyncio, os, sys
from pathlib import Path

import uvicorn

PROJECT_ROOT = Path(__file__).resolve().parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from phantom.bootstrap import Settings, configure_logging  # noqa: E402

import structlog  # noqa: E402


def _test_mode() -> bool:
    return os.environ.get("ENTRYPOINT_TEST_MODE", "0").lower() in ("1", "true", "yes", "on")


async def main() -> None:
    settings = Settings()
    configure_logging(settings.log_level, settings)
    logger = structlog.get_logger().bind(component="entrypoint")
    logger.info("entrypoint_start", host=settings.app_host, port=settings.app_port, test_mode=_test_mode())
    if _test_mode():
        logger.info("entrypoint_test_mode_exit")
        return
    config = uvicorn.Config(
        "server.main:app",
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level.lower(),
        # structlog already owns the root handlers
        log_config=None,
    )
    server = uvicorn.Server(config)
    await server.serve()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
