"""FastAPI application entrypoint.

Responsibilities:
- Create the FastAPI app with lifespan context
- Attach middleware: request id binding for structlog, basic security headers
- Include API routes

Notes:
- Logging is configured in phantom.bootstrap when the context is created.
- The lifespan creates the single long-lived PhantomClient (dialects learned
  by one request are reused by the next) and closes it on shutdown.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator
import asyncio
import uuid

from fastapi import FastAPI, Request, Response
from structlog import contextvars as struct_contextvars

from phantom.bootstrap import get_context, shutdown
from .routes import router as core_router


# ------------------------------------------------------------
# Lifespan: initialize global context once app starts
# ------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:  # noqa: D401
    ctx = await get_context()
    log_method = ctx.logger.debug if ctx.settings.quiet_startup else ctx.logger.info
    log_method("api_startup", configured=ctx.settings.is_configured)
    if not ctx.settings.is_configured:
        ctx.logger.warning("phantom_credentials_missing", hint="Set PHANTOMBUSTER_API_KEY and PHANTOMBUSTER_AGENT_ID")
    try:
        yield
    except asyncio.CancelledError:  # graceful shutdown triggered
        log_method("api_shutdown_cancelled")
    finally:
        await shutdown()
        log_method("api_shutdown")


app = FastAPI(title="LinkedIn Profile API", version="0.1.0", lifespan=lifespan)


# ------------------------------------------------------------
# Basic middleware
# ------------------------------------------------------------
@app.middleware("http")
async def request_context(request: Request, call_next):  # noqa: D401
    rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    struct_contextvars.bind_contextvars(request_id=rid)
    try:
        response: Response = await call_next(request)
    finally:
        # Clear contextvars to avoid leakage
        struct_contextvars.clear_contextvars()
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault("X-Request-ID", rid)
    return response


# ------------------------------------------------------------
# Include routes
# ------------------------------------------------------------
app.include_router(core_router)


# For local dev run: uvicorn server.main:app --reload
