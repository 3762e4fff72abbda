"""FastAPI route definitions.

Endpoints:
- GET  /                       : Plain-text liveness banner
- POST /get_linkedin_profiles  : Launch a remote search and return normalized profiles
- GET  /get_linkedin_profiles  : 405, the search only accepts POST
- GET  /health                 : JSON health + learned dialects
- GET  /metrics                : Prometheus metrics

Failures of the orchestration core are logged with their diagnostics and
mapped to one generic 500; raw remote responses never reach the caller.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from domain.models import ProfileSearchRequest
from phantom.bootstrap import AppContext, get_context
from phantom.errors import PhantomError

router = APIRouter()

MISSING_FIELDS_MESSAGE = "Missing role or organisation"
GENERIC_ERROR_MESSAGE = "Error retrieving profiles"


async def get_app_context() -> AppContext:
    return await get_context()


@router.get("/", response_class=PlainTextResponse)
async def index():
    return "LinkedIn Profile API is running."


@router.get("/get_linkedin_profiles", response_class=PlainTextResponse)
async def profiles_wrong_method():
    return PlainTextResponse("Use POST", status_code=405)


@router.post("/get_linkedin_profiles")
async def get_linkedin_profiles(
    payload: Any = Body(None),
    ctx: AppContext = Depends(get_app_context),
):
    logger = ctx.logger.bind(route="get_linkedin_profiles")
    try:
        request = ProfileSearchRequest.model_validate(payload or {})
    except ValidationError as exc:
        logger.info("profiles_request_invalid", errors=exc.errors(include_url=False, include_input=False))
        return PlainTextResponse(MISSING_FIELDS_MESSAGE, status_code=400)
    if not request.has_required_fields:
        return PlainTextResponse(MISSING_FIELDS_MESSAGE, status_code=400)

    query = request.to_query(ctx.settings.profiles_requested)
    limit = request.limit or ctx.settings.max_results
    assert ctx.client is not None
    try:
        profiles = await ctx.client.search_profiles(query, limit=limit)
    except PhantomError as exc:
        logger.error("profiles_request_failed", **exc.diagnostics())
        return PlainTextResponse(GENERIC_ERROR_MESSAGE, status_code=500)
    except Exception as exc:  # noqa: BLE001
        logger.error("profiles_request_failed", error_type=type(exc).__name__, error=str(exc), exc_info=True)
        return PlainTextResponse(GENERIC_ERROR_MESSAGE, status_code=500)
    return JSONResponse({"profiles": [p.to_public_dict() for p in profiles]})


@router.get("/health")
async def health(ctx: AppContext = Depends(get_app_context)):
    data: dict[str, Any] = {
        "status": "ok",
        "app": ctx.settings.app_name,
        "configured": ctx.settings.is_configured,
        "dialects": ctx.client.dialects() if ctx.client else {},
    }
    return data


@router.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
