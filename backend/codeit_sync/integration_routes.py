"""REST endpoints for connecting, verifying and syncing coding platforms."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Header, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .aggregation import summarize
from .errors import SyncError
from .sync_engine import SyncOrchestrator
from .verification import VerificationManager

router = APIRouter(prefix="/api/integrations", tags=["integrations"])
logger = logging.getLogger(__name__)

ERROR_STATUS: Dict[str, int] = {
    "InvalidPlatform": status.HTTP_400_BAD_REQUEST,
    "InvalidHandle": status.HTTP_400_BAD_REQUEST,
    "NoPendingChallenge": status.HTTP_400_BAD_REQUEST,
    "VerificationFailed": status.HTTP_400_BAD_REQUEST,
    "ChallengeExpired": status.HTTP_400_BAD_REQUEST,
    "NotConnected": status.HTTP_400_BAD_REQUEST,
    "AlreadyConnected": status.HTTP_409_CONFLICT,
    "HandleNotFound": status.HTTP_404_NOT_FOUND,
    "RateLimited": status.HTTP_429_TOO_MANY_REQUESTS,
    "UpstreamUnavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
    "UpstreamShapeChanged": status.HTTP_502_BAD_GATEWAY,
}


class HandleRequest(BaseModel):
    handle: str = Field(..., max_length=100)


async def sync_error_handler(request: Request, exc: SyncError) -> JSONResponse:
    code = ERROR_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.info("%s %s -> %s (%s)", request.method, request.url.path, code, exc.kind)
    return JSONResponse(status_code=code, content=exc.to_payload())


def _verification(request: Request) -> VerificationManager:
    return request.app.state.verification


def _orchestrator(request: Request) -> SyncOrchestrator:
    return request.app.state.orchestrator


@router.post("/connect/{platform}")
def connect_platform(
    platform: str,
    body: HandleRequest,
    request: Request,
    user_id: str = Header(..., alias="X-User-Id", min_length=1),
) -> Dict[str, Any]:
    challenge = _verification(request).initiate(user_id, platform, body.handle)
    return {"success": True, **challenge.model_dump(mode="json")}


@router.post("/verify/{platform}")
async def verify_platform(
    platform: str,
    body: HandleRequest,
    request: Request,
    user_id: str = Header(..., alias="X-User-Id", min_length=1),
) -> Dict[str, Any]:
    result = await _verification(request).confirm(user_id, platform, body.handle)
    return {"success": True, **result.model_dump(mode="json")}


@router.post("/cancel/{platform}")
def cancel_verification(
    platform: str,
    request: Request,
    user_id: str = Header(..., alias="X-User-Id", min_length=1),
) -> Dict[str, Any]:
    link = _verification(request).cancel(user_id, platform)
    return {"success": True, "platform": link.platform.value, "state": link.state().value}


@router.post("/disconnect/{platform}")
def disconnect_platform(
    platform: str,
    request: Request,
    user_id: str = Header(..., alias="X-User-Id", min_length=1),
) -> Dict[str, Any]:
    link = _verification(request).disconnect(user_id, platform)
    return {"success": True, "platform": link.platform.value, "state": link.state().value}


@router.get("/status")
def integration_status(
    request: Request,
    user_id: str = Header(..., alias="X-User-Id", min_length=1),
) -> Dict[str, Any]:
    return {"user_id": user_id, "platforms": _verification(request).status(user_id)}


@router.post("/sync/{platform}")
async def sync_platform(
    platform: str,
    request: Request,
    user_id: str = Header(..., alias="X-User-Id", min_length=1),
) -> Dict[str, Any]:
    stats = await _orchestrator(request).sync_one(user_id, platform)
    return {"platform": stats.platform.value, **stats.to_payload()}


@router.post("/sync")
async def sync_all(
    request: Request,
    user_id: str = Header(..., alias="X-User-Id", min_length=1),
) -> Dict[str, Any]:
    outcome = await _orchestrator(request).sync_all_for_user(user_id)
    payload = outcome.to_payload()
    payload["summary"] = summarize(outcome.successes)
    return payload


@router.get("/stats")
def cached_stats(
    request: Request,
    user_id: str = Header(..., alias="X-User-Id", min_length=1),
) -> Dict[str, Any]:
    stats = _orchestrator(request).cached_stats(user_id)
    return {
        "user_id": user_id,
        "platforms": {platform.value: snapshot.to_payload() for platform, snapshot in stats.items()},
        "summary": summarize(stats),
    }


__all__ = ["ERROR_STATUS", "router", "sync_error_handler"]
