"""Check trigger and status API endpoints."""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from src.api.deps import get_monitor, require_admin_token
from src.worker.checker import RestockMonitor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["checks"], dependencies=[Depends(require_admin_token)])

NO_STORE = {"Cache-Control": "no-store", "X-Content-Type-Options": "nosniff"}


class TargetStateResponse(BaseModel):
    """Response model for one target's persisted state."""
    status: str
    in_since_ts: int
    in_streak: int
    err_streak: int
    last_err_notify_ts: int
    last_in_notify_attempt_ts: int
    last_in_notify_ok_ts: int
    last_used_url: Optional[str]
    last_reason: str
    ts: int


def _error_response(e: Exception) -> PlainTextResponse:
    return PlainTextResponse(f"Error: {e}", status_code=500, headers=NO_STORE)


@router.get("/", response_class=PlainTextResponse)
@router.get("/check", response_class=PlainTextResponse)
async def trigger_check(monitor: RestockMonitor = Depends(get_monitor)):
    """Run one check cycle and return its summary."""
    try:
        summary = await monitor.run_check()
    except Exception as e:
        logger.error(f"Manual check failed: {e}", exc_info=True)
        return _error_response(e)
    return PlainTextResponse(summary, headers=NO_STORE)


@router.get("/status", response_model=Dict[str, TargetStateResponse])
async def get_status(response: Response, monitor: RestockMonitor = Depends(get_monitor)):
    """Current state of every configured target."""
    try:
        state = await monitor.get_status()
    except Exception as e:
        logger.error(f"Status lookup failed: {e}", exc_info=True)
        return _error_response(e)
    response.headers.update(NO_STORE)
    return {name: record.to_dict() for name, record in state.items()}
