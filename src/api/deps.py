"""FastAPI dependencies."""

import hmac
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from src.config import settings
from src.worker.checker import RestockMonitor


def get_monitor(request: Request) -> RestockMonitor:
    """Dependency for the monitor created in the app lifespan."""
    return request.app.state.monitor


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def require_admin_token(
    authorization: Optional[str] = Header(None),
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
) -> None:
    """
    Dependency guarding the check/status endpoints when ADMIN_TOKEN is set.

    Accepts "Authorization: Bearer <token>" or "X-Admin-Token: <token>".

    Raises:
        HTTPException: 401 if the token is missing or wrong
    """
    if not settings.admin_token:
        return

    token = _bearer_token(authorization) or x_admin_token
    if not token or not hmac.compare_digest(token, settings.admin_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
