"""Unauthenticated bootstrap routes: liveness and session token."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, status

from ...models.auth import HealthResponse, TokenResponse
from ...services.auth import is_loopback

logger = logging.getLogger(__name__)

router = APIRouter()


@router.api_route("/health", methods=["GET", "POST"], response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Liveness probe; reports the vault name."""
    return HealthResponse(vault=request.app.state.config.vault_name)


@router.get("/auth/token", response_model=TokenResponse)
async def session_token(request: Request) -> TokenResponse:
    """Hand the session token to local processes only."""
    host = request.client.host if request.client else None
    if not is_loopback(host):
        logger.warning("Token request from non-loopback address", extra={"client_id": host})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail={"error": "Forbidden"})

    token = request.app.state.auth.token
    if token is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail={"error": "Server not running"})
    return TokenResponse(token=token)
