"""Authentication and bootstrap models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class TokenResponse(BaseModel):
    """Session token handed out on the loopback bootstrap route."""

    token: str = Field(..., description="Bearer token for this server session")


class HealthResponse(BaseModel):
    """Unauthenticated liveness probe."""

    status: str = Field("ok", description="Always 'ok' while the server is running")
    vault: str = Field(..., description="Name of the open vault (not secret)")


__all__ = ["TokenResponse", "HealthResponse"]
