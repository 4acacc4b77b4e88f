"""Session token authentication for the local control plane."""

from __future__ import annotations

import ipaddress
import logging
import secrets
from typing import Any, Dict, Optional

from fastapi import status

logger = logging.getLogger(__name__)

UNAUTHORIZED_HINT = "Get token from /auth/token or check the vault-gate settings"


class AuthError(Exception):
    """Domain-specific authentication error."""

    def __init__(
        self,
        error: str,
        message: str,
        *,
        status_code: int = status.HTTP_401_UNAUTHORIZED,
        detail: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.message = message
        self.status_code = status_code
        self.detail = detail or {}


def parse_bearer(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` header, if any."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def is_loopback(host: Optional[str]) -> bool:
    """True for 127.0.0.0/8, ::1 and IPv4-mapped loopback addresses."""
    if not host:
        return False
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return address.is_loopback


class SessionAuth:
    """
    Issues and checks the single bearer token of a server session.

    The token is opaque, generated fresh on every ``rotate()`` (i.e. every
    server start) and never persisted.
    """

    def __init__(self, token_bytes: int = 32) -> None:
        self.token_bytes = token_bytes
        self._token: Optional[str] = None

    @property
    def token(self) -> Optional[str]:
        return self._token

    def rotate(self) -> str:
        self._token = secrets.token_urlsafe(self.token_bytes)
        logger.debug("Issued new session token", extra={"token_prefix": self._token[:6]})
        return self._token

    def revoke(self) -> None:
        self._token = None

    def validate(self, authorization: Optional[str]) -> str:
        """
        Validate an Authorization header value.

        Raises AuthError when the header is missing, malformed or carries the
        wrong token.
        """
        if self._token is None:
            raise AuthError("unauthorized", "No active session")
        token = parse_bearer(authorization)
        if token is None:
            raise AuthError("unauthorized", "Authorization header must be in format: Bearer <token>")
        if not secrets.compare_digest(token.encode("utf-8"), self._token.encode("utf-8")):
            raise AuthError("unauthorized", "Invalid session token")
        return token


__all__ = ["AuthError", "SessionAuth", "is_loopback", "parse_bearer", "UNAUTHORIZED_HINT"]
