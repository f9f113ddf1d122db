"""Authentication dependencies for the HTTP surface.

Two guards:
  - require_admin_token()    admin/ops endpoints (Bearer ADMIN_API_KEY)
  - require_gateway_token()  inbound webhook (Bearer GATEWAY_TOKEN)

Admin behavior matrix:
  ADMIN_API_KEY set + valid token   → allow
  ADMIN_API_KEY set + wrong/missing → 401 Unauthorized
  ADMIN_API_KEY empty + DEBUG=true  → allow (local dev convenience)
  ADMIN_API_KEY empty + DEBUG=false → 403 Forbidden (locked in production)

The webhook is open when GATEWAY_TOKEN is unset (startup warns about it).
"""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from offerbot.config import settings

log = logging.getLogger("offerbot.auth")

_bearer_scheme = HTTPBearer(auto_error=False)


def _token_matches(credentials: HTTPAuthorizationCredentials | None, key: str) -> bool:
    return credentials is not None and secrets.compare_digest(credentials.credentials, key)


async def require_admin_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> None:
    """FastAPI dependency: protect admin endpoints with a bearer token."""
    key = settings.admin_api_key

    if not key:
        if settings.debug:
            return
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API key not configured. Set ADMIN_API_KEY in .env.",
        )

    if not _token_matches(credentials, key):
        log.warning("Rejected admin request with invalid token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin token.",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_gateway_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> None:
    """FastAPI dependency: only the messaging gateway may post inbound events."""
    key = settings.gateway_token
    if not key:
        return

    if not _token_matches(credentials, key):
        log.warning("Rejected inbound event with invalid gateway token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing gateway token.",
            headers={"WWW-Authenticate": "Bearer"},
        )
