"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Sessions arrive as an "Authorization: Bearer <token>" header. The token is
verified on every request; there is nothing to look up.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.
require_session() is what write endpoints use: it behaves like
get_current_user() when Telegram login is configured, and lets everything
through (returning None) when it is not -- the development open mode.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for Depends/HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request

from auth.models import AuthenticatedUser
from auth.session import parse_bearer_token, resolve_session
from core.config import Settings, get_settings


def try_get_current_user(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Optional[AuthenticatedUser]:
    """Authenticate the request from its Bearer header.

    Returns the AuthenticatedUser on success, None on any failure.
    Never raises -- callers that need a hard 401 should use get_current_user().
    """
    token = parse_bearer_token(request.headers.get("Authorization"))
    if token is None:
        return None
    return resolve_session(token, settings)


def get_current_user(user: Optional[AuthenticatedUser] = Depends(try_get_current_user)) -> AuthenticatedUser:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: AuthenticatedUser = Depends(get_current_user)): ...
    """
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user


def require_session(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Optional[AuthenticatedUser]:
    """Gate a write endpoint. Returns None without checking anything in open mode.

    Use as a FastAPI dependency:
        @router.post("/cards")
        async def route(user: AuthenticatedUser | None = Depends(require_session)): ...
    """
    if not settings.auth_enabled:
        return None
    return get_current_user(try_get_current_user(request, settings))
