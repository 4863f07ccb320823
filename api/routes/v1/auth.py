"""
api/routes/v1/auth.py -- Telegram login and session REST endpoints.

Routes:
  POST /api/v1/auth/telegram  -- verify a Login Widget payload; returns a session token
  GET  /api/v1/auth/me        -- current user (requires Bearer token)
  POST /api/v1/auth/logout    -- 204; sessions are stateless, the client drops its token

Security:
  [H1] POST /auth/telegram is rate-limited per IP (LOGIN_RATE_LIMIT).
  [H2] Every verification failure returns the same 401 body. The reason
       (stale, future, bad hash) is never sent to the client.
  [H3] Cache-Control: no-store on login responses.
  [H4] Logout cannot revoke a token before its exp -- there is no server-side
       store to revoke it from. The web client deletes its copy.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.limiter import limiter
from api.models import MeResponse, SessionResponse, UserResponse
from auth.dependencies import get_current_user
from auth.models import AuthenticatedUser, AuthFailure
from auth.session import mint_session
from core.config import Settings, get_settings

# Auth policy:
# - POST /api/v1/auth/telegram: public -- this is how a session starts
# - POST /api/v1/auth/logout:   public -- nothing server-side to clear
# - GET  /api/v1/auth/me:       requires auth (get_current_user)
router = APIRouter()


def _login_rate_limit() -> str:
    return get_settings().login_rate_limit


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"  # [H3]
    return resp


@limiter.limit(_login_rate_limit)  # [H1] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/telegram", response_model=SessionResponse)
def telegram_login(
    request: Request,
    body: Any = Body(...),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Exchange a Telegram Login Widget payload for a session token.

    503 when TELEGRAM_BOT_TOKEN is not set, 401 for any verification failure,
    400 (from the validation handler) when the payload shape is wrong.
    The body is taken raw so the configuration check runs before validation.
    """
    try:
        outcome = mint_session(body, settings)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc
    if outcome is AuthFailure.NOT_CONFIGURED:
        return _no_store(
            JSONResponse(
                status_code=503,
                content={
                    "error": {
                        "code": "auth_not_configured",
                        "message": "Telegram auth is not configured on server.",
                    }
                },
            )
        )
    if outcome is AuthFailure.INVALID:
        return _no_store(
            JSONResponse(
                status_code=401,
                content={"error": {"code": "invalid_assertion", "message": "Invalid Telegram auth payload."}},  # [H2]
            )
        )

    return _no_store(
        JSONResponse(
            status_code=200,
            content=SessionResponse(
                token=outcome.token,
                user=UserResponse.from_user(outcome.user),
            ).model_dump(by_alias=True),
        )
    )


@router.get("/auth/me", response_model=MeResponse)
async def me(current_user: AuthenticatedUser = Depends(get_current_user)) -> MeResponse:
    """Return the identity carried by the presented session token."""
    return MeResponse(user=UserResponse.from_user(current_user))


@router.post("/auth/logout", status_code=204)
async def logout() -> Response:
    """Acknowledge logout. The token stays valid until exp [H4]."""
    return Response(status_code=204)
