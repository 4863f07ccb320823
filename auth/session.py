"""
auth/session.py -- The two operations the rest of the app calls.

  mint_session()    -- Telegram assertion in, SessionGrant or AuthFailure out.
  resolve_session() -- bearer token in, AuthenticatedUser or None out.

Both are pure functions of their inputs plus the read-only Settings: no
locks, no I/O, no server-side session table. Any number may run in parallel.

Failure signalling:
  - Shape problems raise pydantic.ValidationError before any crypto runs.
    Field-level detail is safe to return; it reveals nothing about the secret.
  - Missing TELEGRAM_BOT_TOKEN returns AuthFailure.NOT_CONFIGURED so callers
    can answer 503 (or bypass auth entirely in open mode).
  - Everything else (stale, future, bad hash) is AuthFailure.INVALID.

Layer rule: no imports from api/. Settings is imported for typing only; the
caller passes the instance in.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Optional, Union

from auth.models import AuthenticatedUser, AuthFailure, SessionGrant, TelegramAssertion
from auth.telegram import verify_telegram_assertion
from auth.tokens import create_session_token, decode_session_token

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("unityprep.auth")


def mint_session(
    payload: Union[TelegramAssertion, Mapping[str, Any]],
    settings: Settings,
    now: Optional[int] = None,
) -> SessionGrant | AuthFailure:
    """Verify a Telegram widget payload and issue a session token for it.

    Raises pydantic.ValidationError if a raw mapping fails validation.
    """
    if not settings.auth_enabled:
        return AuthFailure.NOT_CONFIGURED

    assertion = payload if isinstance(payload, TelegramAssertion) else TelegramAssertion.model_validate(payload)

    user = verify_telegram_assertion(assertion, settings.telegram_bot_token, now=now)
    if user is None:
        logger.info("Telegram login rejected")
        return AuthFailure.INVALID

    token = create_session_token(user, settings.signing_secret, now=now)
    logger.info("Telegram login succeeded for id=%s", user.id)
    return SessionGrant(token=token, user=user)


def resolve_session(token: str, settings: Settings, now: Optional[int] = None) -> AuthenticatedUser | None:
    """Return the user a bearer token was issued to, or None."""
    return decode_session_token(token, settings.signing_secret, now=now)


def parse_bearer_token(header_value: Optional[str]) -> str | None:
    """Extract the token from an "Authorization: Bearer <token>" header value."""
    if not header_value:
        return None
    # Only the first two space-separated parts count; "Bearer  x" has an empty token.
    parts = header_value.split(" ")
    if len(parts) < 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None
