"""
auth/tokens.py -- Stateless session tokens and shared signature primitives.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with the session signing
       secret (see core.config.Settings.signing_secret) and carry the Telegram
       profile plus iat/exp. Nothing is stored server-side: the token is the
       session, and expiry is the only way it ends [K1].

  Verification returns None on any failure -- malformed structure, bad
       signature, wrong alg/typ, missing claims and expiry all look the same to
       the caller. The route layer turns None into a generic 401 [K2].

  Expiry is checked here rather than by python-jose: a token is valid only
       while exp is strictly greater than now, and python-jose still accepts
       exp == now [K3].

  Comparisons of secret-derived bytes go through constant_time_equals(),
       which wraps hmac.compare_digest. python-jose uses the same primitive for
       the JWT signature.

Layer rule: no imports from api/ or core/. The secret is always passed in.
"""

from __future__ import annotations

import hmac
import logging
import time
from typing import Any, Optional

from jose import JWTError, jwt

from auth.models import AuthenticatedUser

logger = logging.getLogger("unityprep.auth")

SESSION_LIFETIME_SECONDS = 30 * 24 * 60 * 60

_ALGORITHM = "HS256"
_TOKEN_TYPE = "JWT"


def constant_time_equals(left: bytes, right: bytes) -> bool:
    """Compare two byte strings without short-circuiting on the first difference.

    Unequal lengths are a mismatch, not an error.
    """
    if len(left) != len(right):
        return False
    return hmac.compare_digest(left, right)


# ---------------------------------------------------------------------------
# Encode / decode
# ---------------------------------------------------------------------------


def create_session_token(user: AuthenticatedUser, secret: str, now: Optional[int] = None) -> str:
    """Encode a signed session token for a verified user.

    Args:
        user:   The verified identity. Optional profile fields that are None
                are left out of the payload.
        secret: Raw signing secret; its UTF-8 bytes are the HMAC key.
        now:    Issue time in epoch seconds. Defaults to the current time.
    """
    iat = int(time.time()) if now is None else now
    claims: dict[str, Any] = {
        "sub": user.id,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "username": user.username,
        "photoUrl": user.photo_url,
        "authDate": user.auth_date,
        "iat": iat,
        "exp": iat + SESSION_LIFETIME_SECONDS,
    }
    payload = {key: value for key, value in claims.items() if value is not None}
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def decode_session_token(token: str, secret: str, now: Optional[int] = None) -> AuthenticatedUser | None:
    """Verify a session token and rebuild the user it was issued for.

    Returns None on any failure [K2].
    """
    if token.count(".") != 2:
        return None
    try:
        claims = jwt.decode(token, secret, algorithms=[_ALGORITHM], options={"verify_exp": False})
        header = jwt.get_unverified_header(token)
    except JWTError:
        return None

    if header.get("typ") != _TOKEN_TYPE:
        return None

    subject = claims.get("sub")
    first_name = claims.get("firstName")
    if not isinstance(subject, str) or not isinstance(first_name, str):
        return None

    # [K3]
    exp = claims.get("exp")
    current = int(time.time()) if now is None else now
    if isinstance(exp, bool) or not isinstance(exp, (int, float)) or exp <= current:
        return None

    auth_date = claims.get("authDate")
    return AuthenticatedUser(
        id=subject,
        first_name=first_name,
        last_name=_optional_str(claims.get("lastName")),
        username=_optional_str(claims.get("username")),
        photo_url=_optional_str(claims.get("photoUrl")),
        auth_date=auth_date if isinstance(auth_date, int) and not isinstance(auth_date, bool) else 0,
    )


def _optional_str(value: object) -> Optional[str]:
    return value if isinstance(value, str) else None
