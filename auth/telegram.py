"""
auth/telegram.py -- Telegram Login Widget assertion verification.

Telegram signs the widget payload with HMAC-SHA256. The HMAC key is the raw
SHA-256 digest of the bot token (not its hex form), and the message is the
"data-check string": every signed field except the hash as key=value lines,
sorted by key, joined with newlines.

Security design decisions:
  [T1] The computed and presented hashes are compared as decoded bytes with
       hmac.compare_digest. A length mismatch is a plain failure.
  [T2] Freshness: auth_date may be at most 60s in the future (clock skew) and
       at most 24h in the past. Replaying an old widget payload fails.
  [T3] verify_telegram_assertion() returns None for every failure. The reason
       is logged at DEBUG only -- callers never see which check failed.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from typing import Optional

from auth.models import AuthenticatedUser, TelegramAssertion
from auth.tokens import constant_time_equals

logger = logging.getLogger("unityprep.auth")

AUTH_MAX_AGE_SECONDS = 24 * 60 * 60
AUTH_CLOCK_SKEW_SECONDS = 60

_REQUIRED_FIELDS = ("id", "auth_date", "first_name")
_OPTIONAL_FIELDS = ("last_name", "username", "photo_url")


def build_data_check_string(assertion: TelegramAssertion) -> str:
    """Return the canonical string Telegram signed for this assertion."""
    fields = {name: str(getattr(assertion, name)) for name in _REQUIRED_FIELDS}
    for name in _OPTIONAL_FIELDS:
        value = getattr(assertion, name)
        if value:
            fields[name] = value
    return "\n".join(f"{key}={fields[key]}" for key in sorted(fields))


def derive_secret_key(bot_token: str) -> bytes:
    return hashlib.sha256(bot_token.encode("utf-8")).digest()


def compute_assertion_hash(data_check_string: str, bot_token: str) -> str:
    """Return the lowercase hex HMAC-SHA256 Telegram would attach to this string."""
    return hmac.new(
        derive_secret_key(bot_token),
        data_check_string.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def is_fresh(auth_date: int, now: int) -> bool:
    """Apply the freshness window [T2]."""
    if auth_date > now + AUTH_CLOCK_SKEW_SECONDS:
        return False
    return now - auth_date <= AUTH_MAX_AGE_SECONDS


def _hashes_match(computed: str, presented: str) -> bool:
    # [T1] compare decoded digests, never the hex strings with ==
    try:
        return constant_time_equals(bytes.fromhex(computed), bytes.fromhex(presented))
    except ValueError:
        return False


def verify_telegram_assertion(
    assertion: TelegramAssertion,
    bot_token: str,
    now: Optional[int] = None,
) -> AuthenticatedUser | None:
    """Verify a widget assertion against the bot token.

    Returns the AuthenticatedUser on success, None on any failure [T3].
    The assertion must already be validated (see TelegramAssertion).
    """
    current = int(time.time()) if now is None else now
    if not is_fresh(assertion.auth_date, current):
        logger.debug("Telegram assertion for id=%s rejected: auth_date outside window", assertion.id)
        return None

    computed = compute_assertion_hash(build_data_check_string(assertion), bot_token)
    if not _hashes_match(computed, assertion.hash.lower()):
        logger.debug("Telegram assertion for id=%s rejected: hash mismatch", assertion.id)
        return None

    return AuthenticatedUser(
        id=assertion.id,
        first_name=assertion.first_name,
        last_name=assertion.last_name,
        username=assertion.username,
        photo_url=assertion.photo_url,
        auth_date=assertion.auth_date,
    )
