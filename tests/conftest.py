"""
tests/conftest.py -- Shared test fixtures for UnityPrep auth tests.

This module provides:
  - sign_assertion: factory that builds a correctly signed widget payload
  - configured_settings / open_settings: Settings for both auth modes
  - api_client: TestClient with Telegram login configured
  - open_client: TestClient with no bot token (development open mode)

Settings are swapped through app.dependency_overrides[get_settings] rather
than environment variables, so both modes can run in one test session.

The DEBUG env var must be set before any api/ import so the module-level
get_settings() call falls back to the development secret instead of raising.
"""

from __future__ import annotations

import hashlib
import hmac
import os
import time
from collections.abc import Callable, Generator

# CRITICAL: Set DEBUG before any api/core import so get_settings() accepts
# the development secret instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from core.config import Settings, get_settings

BOT_TOKEN = "test-telegram-bot-token"
AUTH_SECRET = "test-auth-secret-0123456789abcdefghij"

# Login tests post far more than LOGIN_RATE_LIMIT allows per minute.
limiter.enabled = False


# ---------------------------------------------------------------------------
# Assertion helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def sign_assertion() -> Callable[..., dict]:
    """Return a factory that signs widget fields the way Telegram does.

    Usage: sign_assertion(first_name="Ann", auth_date=T, bot_token="x")
    Missing id/first_name/auth_date get defaults; the result includes "hash".
    """

    def _sign(bot_token: str = BOT_TOKEN, **fields) -> dict:
        payload = {
            "id": "99887766",
            "first_name": "Stanislav",
            "auth_date": int(time.time()),
        }
        payload.update(fields)
        data_check_string = "\n".join(f"{key}={payload[key]}" for key in sorted(payload))
        secret_key = hashlib.sha256(bot_token.encode()).digest()
        payload["hash"] = hmac.new(secret_key, data_check_string.encode(), hashlib.sha256).hexdigest()
        return payload

    return _sign


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def configured_settings() -> Settings:
    return Settings(debug=True, telegram_bot_token=BOT_TOKEN, auth_secret=AUTH_SECRET)


@pytest.fixture
def open_settings() -> Settings:
    return Settings(debug=True, telegram_bot_token="", auth_secret="")


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


def _client_for(settings: Settings) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        with TestClient(app, raise_server_exceptions=True) as client:
            yield client
    finally:
        app.dependency_overrides.pop(get_settings, None)


@pytest.fixture
def api_client(configured_settings: Settings) -> Generator[TestClient, None, None]:
    """TestClient against the real app with Telegram login configured."""
    yield from _client_for(configured_settings)


@pytest.fixture
def open_client(open_settings: Settings) -> Generator[TestClient, None, None]:
    """TestClient against the real app with no bot token (open mode)."""
    yield from _client_for(open_settings)
