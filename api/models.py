"""
API request and response models for UnityPrep REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

POST /auth/telegram takes its body raw and validates it as
auth.models.TelegramAssertion inside mint_session(), after the configuration
check. Its field names are fixed by the Telegram widget.

Response fields are camelCase on the wire (firstName, photoUrl, ...) to match
what the web client reads; Python code uses snake_case via alias_generator.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from auth.models import AuthenticatedUser

# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of an AuthenticatedUser."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    first_name: str
    last_name: Optional[str] = None
    username: Optional[str] = None
    photo_url: Optional[str] = None
    auth_date: int = 0

    @classmethod
    def from_user(cls, user: AuthenticatedUser) -> "UserResponse":
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            username=user.username,
            photo_url=user.photo_url,
            auth_date=user.auth_date,
        )


class SessionResponse(BaseModel):
    """Response for POST /api/v1/auth/telegram."""

    model_config = ConfigDict(frozen=True)

    token: str
    user: UserResponse


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    auth_enabled: bool
