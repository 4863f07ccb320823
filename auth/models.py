"""
auth/models.py -- Domain types for Telegram login and sessions.

TelegramAssertion is the one pydantic model here: it is the validated, closed
record built from untrusted widget JSON, so validation has to run before any
cryptographic work. The remaining types are plain dataclasses (pure data,
zero logic) -- the verifier and the codec do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

_NUMERIC = re.compile(r"^\d+$")
_HASH_PATTERN = r"^[a-fA-F0-9]{64}$"

_OptionalText = Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)]]


def _as_numeric_string(value: object) -> str:
    """Accept a positive int, an integral float, or a digits-only string."""
    if isinstance(value, bool):
        raise ValueError("must be a number or a numeric string")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int):
        if value <= 0:
            raise ValueError("must be a positive integer")
        return str(value)
    if isinstance(value, str) and _NUMERIC.match(value.strip()):
        return value.strip()
    raise ValueError("must be a number or a numeric string")


class TelegramAssertion(BaseModel):
    """Identity assertion posted by the Telegram Login Widget.

    Field names match the widget's JSON exactly because they are also the
    keys of the data-check string. Unknown fields are dropped.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    first_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    last_name: _OptionalText = None
    username: _OptionalText = None
    photo_url: _OptionalText = None
    auth_date: int = Field(gt=0)
    hash: Annotated[str, StringConstraints(strip_whitespace=True, pattern=_HASH_PATTERN)]

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, value: object) -> str:
        return _as_numeric_string(value)

    @field_validator("auth_date", mode="before")
    @classmethod
    def normalize_auth_date(cls, value: object) -> int:
        return int(_as_numeric_string(value))

    @field_validator("last_name", "username", "photo_url", mode="after")
    @classmethod
    def empty_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


@dataclass(frozen=True)
class AuthenticatedUser:
    """Trusted projection of a verified assertion or a valid session token.

    Never stored: the codec rebuilds it from the token on every request.
    """

    id: str
    first_name: str
    last_name: Optional[str] = None
    username: Optional[str] = None
    photo_url: Optional[str] = None
    auth_date: int = 0

    @property
    def display_name(self) -> str:
        """Username, else "First Last", else the Telegram id."""
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
        for candidate in (self.username, full_name, self.id):
            if candidate and candidate.strip():
                return candidate.strip()
        return self.id


@dataclass(frozen=True)
class SessionGrant:
    """Result of a successful login: the bearer token and who it belongs to."""

    token: str
    user: AuthenticatedUser


class AuthFailure(str, Enum):
    """Why mint_session() refused. INVALID deliberately carries no reason."""

    NOT_CONFIGURED = "not_configured"
    INVALID = "invalid"
