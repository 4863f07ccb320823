"""Unit tests for the session token codec in auth/tokens.py.

Covers:
- Token shape: three base64url segments, HS256/JWT header, claim names
- Mint/verify round trip, including optional profile fields
- Expiry boundary (exp must be strictly in the future)
- Tamper detection: every single-bit flip in the payload segment is rejected
- Wrong secret, wrong alg/typ, missing claims, malformed structure
"""

import json
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from jose import jwt
from jose.utils import base64url_decode, base64url_encode

from auth.models import AuthenticatedUser
from auth.tokens import (
    SESSION_LIFETIME_SECONDS,
    constant_time_equals,
    create_session_token,
    decode_session_token,
)

NOW = 1_700_000_000
SECRET = "s3cr3t"

ANN = AuthenticatedUser(id="123", first_name="Ann", auth_date=NOW)
FULL = AuthenticatedUser(
    id="99887766",
    first_name="Stanislav",
    last_name="NO",
    username="stanislav_no",
    photo_url="https://t.me/i/userpic/320/s.jpg",
    auth_date=NOW - 30,
)


def _segment(data: dict) -> str:
    return base64url_encode(json.dumps(data, separators=(",", ":")).encode()).decode()


def _decode_segment(segment: str) -> dict:
    return json.loads(base64url_decode(segment.encode()))


def _forge(claims: dict, secret: str = SECRET, **kwargs) -> str:
    """Sign arbitrary claims with python-jose, bypassing create_session_token()."""
    return jwt.encode(claims, secret, algorithm=kwargs.pop("algorithm", "HS256"), **kwargs)


# ---------------------------------------------------------------------------
# Shape
# ---------------------------------------------------------------------------


class TestTokenShape:
    def test_three_unpadded_segments(self) -> None:
        token = create_session_token(ANN, SECRET, now=NOW)
        segments = token.split(".")
        assert len(segments) == 3
        assert all(segments)
        assert "=" not in token

    def test_header(self) -> None:
        header = _decode_segment(create_session_token(ANN, SECRET, now=NOW).split(".")[0])
        assert header == {"alg": "HS256", "typ": "JWT"}

    def test_claims(self) -> None:
        payload = _decode_segment(create_session_token(FULL, SECRET, now=NOW).split(".")[1])
        assert payload == {
            "sub": "99887766",
            "firstName": "Stanislav",
            "lastName": "NO",
            "username": "stanislav_no",
            "photoUrl": "https://t.me/i/userpic/320/s.jpg",
            "authDate": NOW - 30,
            "iat": NOW,
            "exp": NOW + SESSION_LIFETIME_SECONDS,
        }

    def test_absent_profile_fields_are_omitted(self) -> None:
        payload = _decode_segment(create_session_token(ANN, SECRET, now=NOW).split(".")[1])
        assert set(payload) == {"sub", "firstName", "authDate", "iat", "exp"}

    def test_lifetime_is_thirty_days(self) -> None:
        assert SESSION_LIFETIME_SECONDS == 30 * 24 * 60 * 60


# ---------------------------------------------------------------------------
# Round trip and expiry
# ---------------------------------------------------------------------------


class TestRoundTrip:
    @pytest.mark.parametrize("user", [ANN, FULL])
    def test_decode_returns_minted_user(self, user: AuthenticatedUser) -> None:
        token = create_session_token(user, SECRET, now=NOW)
        assert decode_session_token(token, SECRET, now=NOW + 1) == user

    def test_real_clock_round_trip(self) -> None:
        token = create_session_token(FULL, SECRET)
        assert decode_session_token(token, SECRET) == FULL

    def test_wrong_secret_fails(self) -> None:
        token = create_session_token(ANN, "s3cr3t", now=NOW)
        assert decode_session_token(token, "wrong", now=NOW) is None

    def test_concurrent_mint_and_resolve(self) -> None:
        users = [AuthenticatedUser(id=str(i), first_name=f"User{i}", auth_date=NOW) for i in range(1, 65)]

        def _round_trip(user: AuthenticatedUser) -> bool:
            return decode_session_token(create_session_token(user, SECRET, now=NOW), SECRET, now=NOW) == user

        with ThreadPoolExecutor(max_workers=8) as pool:
            assert all(pool.map(_round_trip, users))


class TestExpiry:
    def test_valid_until_one_second_before_exp(self) -> None:
        token = create_session_token(ANN, SECRET, now=NOW)
        exp = NOW + SESSION_LIFETIME_SECONDS
        assert decode_session_token(token, SECRET, now=exp - 1) == ANN
        assert decode_session_token(token, SECRET, now=exp) is None

    def test_exp_one_second_in_past_fails(self) -> None:
        now = int(time.time())
        token = _forge({"sub": "123", "firstName": "Ann", "exp": now - 1})
        assert decode_session_token(token, SECRET, now=now) is None

    def test_exp_one_second_in_future_succeeds(self) -> None:
        now = int(time.time())
        token = _forge({"sub": "123", "firstName": "Ann", "exp": now + 1})
        assert decode_session_token(token, SECRET, now=now) == AuthenticatedUser(id="123", first_name="Ann")

    @pytest.mark.parametrize("exp", [None, "4102444800", True])
    def test_missing_or_non_numeric_exp_fails(self, exp) -> None:
        claims = {"sub": "123", "firstName": "Ann"}
        if exp is not None:
            claims["exp"] = exp
        assert decode_session_token(_forge(claims), SECRET, now=NOW) is None


# ---------------------------------------------------------------------------
# Tampering and malformed input
# ---------------------------------------------------------------------------


class TestTamperDetection:
    def test_every_payload_bit_flip_is_rejected(self) -> None:
        token = create_session_token(FULL, SECRET, now=NOW)
        header, payload, signature = token.split(".")
        for index, char in enumerate(payload):
            for bit in range(7):
                flipped = chr(ord(char) ^ (1 << bit))
                tampered = f"{header}.{payload[:index]}{flipped}{payload[index + 1:]}.{signature}"
                assert decode_session_token(tampered, SECRET, now=NOW) is None, (index, bit)

    def test_swapped_payload_is_rejected(self) -> None:
        token = create_session_token(ANN, SECRET, now=NOW)
        header, _payload, signature = token.split(".")
        forged_payload = _segment({"sub": "1", "firstName": "Mallory", "exp": NOW + 3600})
        assert decode_session_token(f"{header}.{forged_payload}.{signature}", SECRET, now=NOW) is None

    def test_truncated_signature_is_rejected(self) -> None:
        token = create_session_token(ANN, SECRET, now=NOW)
        assert decode_session_token(token[:-2], SECRET, now=NOW) is None

    @pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d", "..", "not.a.token"])
    def test_malformed_structure(self, token: str) -> None:
        assert decode_session_token(token, SECRET, now=NOW) is None

    def test_extra_segment_is_rejected(self) -> None:
        token = create_session_token(ANN, SECRET, now=NOW)
        assert decode_session_token(token + ".extra", SECRET, now=NOW) is None


class TestHeaderAndClaimChecks:
    def test_other_hmac_algorithm_is_rejected(self) -> None:
        token = _forge({"sub": "123", "firstName": "Ann", "exp": NOW + 60}, algorithm="HS512")
        assert decode_session_token(token, SECRET, now=NOW) is None

    def test_alg_none_is_rejected(self) -> None:
        header = _segment({"alg": "none", "typ": "JWT"})
        payload = _segment({"sub": "123", "firstName": "Ann", "exp": NOW + 60})
        assert decode_session_token(f"{header}.{payload}.", SECRET, now=NOW) is None

    def test_wrong_typ_is_rejected(self) -> None:
        token = _forge({"sub": "123", "firstName": "Ann", "exp": NOW + 60}, headers={"typ": "JOSE"})
        assert decode_session_token(token, SECRET, now=NOW) is None

    @pytest.mark.parametrize(
        "claims",
        [
            {"firstName": "Ann"},
            {"sub": "123"},
            {"sub": "123", "firstName": 42},
            {"sub": "123", "firstName": None},
        ],
    )
    def test_missing_or_mistyped_identity_claims(self, claims: dict) -> None:
        token = _forge({**claims, "exp": NOW + 60})
        assert decode_session_token(token, SECRET, now=NOW) is None

    def test_missing_auth_date_defaults_to_zero(self) -> None:
        token = _forge({"sub": "123", "firstName": "Ann", "exp": NOW + 60})
        user = decode_session_token(token, SECRET, now=NOW)
        assert user is not None
        assert user.auth_date == 0

    def test_mistyped_optional_claims_are_dropped(self) -> None:
        token = _forge({"sub": "123", "firstName": "Ann", "username": 7, "authDate": "x", "exp": NOW + 60})
        user = decode_session_token(token, SECRET, now=NOW)
        assert user == AuthenticatedUser(id="123", first_name="Ann")


# ---------------------------------------------------------------------------
# Constant-time comparison
# ---------------------------------------------------------------------------


class TestConstantTimeEquals:
    def test_equal(self) -> None:
        assert constant_time_equals(b"\x01\x02\x03", b"\x01\x02\x03")

    def test_different_content(self) -> None:
        assert not constant_time_equals(b"\x01\x02\x03", b"\x01\x02\x04")

    def test_length_mismatch_is_false_not_error(self) -> None:
        assert not constant_time_equals(b"\x01\x02", b"\x01\x02\x03")
        assert not constant_time_equals(b"", b"\x00")
