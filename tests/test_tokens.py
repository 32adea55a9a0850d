"""Unit tests for auth/tokens.py -- session token issue/verify.

Covers:
- verify(issue(...)) returns the identity at issuance time
- Expiry against the injected clock (just before / at / after)
- Tampered signature, foreign secret, wrong type tag, missing claims
- Malformed and empty input never raise
"""

import base64

import pytest
from jose import jwt

from auth.models import SessionClaims
from auth.tokens import ALGORITHM, TokenService

# Must match the secret the token_service fixture is built with.
TEST_SECRET = "test-secret-key-for-marketboard-tests-0123456789"


def _flip_signature_byte(token: str) -> str:
    header, payload, signature = token.split(".")
    raw = bytearray(base64.urlsafe_b64decode(signature + "=" * (-len(signature) % 4)))
    raw[0] ^= 0x01
    flipped = base64.urlsafe_b64encode(bytes(raw)).rstrip(b"=").decode()
    return f"{header}.{payload}.{flipped}"


class TestRoundTrip:
    def test_issued_token_verifies(self, token_service) -> None:
        token = token_service.issue(1, "admin")
        assert token_service.verify(token) == SessionClaims(user_id=1, username="admin")

    def test_claims_shape(self, token_service, clock) -> None:
        token = token_service.issue(7, "editor")
        payload = jwt.get_unverified_claims(token)
        assert payload["sub"] == "editor"
        assert payload["user_id"] == 7
        assert payload["type"] == "admin"
        assert payload["exp"] - payload["iat"] == 24 * 60 * 60


class TestExpiry:
    def test_valid_just_before_expiry(self, token_service, clock) -> None:
        token = token_service.issue(1, "admin")
        clock.advance(24 * 60 * 60 - 2)
        assert token_service.verify(token) is not None

    def test_invalid_at_expiry(self, token_service, clock) -> None:
        token = token_service.issue(1, "admin")
        clock.advance(24 * 60 * 60 + 1)
        assert token_service.verify(token) is None

    def test_custom_lifetime(self, clock) -> None:
        service = TokenService(TEST_SECRET, lifetime_seconds=30 * 60, clock=clock)
        token = service.issue(1, "admin")
        clock.advance(31 * 60)
        assert service.verify(token) is None


class TestRejection:
    def test_flipped_signature_byte(self, token_service) -> None:
        token = token_service.issue(1, "admin")
        assert token_service.verify(_flip_signature_byte(token)) is None

    def test_rotated_secret_invalidates(self, token_service, clock) -> None:
        token = token_service.issue(1, "admin")
        rotated = TokenService("another-secret-key-that-is-long-enough-0000", clock=clock)
        assert rotated.verify(token) is None

    def test_wrong_type_tag(self, token_service, clock) -> None:
        now = int(clock())
        forged = jwt.encode(
            {"sub": "admin", "user_id": 1, "type": "user", "iat": now, "exp": now + 60},
            TEST_SECRET,
            algorithm=ALGORITHM,
        )
        assert token_service.verify(forged) is None

    def test_missing_user_id(self, token_service, clock) -> None:
        now = int(clock())
        forged = jwt.encode(
            {"sub": "admin", "type": "admin", "iat": now, "exp": now + 60},
            TEST_SECRET,
            algorithm=ALGORITHM,
        )
        assert token_service.verify(forged) is None

    def test_missing_exp(self, token_service) -> None:
        forged = jwt.encode({"sub": "admin", "user_id": 1, "type": "admin"}, TEST_SECRET, algorithm=ALGORITHM)
        assert token_service.verify(forged) is None

    @pytest.mark.parametrize("value", [None, "", "not-a-token", "a.b.c", "....."])
    def test_malformed_input(self, token_service, value) -> None:
        assert token_service.verify(value) is None


def test_empty_secret_rejected() -> None:
    with pytest.raises(ValueError):
        TokenService("")
