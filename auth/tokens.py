"""
auth/tokens.py -- Session token issuance/verification and the session cookie.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (username), user_id, a fixed
       type="admin" tag, iat and exp. Nothing is stored server side; the
       service only holds the signing secret.

  Verification returns None on any failure (bad signature, expired, wrong tag,
       malformed input). Callers have exactly one decision point: claims or
       None. The gate and route layer turn None into a redirect or a 401.

  Expiry is checked against the injected clock rather than inside jose, so
       tests can move time forward without sleeping.

  Rotating the secret invalidates every outstanding token immediately.

  Logout does not revoke anything: a token stays valid until exp even after
       the cookie is cleared.

Layer rule: no imports from api/, core/, or market/.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from jose import JWTError, jwt

from auth.models import SessionClaims

logger = logging.getLogger("marketboard.auth")

ALGORITHM = "HS256"
TOKEN_TYPE = "admin"
COOKIE_NAME = "admin_token"
DEFAULT_LIFETIME_SECONDS = 24 * 60 * 60


class TokenService:
    """Issues and verifies signed, time-limited admin session tokens.

    Usage:
        tokens = TokenService(secret, lifetime_seconds=86400)
        token = tokens.issue(user.id, user.username)
        claims = tokens.verify(token)  # SessionClaims or None
    """

    def __init__(
        self,
        secret: str,
        lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("A signing secret is required")
        self._secret = secret
        self.lifetime_seconds = lifetime_seconds
        self._clock = clock

    def issue(self, user_id: int, username: str) -> str:
        """Encode a signed JWT for the given identity."""
        now = int(self._clock())
        payload = {
            "sub": username,
            "user_id": user_id,
            "type": TOKEN_TYPE,
            "iat": now,
            "exp": now + self.lifetime_seconds,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str | None) -> SessionClaims | None:
        """Decode and check a token. Returns the identity or None on any failure."""
        if not token or not isinstance(token, str):
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError:
            return None

        exp = payload.get("exp")
        user_id = payload.get("user_id")
        username = payload.get("sub")
        if not isinstance(exp, (int, float)) or self._clock() >= exp:
            return None
        if payload.get("type") != TOKEN_TYPE:
            return None
        # bool is an int subclass; a token claiming user_id=true is not ours.
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            return None
        if not isinstance(username, str) or not username:
            return None
        return SessionClaims(user_id=user_id, username=username)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, max_age: int, secure: bool) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST (CSRF mitigation).
    secure: only sent over HTTPS; enabled in production.
    max_age: matches the token lifetime so both expire together.
    """
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
        path="/",
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(COOKIE_NAME, path="/")
