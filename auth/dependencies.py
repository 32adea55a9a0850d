"""
auth/dependencies.py -- FastAPI Depends() helpers for session authentication.

The session token is read from the "admin_token" cookie set by the login flow.
An Authorization: Bearer header is accepted as a fallback for scripted clients.

try_get_session() is the soft variant (returns None on failure).
require_session() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: no imports from core/ or market/.
  auth/dependencies.py may import from fastapi because this module is part of
  the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.gate import UNAUTHORIZED_MESSAGE
from auth.models import SessionClaims
from auth.service import AuthService
from auth.tokens import COOKIE_NAME, TokenService


def read_token(request: Request) -> str | None:
    """Return the raw session token from the cookie or Bearer header, if any."""
    token: str | None = request.cookies.get(COOKIE_NAME)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def try_get_session(request: Request) -> SessionClaims | None:
    """Verify the request's session token. Never raises."""
    return get_token_service(request).verify(read_token(request))


def require_session(request: Request) -> SessionClaims:
    """Require a valid session. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.post("/protected")
        async def route(session: SessionClaims = Depends(require_session)): ...
    """
    session = try_get_session(request)
    if session is None:
        raise HTTPException(status_code=401, detail=UNAUTHORIZED_MESSAGE)
    return session
