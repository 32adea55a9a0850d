"""
api/routes/v1/auth.py -- Admin authentication REST endpoints.

Routes:
  POST /api/v1/auth/login            -- password login; sets the admin_token cookie
  POST /api/v1/auth/logout           -- clears the cookie; 200
  GET  /api/v1/auth/verify           -- current session identity (requires session)
  POST /api/v1/auth/change-password  -- replace own password (requires session)

The access gate lets every /api/v1/auth/* request through, so verify and
change-password enforce the session themselves via require_session.

Security:
  Login is throttled per username by AuthService (5 attempts / 15 minutes by
  default). A throttled attempt returns 429 with Retry-After.
  Unknown username and wrong password return the same 401 body.
  Cache-Control: no-store on responses that carry credentials.
  Logout only deletes the cookie; an already-issued token stays valid until
  it expires.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    ChangePasswordRequest,
    LoginData,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    SessionData,
    VerifyResponse,
)
from auth.dependencies import get_auth_service, require_session
from auth.models import SessionClaims
from auth.service import AuthService
from auth.tokens import clear_session_cookie, set_session_cookie

router = APIRouter()


@router.post("/auth/login", response_model=LoginResponse)
async def login(
    request: Request,
    body: LoginRequest,
    auth: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Authenticate with username and password; set the session cookie.

    AuthService raises LoginRateLimited (429) or InvalidCredentials (401); the
    AuthError handler in api/main.py renders both.
    """
    result = await auth.login(body.username, body.password)

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            data=LoginData(
                username=result.user.username,
                requires_password_change=result.requires_password_change,
            )
        ).model_dump(by_alias=True),
    )
    set_session_cookie(
        resp,
        result.token,
        max_age=auth.tokens.lifetime_seconds,
        secure=request.app.state.settings.cookie_secure,
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
async def logout() -> JSONResponse:
    """Clear the session cookie. No server-side state changes."""
    resp = JSONResponse(content=MessageResponse(message="Logout successful").model_dump())
    clear_session_cookie(resp)
    return resp


@router.get("/auth/verify", response_model=VerifyResponse)
def verify(
    session: SessionClaims = Depends(require_session),
    auth: AuthService = Depends(get_auth_service),
) -> VerifyResponse:
    """Return the identity behind the current session token."""
    user = auth.store.get_by_id(session.user_id)
    return VerifyResponse(
        data=SessionData(
            user_id=session.user_id,
            username=session.username,
            requires_password_change=bool(user and user.must_change_password),
        )
    )


@router.post("/auth/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    session: SessionClaims = Depends(require_session),
    auth: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Replace the caller's password after re-verifying the current one."""
    await auth.change_password(session.user_id, body.current_password, body.new_password)
    resp = JSONResponse(content=MessageResponse(message="Password changed successfully").model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp
