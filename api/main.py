"""
api/main.py -- FastAPI application entry point for MarketBoard.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware        -- CORS headers and preflight for the admin front end
  2. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  3. log_requests          -- request line, status, latency
  4. access_gate           -- allow / redirect / reject per auth/gate.py rules

Lifespan builds every collaborator explicitly (stores, token service, login
limiter, AuthService) and attaches them to app.state. Nothing in auth/ is a
module-level singleton, so tests swap the lifespan and inject their own.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.market_sessions import router as market_sessions_router
from auth.dependencies import read_token
from auth.errors import AuthError, LoginRateLimited, WeakPassword
from auth.gate import AccessPolicy, GateAction, TokenState, classify, decide
from auth.limiter import RateLimiter
from auth.service import AuthService
from auth.store import AdminStore
from auth.tokens import TokenService, clear_session_cookie
from core.config import get_settings
from market.store import SessionStore

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("marketboard.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build application-level resources on startup, dispose them on shutdown.

    Startup order matters:
      1. Stores first -- the tables must exist before bootstrap or seeding.
      2. Token service and limiter -- pure in-memory objects.
      3. AuthService, then the one-time admin bootstrap.
    """
    settings = get_settings()
    logger.info("MarketBoard API starting up")
    app.state.settings = settings

    app.state.admin_store = AdminStore(settings.database_url)
    app.state.session_store = SessionStore(settings.database_url)
    app.state.session_store.seed_defaults()

    app.state.token_service = TokenService(settings.jwt_secret, lifetime_seconds=settings.token_expire_seconds)
    app.state.login_limiter = RateLimiter(
        max_attempts=settings.login_max_attempts,
        window_seconds=settings.login_window_seconds,
    )
    app.state.auth_service = AuthService(
        app.state.admin_store,
        app.state.token_service,
        app.state.login_limiter,
        bcrypt_rounds=settings.bcrypt_rounds,
    )
    await app.state.auth_service.ensure_default_admin(
        settings.admin_default_username,
        settings.admin_default_password,
    )
    await app.state.auth_service.dummy_hash()
    logger.info(
        "Auth initialized (token lifetime=%ds, login limit=%d/%ds)",
        settings.token_expire_seconds,
        settings.login_max_attempts,
        settings.login_window_seconds,
    )

    yield

    app.state.admin_store.close()
    app.state.session_store.close()
    logger.info("MarketBoard API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="MarketBoard API",
    description="Market session schedule and admin authentication.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Access gate
#
# Thin adapter around auth.gate.decide(). Tokens are only verified when the
# path's policy needs a session, so public traffic never pays for a decode.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def access_gate(request: Request, call_next):
    path = request.url.path
    method = request.method
    if classify(path, method) is AccessPolicy.PUBLIC:
        return await call_next(request)

    token = read_token(request)
    if token is None:
        state = TokenState.MISSING
    elif request.app.state.token_service.verify(token) is None:
        state = TokenState.INVALID
    else:
        state = TokenState.VALID

    decision = decide(path, method, state)
    if decision.action is GateAction.REDIRECT:
        response = RedirectResponse(decision.location, status_code=decision.status_code)
        if decision.clear_cookie:
            clear_session_cookie(response)
        return response
    if decision.action is GateAction.REJECT:
        return JSONResponse(
            status_code=decision.status_code,
            content=ErrorResponse(error=decision.error).model_dump(exclude_none=True),
        )
    return await call_next(request)


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Outer middleware
#
# Every add_middleware() / @app.middleware call wraps what was registered
# before it, so these two end up outside the gate and the logger. CORS must be
# outermost: browser preflight OPTIONS requests are answered before the gate
# would reject them for lacking a session.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_host_list)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(market_sessions_router, prefix="/api/v1", tags=["Market Sessions"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the same {"success": false, "error": ...} envelope so
# clients can parse failures without branching on status code.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render AuthService failures (401/404/429/400) with their safe message."""
    error = ErrorResponse(
        error=exc.message,
        details=exc.problems if isinstance(exc, WeakPassword) else None,
        reset_in=exc.retry_after if isinstance(exc, LoginRateLimited) else None,
    )
    response = JSONResponse(status_code=exc.status_code, content=error.model_dump(by_alias=True, exclude_none=True))
    response.headers["Cache-Control"] = "no-store"
    if isinstance(exc, LoginRateLimited):
        response.headers["Retry-After"] = str(exc.retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with field-level detail when a body or parameter fails validation."""
    details = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error="Validation error", details=details).model_dump(exclude_none=True),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The raw exception is logged only, never written to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="An unexpected error occurred.").model_dump(exclude_none=True),
    )


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
