"""
api/routes/v1/market_sessions.py -- Market session routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /market-sessions            -- list sessions in display order (public)
  GET    /market-sessions/status     -- current/next session, open/closed (public)
  GET    /market-sessions/{id}       -- single session (public)
  POST   /market-sessions            -- create session (requires session)
  PUT    /market-sessions/{id}       -- update session (requires session)
  DELETE /market-sessions/{id}       -- delete session (requires session)

GET /market-sessions/status must be registered before /market-sessions/{id}
or FastAPI tries to parse "status" as an integer id and returns 400.

Reads are public; the access gate lets GET/HEAD through without a token.
Writes are rejected by the gate without a session and additionally depend on
require_session.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.models import (
    CreatedId,
    MarketSessionCreate,
    MarketSessionCreatedResponse,
    MarketSessionListResponse,
    MarketSessionOut,
    MarketSessionResponse,
    MarketSessionUpdate,
    MarketStatusOut,
    MarketStatusResponse,
    MessageResponse,
)
from auth.dependencies import require_session
from market.models import MarketSession
from market.status import compute_market_status
from market.store import SessionStore

router = APIRouter()

_NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

_DUPLICATE = "A session with that name and time already exists"


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Session not found")


# ---------------------------------------------------------------------------
# Public reads
# ---------------------------------------------------------------------------


@router.get("/market-sessions", response_model=MarketSessionListResponse)
def list_sessions(request: Request) -> JSONResponse:
    """List all sessions. Sent with no-cache headers so the ticker never shows stale slots."""
    store: SessionStore = request.app.state.session_store
    body = MarketSessionListResponse(data=[MarketSessionOut.from_domain(s) for s in store.list_sessions()])
    return JSONResponse(content=body.model_dump(), headers=_NO_CACHE_HEADERS)


@router.get("/market-sessions/status", response_model=MarketStatusResponse)
def market_status(request: Request) -> MarketStatusResponse:
    store: SessionStore = request.app.state.session_store
    status = compute_market_status(
        store.list_sessions(),
        datetime.now(timezone.utc),
        tz_name=request.app.state.settings.market_timezone,
    )
    if status is None:
        raise HTTPException(status_code=404, detail="No market sessions configured")
    return MarketStatusResponse(data=MarketStatusOut.from_domain(status))


@router.get("/market-sessions/{session_id}", response_model=MarketSessionResponse)
def get_session(request: Request, session_id: int) -> MarketSessionResponse:
    store: SessionStore = request.app.state.session_store
    session = store.get(session_id)
    if session is None:
        raise _not_found()
    return MarketSessionResponse(data=MarketSessionOut.from_domain(session))


# ---------------------------------------------------------------------------
# Admin writes
# ---------------------------------------------------------------------------


@router.post(
    "/market-sessions",
    response_model=MarketSessionCreatedResponse,
    status_code=201,
    dependencies=[Depends(require_session)],
)
def create_session(request: Request, body: MarketSessionCreate) -> MarketSessionCreatedResponse:
    store: SessionStore = request.app.state.session_store
    try:
        session_id = store.create(
            MarketSession(
                session_name=body.session_name,
                session_time=body.session_time,
                is_market_open=body.is_market_open,
                display_order=body.display_order,
            )
        )
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail=_DUPLICATE) from exc
    return MarketSessionCreatedResponse(data=CreatedId(id=session_id))


@router.put(
    "/market-sessions/{session_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_session)],
)
def update_session(request: Request, session_id: int, body: MarketSessionUpdate) -> MessageResponse:
    store: SessionStore = request.app.state.session_store
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    if store.get(session_id) is None:
        raise _not_found()
    try:
        store.update(session_id, **updates)
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail=_DUPLICATE) from exc
    return MessageResponse(message="Session updated successfully")


@router.delete(
    "/market-sessions/{session_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_session)],
)
def delete_session(request: Request, session_id: int) -> MessageResponse:
    store: SessionStore = request.app.state.session_store
    if not store.delete(session_id):
        raise _not_found()
    return MessageResponse(message="Session deleted successfully")
