"""
API request and response models for MarketBoard REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are separate
from the dataclasses in auth/models.py and market/models.py, which own the
internal domain representation. Route handlers map between the two.

Auth payloads use camelCase on the wire (currentPassword, requiresPasswordChange)
because the admin front end was built against that shape; Python attribute
names stay snake_case through aliases.

Every response shares the envelope {"success": bool, ...}. Errors carry a
human-readable "error" string and never a stack trace.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.passwords import MAX_PASSWORD_BYTES, password_too_long
from market.models import MarketSession, MarketStatus

# HH:MM, 00:00 - 23:59
SESSION_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

# Character cap. Multi-byte input is additionally held to bcrypt's byte limit.
_MAX_PASSWORD = 64


def _check_password_bytes(value: str) -> str:
    if password_too_long(value):
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    success: bool = False
    error: str
    details: Optional[list[Any]] = None
    reset_in: Optional[int] = Field(default=None, alias="resetIn")


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=_MAX_PASSWORD)

    @field_validator("password")
    @classmethod
    def password_within_bcrypt_limit(cls, value: str) -> str:
        return _check_password_bytes(value)


class ChangePasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/change-password.

    Only the shape is checked here. The strength policy runs in AuthService
    after the current password has been verified.
    """

    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(alias="currentPassword", min_length=1, max_length=_MAX_PASSWORD)
    new_password: str = Field(alias="newPassword", min_length=1, max_length=_MAX_PASSWORD)

    @field_validator("current_password", "new_password")
    @classmethod
    def passwords_within_bcrypt_limit(cls, value: str) -> str:
        """Reject input bcrypt cannot hash (over 72 UTF-8 bytes) as a 400, not a 500."""
        return _check_password_bytes(value)


class LoginData(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    username: str
    requires_password_change: bool = Field(alias="requiresPasswordChange")


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str = "Login successful"
    data: LoginData


class SessionData(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_id: int = Field(alias="userId")
    username: str
    requires_password_change: bool = Field(alias="requiresPasswordChange")


class VerifyResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    data: SessionData


# ---------------------------------------------------------------------------
# Market sessions
# ---------------------------------------------------------------------------


class MarketSessionCreate(BaseModel):
    """Request body for POST /api/v1/market-sessions."""

    model_config = ConfigDict(str_strip_whitespace=True)

    session_name: str = Field(min_length=1, max_length=100)
    session_time: str = Field(pattern=SESSION_TIME_PATTERN)
    is_market_open: bool = False
    display_order: int = Field(gt=0)


class MarketSessionUpdate(BaseModel):
    """Request body for PUT /api/v1/market-sessions/{id}. All fields optional."""

    model_config = ConfigDict(str_strip_whitespace=True)

    session_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    session_time: Optional[str] = Field(default=None, pattern=SESSION_TIME_PATTERN)
    is_market_open: Optional[bool] = None
    display_order: Optional[int] = Field(default=None, gt=0)


class MarketSessionOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    session_name: str
    session_time: str
    is_market_open: bool
    display_order: int
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, session: MarketSession) -> "MarketSessionOut":
        return cls(
            id=session.id,
            session_name=session.session_name,
            session_time=session.session_time,
            is_market_open=session.is_market_open,
            display_order=session.display_order,
            created_at=session.created_at,
            updated_at=session.updated_at,
        )


class MarketSessionListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    data: list[MarketSessionOut]


class MarketSessionResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    data: MarketSessionOut


class CreatedId(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int


class MarketSessionCreatedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    data: CreatedId


class SessionRefOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    time: str


class MarketStatusOut(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_market_open: bool = Field(alias="isMarketOpen")
    current_session: SessionRefOut = Field(alias="currentSession")
    next_session: SessionRefOut = Field(alias="nextSession")
    status_text: str = Field(alias="statusText")

    @classmethod
    def from_domain(cls, status: MarketStatus) -> "MarketStatusOut":
        return cls(
            is_market_open=status.is_market_open,
            current_session=SessionRefOut(name=status.current_session.name, time=status.current_session.time),
            next_session=SessionRefOut(name=status.next_session.name, time=status.next_session.time),
            status_text=status.status_text,
        )


class MarketStatusResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    data: MarketStatusOut
