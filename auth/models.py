"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; these classes own the shape.

Layer rule: no imports from api/, core/, or market/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class AdminUser:
    """An admin identity allowed into the admin panel.

    password_hash is the bcrypt string. It must never be logged or returned
    from an API response.

    must_change_password is set on the bootstrap identity and cleared by the
    change-password flow.
    """

    username: str
    password_hash: str
    id: int | None = None
    must_change_password: bool = False
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class SessionClaims:
    """Identity recovered from a verified session token."""

    user_id: int
    username: str


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one RateLimiter.check() call.

    reset_in is in seconds until the current window closes.
    """

    allowed: bool
    remaining: int
    reset_in: float


@dataclass(frozen=True)
class LoginResult:
    token: str
    user: AdminUser
    requires_password_change: bool
