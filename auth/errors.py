"""
auth/errors.py -- Exceptions raised by the authentication flows.

Every error carries the HTTP status it maps to and a message that is safe to
show to the caller. api/main.py registers one handler for AuthError, so route
handlers never need try/except around AuthService calls.

Layer rule: no imports from api/, core/, or market/.
"""

from __future__ import annotations

import math


class AuthError(Exception):
    status_code: int = 401
    message: str = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidCredentials(AuthError):
    """Unknown username or wrong password. The two share one message."""

    status_code = 401
    message = "Invalid username or password"


class LoginRateLimited(AuthError):
    status_code = 429

    def __init__(self, reset_in: float) -> None:
        self.reset_in = reset_in
        minutes = max(1, math.ceil(reset_in / 60))
        plural = "s" if minutes > 1 else ""
        super().__init__(f"Too many login attempts. Please try again in {minutes} minute{plural}.")

    @property
    def retry_after(self) -> int:
        return max(1, math.ceil(self.reset_in))


class InvalidCurrentPassword(AuthError):
    status_code = 401
    message = "Current password is incorrect"


class AdminNotFound(AuthError):
    status_code = 404
    message = "User not found"


class WeakPassword(AuthError):
    status_code = 400

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__("; ".join(problems))


class PasswordReuse(AuthError):
    status_code = 400
    message = "New password must be different from current password"
