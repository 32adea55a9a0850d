"""
auth/service.py -- Login, change-password and bootstrap flows.

AuthService composes the credential store, the password hasher, the login
rate limiter and the token service. All collaborators are passed in; nothing
here reads global state, so tests build an AuthService with a fake clock and
an in-memory store.

bcrypt is CPU-bound. Every hash/verify call goes through
run_in_threadpool so one login cannot stall the event loop for other requests.

Login state machine (per attempt):
    Unauthenticated -> RateLimited | Rejected | Authenticated
"Authenticated" is not tracked server side; it only means the caller holds a
token that TokenService.verify() accepts.

Layer rule: no imports from api/, core/, or market/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool

from auth.errors import (
    AdminNotFound,
    InvalidCredentials,
    InvalidCurrentPassword,
    LoginRateLimited,
    PasswordReuse,
    WeakPassword,
)
from auth.limiter import RateLimiter
from auth.models import AdminUser, LoginResult
from auth.passwords import DEFAULT_ROUNDS, check_password_policy, hash_password, verify_password
from auth.store import AdminStore
from auth.tokens import TokenService

logger = logging.getLogger("marketboard.auth")

_DUMMY_PASSWORD = "marketboard_timing_dummy"


def login_key(username: str) -> str:
    return f"login:{username}"


class AuthService:
    def __init__(
        self,
        store: AdminStore,
        tokens: TokenService,
        limiter: RateLimiter,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
    ) -> None:
        self.store = store
        self.tokens = tokens
        self.limiter = limiter
        self.bcrypt_rounds = bcrypt_rounds
        self._dummy_hash: str | None = None

    async def dummy_hash(self) -> str:
        """Return a throwaway hash at this service's bcrypt cost.

        Verified against whenever the username is unknown, so the response time
        does not reveal which usernames exist. Built on first use, then cached.
        """
        if self._dummy_hash is None:
            self._dummy_hash = await run_in_threadpool(hash_password, _DUMMY_PASSWORD, self.bcrypt_rounds)
        return self._dummy_hash

    async def ensure_default_admin(self, username: str, password: str) -> bool:
        """Create the bootstrap admin when no admin exists. Returns True if created.

        The bootstrap identity is flagged must_change_password. Its credentials
        are documented defaults and must be rotated right after first boot.
        """
        if self.store.has_admins():
            return False
        password_hash = await run_in_threadpool(hash_password, password, self.bcrypt_rounds)
        try:
            self.store.create_admin(
                AdminUser(username=username, password_hash=password_hash, must_change_password=True)
            )
        except IntegrityError:
            # Another worker bootstrapped first.
            logger.info("Default admin already created by a concurrent startup")
            return False
        logger.warning(
            "Default admin created: username=%s. Change its password immediately.",
            username,
        )
        return True

    async def login(self, username: str, password: str) -> LoginResult:
        """Authenticate a username/password pair and issue a session token.

        Raises LoginRateLimited when the per-username window is exhausted and
        InvalidCredentials for an unknown username or a wrong password. The two
        credential failures are indistinguishable to the caller.
        """
        key = login_key(username)
        limit = self.limiter.check(key)
        if not limit.allowed:
            logger.warning("Login rate limit hit for username=%s", username)
            raise LoginRateLimited(limit.reset_in)

        user = self.store.get_by_username(username)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt.
            await run_in_threadpool(verify_password, password, await self.dummy_hash())
            logger.info("Failed login for unknown username=%s", username)
            raise InvalidCredentials()

        if not await run_in_threadpool(verify_password, password, user.password_hash):
            logger.info("Failed login for username=%s (%d attempt(s) left)", username, limit.remaining)
            raise InvalidCredentials()

        self.limiter.reset(key)
        token = self.tokens.issue(user.id, user.username)
        logger.info("Successful login for username=%s", username)
        return LoginResult(token=token, user=user, requires_password_change=user.must_change_password)

    async def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        """Replace the password of an authenticated admin.

        Check order: identity exists, current password matches, new password
        meets the policy, new password differs from the current one.
        """
        user = self.store.get_by_id(user_id)
        if user is None:
            raise AdminNotFound()

        if not await run_in_threadpool(verify_password, current_password, user.password_hash):
            logger.info("Change-password rejected for username=%s: wrong current password", user.username)
            raise InvalidCurrentPassword()

        problems = check_password_policy(new_password)
        if problems:
            raise WeakPassword(problems)

        if new_password == current_password:
            raise PasswordReuse()

        new_hash = await run_in_threadpool(hash_password, new_password, self.bcrypt_rounds)
        if not self.store.update_password(user.id, new_hash):
            raise AdminNotFound()
        logger.info("Password changed for username=%s", user.username)
