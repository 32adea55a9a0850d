"""
auth/passwords.py -- Password hashing, verification, and strength policy.

Uses bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug detection
builds a password longer than 72 bytes, which bcrypt 4.x rejects. Direct
bcrypt usage has no compatibility shim to maintain.

bcrypt is CPU-bound on purpose. Async callers must offload these functions to
a thread (AuthService does this with run_in_threadpool).

Layer rule: no imports from api/, core/, or market/.
"""

from __future__ import annotations

import logging
import re

import bcrypt

logger = logging.getLogger("marketboard.auth")

DEFAULT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 8
# bcrypt input limit. bcrypt 5 raises ValueError beyond it instead of truncating.
MAX_PASSWORD_BYTES = 72

# (pattern, message) pairs. Order matches the order problems are reported in.
_POLICY_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[0-9]"), "Password must contain at least one number"),
]


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the plaintext password.

    Raises ValueError if plain encodes to more than MAX_PASSWORD_BYTES. The
    API models and check_password_policy() reject such input first.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A plaintext over MAX_PASSWORD_BYTES or a malformed stored hash returns
    False instead of raising, so call sites only ever deal with "matches" or
    "does not match".
    """
    if password_too_long(plain):
        logger.info("Password input longer than %d bytes; treating as mismatch", MAX_PASSWORD_BYTES)
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed; treating as mismatch")
        return False


def password_too_long(plain: str) -> bool:
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


def check_password_policy(password: str) -> list[str]:
    """Return one message per failed strength rule. Empty list = acceptable."""
    problems: list[str] = []
    if len(password) < MIN_PASSWORD_LENGTH:
        problems.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if password_too_long(password):
        problems.append(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    for pattern, message in _POLICY_RULES:
        if not pattern.search(password):
            problems.append(message)
    return problems

