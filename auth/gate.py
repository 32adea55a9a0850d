"""
auth/gate.py -- Request classification and allow/redirect/reject decisions.

The gate is a pure function of (path, method, token state). It knows nothing
about HTTP frameworks; api/main.py adapts it into middleware. Keeping it pure
means every rule can be unit-tested without a network stack.

Rules are evaluated top to bottom, first match wins:
  1. /admin/* except /admin/login*   -> session required, redirect on failure
  2. declared public API endpoints   -> allowed
  3. any other /api/*                -> session required, 401 on failure
  4. everything else                 -> allowed

Layer rule: no imports from api/, core/, or market/.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

ADMIN_PREFIX = "/admin"
ADMIN_LOGIN_PATH = "/admin/login"
API_PREFIX = "/api/"

UNAUTHORIZED_MESSAGE = "Authentication required."

_READ_METHODS = frozenset({"GET", "HEAD"})


class AccessPolicy(str, Enum):
    PUBLIC = "public"
    ADMIN_PAGE = "admin_page"
    PROTECTED_API = "protected_api"


class TokenState(str, Enum):
    MISSING = "missing"
    INVALID = "invalid"
    VALID = "valid"


class GateAction(str, Enum):
    ALLOW = "allow"
    REDIRECT = "redirect"
    REJECT = "reject"


@dataclass(frozen=True)
class GateDecision:
    action: GateAction
    status_code: int | None = None
    location: str | None = None
    clear_cookie: bool = False
    error: str | None = None


ALLOW = GateDecision(action=GateAction.ALLOW)


def _under(path: str, prefix: str) -> bool:
    """True for prefix itself and anything below it (not /prefix-other)."""
    return path == prefix or path.startswith(prefix + "/")


def _read_under(prefix: str) -> Callable[[str, str], bool]:
    return lambda path, method: method in _READ_METHODS and _under(path, prefix)


# Read-only public API surface. Write methods on the same paths fall through
# to the protected-API rule.
_PUBLIC_API_RULES: list[Callable[[str, str], bool]] = [
    # Login, logout, verify and change-password run their own checks.
    lambda path, method: path.startswith("/api/v1/auth/"),
    lambda path, method: method in _READ_METHODS and path == "/api/v1/health",
    _read_under("/api/v1/market-sessions"),
    _read_under("/api/v1/lottery-results"),
    lambda path, method: method in _READ_METHODS and path == "/api/v1/market-index",
]

_RULES: list[tuple[Callable[[str, str], bool], AccessPolicy]] = [
    (
        lambda path, method: _under(path, ADMIN_PREFIX) and not _under(path, ADMIN_LOGIN_PATH),
        AccessPolicy.ADMIN_PAGE,
    ),
    (lambda path, method: any(rule(path, method) for rule in _PUBLIC_API_RULES), AccessPolicy.PUBLIC),
    (lambda path, method: path.startswith(API_PREFIX), AccessPolicy.PROTECTED_API),
]


def classify(path: str, method: str) -> AccessPolicy:
    """Return the access policy for a request, without looking at credentials."""
    method = method.upper()
    for predicate, policy in _RULES:
        if predicate(path, method):
            return policy
    return AccessPolicy.PUBLIC


def decide(path: str, method: str, token_state: TokenState) -> GateDecision:
    """Decide whether a request may proceed given the state of its session token."""
    policy = classify(path, method)
    if policy is AccessPolicy.PUBLIC or token_state is TokenState.VALID:
        return ALLOW
    if policy is AccessPolicy.ADMIN_PAGE:
        return GateDecision(
            action=GateAction.REDIRECT,
            status_code=302,
            location=ADMIN_LOGIN_PATH,
            clear_cookie=token_state is TokenState.INVALID,
        )
    return GateDecision(
        action=GateAction.REJECT,
        status_code=401,
        error=UNAUTHORIZED_MESSAGE,
    )
