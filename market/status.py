"""
market/status.py -- Current/next session and open/closed calculation.

Pure functions: the caller supplies the session list and the current instant,
so the day-boundary cases are testable without a clock.

Rules (sessions ordered by display_order, times compared in minutes since
midnight in the market timezone):
  - before the first session: yesterday's last session is current, the first
    session is next, and the market is reported closed.
  - between two sessions: the earlier one is current, the later one next;
    open/closed follows the current session's flag.
  - after the last session: the last session is current, tomorrow's first is
    next; open/closed follows the last session's flag.
"""

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from market.models import MarketSession, MarketStatus, SessionRef

DEFAULT_TIMEZONE = "Asia/Bangkok"


def session_minutes(session_time: str) -> int:
    """Convert "HH:MM" into minutes since midnight."""
    hours, minutes = session_time.split(":")
    return int(hours) * 60 + int(minutes)


def _ref(session: MarketSession) -> SessionRef:
    return SessionRef(name=session.session_name, time=session.session_time)


def compute_market_status(
    sessions: list[MarketSession],
    now: datetime,
    tz_name: str = DEFAULT_TIMEZONE,
) -> Optional[MarketStatus]:
    """Return the market status at `now`, or None when no sessions exist.

    `now` should be timezone-aware; a naive datetime is taken to already be in
    the market timezone.
    """
    if not sessions:
        return None

    ordered = sorted(sessions, key=lambda s: (s.display_order, s.id or 0))
    local = now.astimezone(ZoneInfo(tz_name)) if now.tzinfo is not None else now
    current_minutes = local.hour * 60 + local.minute

    for i, session in enumerate(ordered):
        if current_minutes < session_minutes(session.session_time):
            if i == 0:
                return MarketStatus(
                    is_market_open=False,
                    current_session=_ref(ordered[-1]),
                    next_session=_ref(session),
                )
            previous = ordered[i - 1]
            return MarketStatus(
                is_market_open=previous.is_market_open,
                current_session=_ref(previous),
                next_session=_ref(session),
            )

    last = ordered[-1]
    return MarketStatus(
        is_market_open=last.is_market_open,
        current_session=_ref(last),
        next_session=_ref(ordered[0]),
    )
