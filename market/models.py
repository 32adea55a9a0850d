"""
market/models.py -- Domain dataclasses for market sessions.

A market session is a named daily time slot (e.g. "morning" at 12:55) at which
results are published. is_market_open is set by an admin and reported by the
status calculation once the slot has been reached.

These are pure data containers. Queries live in market/store.py and the
time-window logic in market/status.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class MarketSession:
    """A daily session slot.

    session_time is "HH:MM" in the market timezone (see Settings.market_timezone).
    id is None before the record is written to the database.
    """

    session_name: str
    session_time: str
    display_order: int
    is_market_open: bool = False
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class SessionRef:
    name: str
    time: str


@dataclass(frozen=True)
class MarketStatus:
    is_market_open: bool
    current_session: SessionRef
    next_session: SessionRef

    @property
    def status_text(self) -> str:
        return "Market Open" if self.is_market_open else "Market Closed"
