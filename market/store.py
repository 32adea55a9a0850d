"""
market/store.py -- SQLAlchemy Core persistence for market sessions.

Pattern: Repository + Data Mapper, same as auth/store.py. SessionStore is the
repository; _row_to_session is the mapper.

Security: all queries use bound parameters. update() only accepts column names
from _UPDATABLE, never raw request keys.

Usage:
    store = SessionStore()                               # SQLite default
    store = SessionStore("postgresql://user:pw@host/db") # PostgreSQL
    store.seed_defaults()
    sessions = store.list_sessions()
    store.close()
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine

from market.models import MarketSession

logger = logging.getLogger("marketboard.market")

_DEFAULT_DB_URL = "sqlite:///marketboard.db"

# Seeded on first boot when the table is empty.
DEFAULT_SESSIONS: list[MarketSession] = [
    MarketSession(session_name="morning", session_time="12:55", display_order=1),
    MarketSession(session_name="afternoon", session_time="16:55", display_order=2),
]

_UPDATABLE = {"session_name", "session_time", "is_market_open", "display_order"}

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_market_sessions = Table(
    "market_sessions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("session_name", String(100), nullable=False),
    Column("session_time", String(5), nullable=False),  # HH:MM
    Column("is_market_open", Integer, nullable=False, server_default="0"),
    Column("display_order", Integer, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("session_name", "session_time", name="uq_market_sessions_name_time"),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def seed_defaults(self) -> int:
        """Insert DEFAULT_SESSIONS if the table is empty. Returns rows inserted."""
        with self.engine.begin() as conn:
            existing = conn.execute(select(func.count()).select_from(_market_sessions)).scalar() or 0
            if existing:
                return 0
            stamp = _now_iso()
            conn.execute(
                _market_sessions.insert(),
                [
                    {
                        "session_name": s.session_name,
                        "session_time": s.session_time,
                        "is_market_open": 1 if s.is_market_open else 0,
                        "display_order": s.display_order,
                        "created_at": stamp,
                        "updated_at": stamp,
                    }
                    for s in DEFAULT_SESSIONS
                ],
            )
        logger.info("Seeded %d default market sessions", len(DEFAULT_SESSIONS))
        return len(DEFAULT_SESSIONS)

    def list_sessions(self) -> list[MarketSession]:
        """Return all sessions in display order."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _market_sessions.select().order_by(_market_sessions.c.display_order, _market_sessions.c.id)
            ).fetchall()
        return [_row_to_session(r) for r in rows]

    def get(self, session_id: int) -> Optional[MarketSession]:
        with self.engine.connect() as conn:
            row = conn.execute(_market_sessions.select().where(_market_sessions.c.id == session_id)).fetchone()
        return _row_to_session(row) if row is not None else None

    def create(self, session: MarketSession) -> int:
        """Insert a session and return its ID.

        Raises sqlalchemy.exc.IntegrityError on a duplicate (name, time) pair.
        """
        stamp = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _market_sessions.insert().values(
                    session_name=session.session_name,
                    session_time=session.session_time,
                    is_market_open=1 if session.is_market_open else 0,
                    display_order=session.display_order,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            return result.inserted_primary_key[0]

    def update(self, session_id: int, **fields) -> bool:
        """Update mutable fields. Returns False if session_id was not found.

        Unknown field names raise ValueError. is_market_open is stored as 0/1.
        Raises sqlalchemy.exc.IntegrityError if the change collides with another
        session's (name, time) pair.
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown market session fields: {unknown!r}")
        if "is_market_open" in fields:
            fields["is_market_open"] = 1 if fields["is_market_open"] else 0
        fields["updated_at"] = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _market_sessions.update().where(_market_sessions.c.id == session_id).values(**fields)
            )
        return result.rowcount > 0

    def delete(self, session_id: int) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(_market_sessions.delete().where(_market_sessions.c.id == session_id))
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_session(row) -> MarketSession:
    return MarketSession(
        id=row.id,
        session_name=row.session_name,
        session_time=row.session_time,
        is_market_open=bool(row.is_market_open),
        display_order=row.display_order,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
