"""
auth/store.py -- SQLAlchemy Core persistence layer for admin identities.

Pattern: Repository + Data Mapper. AdminStore is the repository; _row_to_admin
is the mapper. Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  The password hash column is only ever read into AdminUser.password_hash and
  written from hash_password() output.

Concurrency:
  Password updates run inside engine.begin() so the hash and updated_at change
  together in one transaction. Bootstrap relies on the UNIQUE(username)
  constraint: a second concurrent create_admin() raises IntegrityError.

Layer rule: no imports from api/, core/, or market/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from auth.models import AdminUser

_DEFAULT_DB_URL = "sqlite:///marketboard.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_admin_users = Table(
    "admin_users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("must_change_password", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. In-memory databases silently keep "memory".
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _make_engine(db_url: str) -> Engine:
    """Create an Engine with the SQLite settings every store needs."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AdminStore:
    """Repository for AdminUser records.

    Usage:
        store = AdminStore()
        store.create_admin(AdminUser(username="admin", password_hash=hash_password("secret")))
        user = store.get_by_username("admin")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        self.engine: Engine = _make_engine(db_url)
        _metadata.create_all(self.engine)

    def count(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_admin_users)).scalar()
        return result or 0

    def has_admins(self) -> bool:
        """Return True if at least one admin record exists. Used by bootstrap."""
        return self.count() > 0

    def create_admin(self, user: AdminUser) -> int:
        """Insert a new admin and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        """
        stamp = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _admin_users.insert().values(
                    username=user.username,
                    password_hash=user.password_hash,
                    must_change_password=1 if user.must_change_password else 0,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            return result.inserted_primary_key[0]

    def get_by_username(self, username: str) -> AdminUser | None:
        """Look up an admin by exact username (case-sensitive)."""
        with self.engine.connect() as conn:
            row = conn.execute(_admin_users.select().where(_admin_users.c.username == username)).fetchone()
        return _row_to_admin(row) if row is not None else None

    def get_by_id(self, user_id: int) -> AdminUser | None:
        with self.engine.connect() as conn:
            row = conn.execute(_admin_users.select().where(_admin_users.c.id == user_id)).fetchone()
        return _row_to_admin(row) if row is not None else None

    def update_password(self, user_id: int, password_hash: str, must_change_password: bool = False) -> bool:
        """Replace the stored hash for one admin in a single transaction.

        Returns True if a row was updated, False if user_id was not found.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _admin_users.update()
                .where(_admin_users.c.id == user_id)
                .values(
                    password_hash=password_hash,
                    must_change_password=1 if must_change_password else 0,
                    updated_at=_now_iso(),
                )
            )
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_admin(row) -> AdminUser:
    return AdminUser(
        id=row.id,
        username=row.username,
        password_hash=row.password_hash,
        must_change_password=bool(row.must_change_password),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
