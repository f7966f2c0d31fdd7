"""
auth/store.py -- SQLAlchemy Core persistence layer for user credentials.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Filter and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Only bcrypt hashes are stored; plaintext passwords never reach this module.

Layer rule: no imports from api/ or blog/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, select, text
from sqlalchemy.engine import Engine

from auth.models import User
from core.config import get_settings
from core.db import make_engine

logger = logging.getLogger("blog.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(32), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("enabled", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore()
        store.create_user(User(username="alice", hashed_password=hash_password("s3cret1234")))
        user = store.get_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        Registration catches it as the signal that a concurrent request won
        the race for the same username.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    hashed_password=user.hashed_password,
                    enabled=1 if user.enabled else 0,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        if not username:
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def exists_username(self, username: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(select(_users.c.id).where(_users.c.username == username)).fetchone()
        return row is not None

    def set_enabled(self, user_id: int, enabled: bool) -> bool:
        """Enable or disable an account. Returns True if a row was updated."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(enabled=1 if enabled else 0))
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.exception("Database ping failed")
            return False

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        hashed_password=row.hashed_password,
        enabled=bool(row.enabled),
        created_at=row.created_at,
    )
