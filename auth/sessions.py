"""
auth/sessions.py -- Server-side session repository (SQLAlchemy Core).

Each row maps HMAC(session id) to a JSON attribute blob. The security context
lives under the "security_context" attribute; nothing else in the project
writes session attributes today, but the blob is kept generic so rotation can
carry over whatever a pre-login session held.

Expiry: sessions idle longer than SESSION_TIMEOUT_SECONDS are treated as
absent. get() deletes such rows lazily; purge_expired() sweeps the rest and is
driven by a background task started in the API lifespan.

Rotation: rotate() deletes the old row and inserts the new one inside a single
transaction, so a concurrent request presenting the old id either finds the
complete old session (before commit) or nothing (after commit). There is no
moment at which both ids, or neither id with a half-written row, are visible.

Layer rule: no imports from api/ or blog/.
"""

from __future__ import annotations

import json
import logging
import time

from sqlalchemy import Column, Float, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.models import Session
from auth.tokens import generate_session_id, hash_session_id
from core.config import get_settings
from core.db import make_engine

logger = logging.getLogger("blog.auth")

SECURITY_CONTEXT_KEY = "security_context"

_metadata = MetaData()

_sessions = Table(
    "sessions",
    _metadata,
    Column("id_hash", String(64), primary_key=True),  # HMAC-SHA256 hex
    Column("attributes", Text, nullable=False),  # JSON object
    Column("created_at", Float, nullable=False),
    Column("last_accessed", Float, nullable=False),
)


class SessionStore:
    """Repository for server-side sessions keyed by an opaque cookie value."""

    def __init__(self, db_url: str | None = None, timeout_seconds: int | None = None) -> None:
        settings = get_settings()
        self.engine: Engine = make_engine(db_url or settings.database_url)
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.session_timeout_seconds
        _metadata.create_all(self.engine)

    def _is_expired(self, last_accessed: float, now: float) -> bool:
        return now - last_accessed > self.timeout_seconds

    def create(self, attributes: dict | None = None) -> Session:
        """Start a new session and return it with its raw id populated."""
        raw_id = generate_session_id()
        now = time.time()
        attrs = dict(attributes or {})
        with self.engine.connect() as conn:
            conn.execute(
                _sessions.insert().values(
                    id_hash=hash_session_id(raw_id),
                    attributes=json.dumps(attrs),
                    created_at=now,
                    last_accessed=now,
                )
            )
            conn.commit()
        return Session(id=raw_id, attributes=attrs, created_at=now, last_accessed=now)

    def get(self, raw_id: str | None) -> Session | None:
        """Return the live session for raw_id, refreshing its idle timer.

        Unknown, empty, and idle-expired ids all return None. Expired rows are
        deleted on the way out.
        """
        if not raw_id:
            return None
        id_hash = hash_session_id(raw_id)
        now = time.time()
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.id_hash == id_hash)).fetchone()
            if row is None:
                return None
            if self._is_expired(row.last_accessed, now):
                conn.execute(_sessions.delete().where(_sessions.c.id_hash == id_hash))
                conn.commit()
                return None
            conn.execute(_sessions.update().where(_sessions.c.id_hash == id_hash).values(last_accessed=now))
            conn.commit()
        return Session(
            id=raw_id,
            attributes=json.loads(row.attributes),
            created_at=row.created_at,
            last_accessed=now,
        )

    def rotate(self, old_raw_id: str | None, attributes: dict | None = None) -> Session:
        """Replace old_raw_id with a brand-new session id in one transaction.

        Attributes of a live old session are carried over, then overlaid with
        `attributes`. The old row is removed whether or not it was still live.
        The returned id is always freshly generated, so it can never equal
        the id the caller presented.
        """
        new_raw_id = generate_session_id()
        now = time.time()
        carried: dict = {}
        created_at = now
        with self.engine.begin() as conn:
            if old_raw_id:
                old_hash = hash_session_id(old_raw_id)
                row = conn.execute(_sessions.select().where(_sessions.c.id_hash == old_hash)).fetchone()
                if row is not None:
                    if not self._is_expired(row.last_accessed, now):
                        carried = json.loads(row.attributes)
                    conn.execute(_sessions.delete().where(_sessions.c.id_hash == old_hash))
            carried.update(attributes or {})
            conn.execute(
                _sessions.insert().values(
                    id_hash=hash_session_id(new_raw_id),
                    attributes=json.dumps(carried),
                    created_at=created_at,
                    last_accessed=now,
                )
            )
        return Session(id=new_raw_id, attributes=carried, created_at=created_at, last_accessed=now)

    def invalidate(self, raw_id: str | None) -> bool:
        """Delete the session. Returns True if a row was removed."""
        if not raw_id:
            return False
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.id_hash == hash_session_id(raw_id)))
            conn.commit()
        return result.rowcount > 0

    def purge_expired(self) -> int:
        """Delete every idle-expired session and return how many were removed."""
        cutoff = time.time() - self.timeout_seconds
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.last_accessed < cutoff))
            conn.commit()
        if result.rowcount:
            logger.info("Purged %d expired session(s)", result.rowcount)
        return result.rowcount

    def count(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_sessions)).scalar() or 0

    def close(self) -> None:
        self.engine.dispose()
