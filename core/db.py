"""
core/db.py -- Engine construction shared by every SQLAlchemy store.

The user, session and blog stores each own their tables but point at the
same DATABASE_URL by default. They build engines here so SQLite settings are
applied the same way everywhere.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine; SQLite engines allow cross-thread use and run in WAL mode.

    check_same_thread=False is required because FastAPI runs sync route
    handlers in a thread pool, so one pooled connection may be used from
    several threads over its lifetime.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine
