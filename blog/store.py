"""
blog/store.py -- SQLAlchemy Core persistence layer for articles and comments.

Pattern: Repository + Data Mapper. BlogStore is the repository; the _row_to_*
functions are the mappers. Services never touch SQL directly.

Author names come from a join against the users table owned by auth/store.py.
That table is declared here with only the two columns this module reads and
is excluded from create_all(), so this store never creates or alters it.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = BlogStore()
    article_id = store.create_article(user_id, "Hello", "First post")
    article = store.get_article(article_id)
    store.close()
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, select
from sqlalchemy.engine import Engine

from blog.models import Article, ArticleComment, Author
from core.config import get_settings
from core.db import make_engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

# Read-only view of auth's users table.
_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True),
    Column("username", String(32), nullable=False),
)

_articles = Table(
    "articles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("body", Text, nullable=False),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_comments = Table(
    "article_comments",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("body", Text, nullable=False),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("article_id", Integer, ForeignKey("articles.id"), nullable=False),
    Column("created_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# SQLite INTEGER is a signed 64-bit value; larger ids cannot be bound as
# parameters and can never match a row.
_MAX_ID = 2**63 - 1


def _valid_id(value: int) -> bool:
    return 0 < value <= _MAX_ID


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class BlogStore:
    """Repository for Article and ArticleComment entities."""

    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine, tables=[_articles, _comments])

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    def create_article(self, user_id: int, title: str, body: str) -> int:
        """Insert an article owned by user_id and return its ID."""
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _articles.insert().values(
                    title=title,
                    body=body,
                    user_id=user_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_article(self, article_id: int) -> Optional[Article]:
        """Return the article with its body and author, or None."""
        if not _valid_id(article_id):
            return None
        query = (
            select(_articles, _users.c.username)
            .join(_users, _articles.c.user_id == _users.c.id)
            .where(_articles.c.id == article_id)
        )
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_article(row, with_body=True) if row is not None else None

    def list_articles(self) -> list[Article]:
        """Return every article, newest first, without bodies."""
        query = (
            select(
                _articles.c.id,
                _articles.c.title,
                _articles.c.user_id,
                _articles.c.created_at,
                _articles.c.updated_at,
                _users.c.username,
            )
            .join(_users, _articles.c.user_id == _users.c.id)
            .order_by(_articles.c.created_at.desc(), _articles.c.id.desc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_article(r, with_body=False) for r in rows]

    def update_article(self, article_id: int, user_id: int, title: str, body: str) -> bool:
        """Update title and body, scoped to the owner.

        The WHERE clause matches both id and user_id, so a row owned by
        someone else is never touched even if a caller skipped the ownership
        check. Returns True if a row was updated.
        """
        if not _valid_id(article_id):
            return False
        with self.engine.connect() as conn:
            result = conn.execute(
                _articles.update()
                .where((_articles.c.id == article_id) & (_articles.c.user_id == user_id))
                .values(title=title, body=body, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_article(self, article_id: int, user_id: int) -> bool:
        """Delete an article and its comments, scoped to the owner.

        Both deletes run in one transaction. Returns True if the article row
        was removed.
        """
        if not _valid_id(article_id):
            return False
        with self.engine.begin() as conn:
            owned = conn.execute(
                select(_articles.c.id).where((_articles.c.id == article_id) & (_articles.c.user_id == user_id))
            ).fetchone()
            if owned is None:
                return False
            conn.execute(_comments.delete().where(_comments.c.article_id == article_id))
            conn.execute(_articles.delete().where(_articles.c.id == article_id))
        return True

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def create_comment(self, article_id: int, user_id: int, body: str) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                _comments.insert().values(
                    body=body,
                    user_id=user_id,
                    article_id=article_id,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_comment(self, comment_id: int) -> Optional[ArticleComment]:
        if not _valid_id(comment_id):
            return None
        query = (
            select(_comments, _users.c.username)
            .join(_users, _comments.c.user_id == _users.c.id)
            .where(_comments.c.id == comment_id)
        )
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_comment(row) if row is not None else None

    def list_comments(self, article_id: int) -> list[ArticleComment]:
        """Return an article's comments, oldest first."""
        if not _valid_id(article_id):
            return []
        query = (
            select(_comments, _users.c.username)
            .join(_users, _comments.c.user_id == _users.c.id)
            .where(_comments.c.article_id == article_id)
            .order_by(_comments.c.created_at, _comments.c.id)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_comment(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_article(row, with_body: bool) -> Article:
    return Article(
        id=row.id,
        title=row.title,
        body=row.body if with_body else None,
        author=Author(id=row.user_id, username=row.username),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_comment(row) -> ArticleComment:
    return ArticleComment(
        id=row.id,
        article_id=row.article_id,
        body=row.body,
        author=Author(id=row.user_id, username=row.username),
        created_at=row.created_at,
    )
