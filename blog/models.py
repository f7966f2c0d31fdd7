"""
blog/models.py -- Domain dataclasses for articles and comments.

Pure data containers with zero logic. Ownership checks live in
blog/service.py; SQL lives in blog/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Author:
    """The public projection of a user: id and username, nothing else."""

    id: int
    username: str


@dataclass
class Article:
    """A blog article.

    body is None on rows fetched for list views, which never carry it.
    id is None before the record is written to the database.
    """

    title: str
    author: Author
    body: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, refreshed on every update


@dataclass
class ArticleComment:
    """A comment attached to one article. Comments are never edited."""

    article_id: int
    body: str
    author: Author
    id: Optional[int] = None
    created_at: str = ""
