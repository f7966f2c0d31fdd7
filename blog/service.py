"""
blog/service.py -- Article and comment operations with ownership checks.

Route-level authentication ("must be logged in") is decided by the access
rule table in api/access.py before a handler runs. Resource-level
authorization ("must own this article") is decided here, because only the
service knows who owns what.

Failures are signalled with the typed conditions in blog/errors.py:
  ResourceNotFoundError            -- unknown article id (404)
  UnauthorizedResourceAccessError  -- caller is not the author (403)
"""

from __future__ import annotations

import logging

from blog.errors import ResourceNotFoundError, UnauthorizedResourceAccessError
from blog.models import Article, ArticleComment
from blog.store import BlogStore

logger = logging.getLogger("blog.service")


class ArticleService:
    def __init__(self, store: BlogStore) -> None:
        self.store = store

    def find_all(self) -> list[Article]:
        return self.store.list_articles()

    def find_by_id(self, article_id: int) -> Article:
        article = self.store.get_article(article_id)
        if article is None:
            raise ResourceNotFoundError("article", article_id)
        return article

    def create(self, user_id: int, title: str, body: str) -> Article:
        article_id = self.store.create_article(user_id, title, body)
        logger.info("Article %d created by user %d", article_id, user_id)
        return self.find_by_id(article_id)

    def _require_owner(self, article_id: int, user_id: int) -> Article:
        article = self.find_by_id(article_id)
        if article.author.id != user_id:
            logger.info("User %d denied access to article %d", user_id, article_id)
            raise UnauthorizedResourceAccessError("article", article_id, user_id)
        return article

    def update(self, article_id: int, user_id: int, title: str, body: str) -> Article:
        """Replace title and body. Raises if the article is missing or not owned by user_id."""
        self._require_owner(article_id, user_id)
        if not self.store.update_article(article_id, user_id, title, body):
            # Deleted between the ownership check and the update
            raise ResourceNotFoundError("article", article_id)
        return self.find_by_id(article_id)

    def delete(self, article_id: int, user_id: int) -> None:
        """Delete an article and its comments. Raises if missing or not owned by user_id."""
        self._require_owner(article_id, user_id)
        if not self.store.delete_article(article_id, user_id):
            raise ResourceNotFoundError("article", article_id)
        logger.info("Article %d deleted by user %d", article_id, user_id)


class ArticleCommentService:
    """Comments can be added by any logged-in user to any existing article."""

    def __init__(self, store: BlogStore, articles: ArticleService) -> None:
        self.store = store
        self.articles = articles

    def create(self, article_id: int, user_id: int, body: str) -> ArticleComment:
        self.articles.find_by_id(article_id)
        comment_id = self.store.create_comment(article_id, user_id, body)
        comment = self.store.get_comment(comment_id)
        if comment is None:
            raise ResourceNotFoundError("comment", comment_id)
        return comment

    def find_by_article(self, article_id: int) -> list[ArticleComment]:
        self.articles.find_by_id(article_id)
        return self.store.list_comments(article_id)
