"""
API request and response models for the blog REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in blog/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.

Form validators raise PydanticCustomError with a message-catalog key as the
error type (see core/messages.py). api/errors.py turns that key into the
localized per-field `detail` of a 400 problem response.

Response models serialize with camelCase keys (createdAt, updatedAt).
"""

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from blog.models import Article, ArticleComment, Author

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

USERNAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-_.]{1,30}[a-z0-9]$")
PASSWORD_MIN_LENGTH = 10
PASSWORD_MAX_LENGTH = 255
# '.' excludes line breaks, so titles are single-line.
TITLE_PATTERN = re.compile(r"^.{1,255}$")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """JSON body for POST /login.

    Absent or null fields become empty strings so they fail authentication
    like any other wrong credential instead of surfacing as a 400.
    """

    username: Optional[str] = Field(default=None, validate_default=True)
    password: Optional[str] = Field(default=None, validate_default=True, repr=False)

    @field_validator("username", "password", mode="after")
    @classmethod
    def none_to_empty(cls, value: Optional[str]) -> str:
        return value or ""


class UserForm(BaseModel):
    """Request body for POST /users.

    Fields default to None with validate_default=True so that an absent field
    runs through the same validator and reports the same message as a
    malformed one.
    """

    username: Optional[str] = Field(default=None, validate_default=True)
    password: Optional[str] = Field(default=None, validate_default=True, repr=False)

    @field_validator("username", mode="before")
    @classmethod
    def check_username(cls, value: Any) -> str:
        if not isinstance(value, str) or not USERNAME_PATTERN.fullmatch(value):
            raise PydanticCustomError("user_form.username", "username does not match the required format")
        return value

    @field_validator("password", mode="before")
    @classmethod
    def check_password(cls, value: Any) -> str:
        if not isinstance(value, str) or not PASSWORD_MIN_LENGTH <= len(value) <= PASSWORD_MAX_LENGTH:
            raise PydanticCustomError("user_form.password", "password length is out of range")
        return value


class ArticleForm(BaseModel):
    """Request body for POST /articles and PUT /articles/{id}."""

    title: Optional[str] = Field(default=None, validate_default=True)
    body: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("title", mode="before")
    @classmethod
    def check_title(cls, value: Any) -> str:
        if not isinstance(value, str) or not TITLE_PATTERN.fullmatch(value):
            raise PydanticCustomError("article_form.title", "title length is out of range")
        return value

    @field_validator("body", mode="before")
    @classmethod
    def check_body(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise PydanticCustomError("article_form.body", "body is required")
        return value


class ArticleCommentForm(BaseModel):
    """Request body for POST /articles/{id}/comments."""

    body: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("body", mode="before")
    @classmethod
    def check_body(cls, value: Any) -> str:
        if not isinstance(value, str) or len(value) < 1:
            raise PydanticCustomError("article_comment_form.body", "comment body is required")
        return value


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class UserDTO(_CamelModel):
    """Public view of a user. There is deliberately no password field."""

    id: int
    username: str

    @classmethod
    def from_author(cls, author: Author) -> "UserDTO":
        return cls(id=author.id, username=author.username)


class ArticleDTO(_CamelModel):
    id: int
    title: str
    body: str
    author: UserDTO
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_article(cls, article: Article) -> "ArticleDTO":
        """Factory Method -- the mapping lives beside the output model, not in route handlers."""
        return cls(
            id=article.id,
            title=article.title,
            body=article.body or "",
            author=UserDTO.from_author(article.author),
            created_at=article.created_at,
            updated_at=article.updated_at,
        )


class ArticleListItemDTO(_CamelModel):
    """One row of GET /articles. Bodies are left out of list views."""

    id: int
    title: str
    author: UserDTO
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_article(cls, article: Article) -> "ArticleListItemDTO":
        return cls(
            id=article.id,
            title=article.title,
            author=UserDTO.from_author(article.author),
            created_at=article.created_at,
            updated_at=article.updated_at,
        )


class ArticleListDTO(_CamelModel):
    items: list[ArticleListItemDTO] = Field(default_factory=list)


class ArticleCommentDTO(_CamelModel):
    id: int
    body: str
    author: UserDTO
    created_at: datetime

    @classmethod
    def from_comment(cls, comment: ArticleComment) -> "ArticleCommentDTO":
        return cls(
            id=comment.id,
            body=comment.body,
            author=UserDTO.from_author(comment.author),
            created_at=comment.created_at,
        )


class ArticleCommentListDTO(_CamelModel):
    comments: list[ArticleCommentDTO] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Problem details (RFC 7807)
# ---------------------------------------------------------------------------


class FieldError(BaseModel):
    """One invalid field. pointer is a JSON Pointer fragment such as "#/title"."""

    model_config = ConfigDict(frozen=True)

    pointer: str
    detail: str


class ProblemDetail(BaseModel):
    """Body of every 4xx/5xx response.

    detail is None only for 500s, where the cause is never disclosed.
    Serialized without exclude_none so a null detail is still present.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    status: int = Field(ge=400, le=599)
    detail: Optional[str] = None
    instance: Optional[str] = None


class ValidationProblemDetail(ProblemDetail):
    """400 body: the base problem plus one entry per invalid field."""

    errors: list[FieldError] = Field(default_factory=list)
