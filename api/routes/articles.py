"""
api/routes/articles.py -- Article and comment routes.

Routes:
  GET    /articles                        -- list, newest first (public)
  POST   /articles                        -- create; 201 + Location (auth)
  GET    /articles/{article_id}           -- detail (public)
  PUT    /articles/{article_id}           -- replace title/body (auth, owner only)
  DELETE /articles/{article_id}           -- delete with its comments; 204 (auth, owner only)
  POST   /articles/{article_id}/comments  -- add comment; 201 + Location (auth)
  GET    /articles/{article_id}/comments  -- list, oldest first (public)

Auth policy: which of these need a login is decided by the access rule table
(api/access.py) before the handler runs. Ownership is decided by the
services, which raise UnauthorizedResourceAccessError (403) or
ResourceNotFoundError (404); api/errors.py renders both.
"""

from fastapi import APIRouter, Depends, Request, Response

from api.models import (
    ArticleCommentDTO,
    ArticleCommentForm,
    ArticleCommentListDTO,
    ArticleDTO,
    ArticleForm,
    ArticleListDTO,
    ArticleListItemDTO,
)
from auth.dependencies import get_current_principal
from auth.models import Principal
from blog.service import ArticleCommentService, ArticleService

router = APIRouter()


def _articles(request: Request) -> ArticleService:
    return request.app.state.article_service


def _comments(request: Request) -> ArticleCommentService:
    return request.app.state.comment_service


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------


@router.get("/articles", response_model=ArticleListDTO)
def list_articles(service: ArticleService = Depends(_articles)) -> ArticleListDTO:
    return ArticleListDTO(items=[ArticleListItemDTO.from_article(a) for a in service.find_all()])


@router.post("/articles", response_model=ArticleDTO, status_code=201)
def create_article(
    response: Response,
    body: ArticleForm,
    service: ArticleService = Depends(_articles),
    principal: Principal = Depends(get_current_principal),
) -> ArticleDTO:
    article = service.create(principal.user_id, body.title, body.body)
    response.headers["Location"] = f"/articles/{article.id}"
    return ArticleDTO.from_article(article)


@router.get("/articles/{article_id}", response_model=ArticleDTO)
def get_article(article_id: int, service: ArticleService = Depends(_articles)) -> ArticleDTO:
    return ArticleDTO.from_article(service.find_by_id(article_id))


@router.put("/articles/{article_id}", response_model=ArticleDTO)
def update_article(
    article_id: int,
    body: ArticleForm,
    service: ArticleService = Depends(_articles),
    principal: Principal = Depends(get_current_principal),
) -> ArticleDTO:
    return ArticleDTO.from_article(service.update(article_id, principal.user_id, body.title, body.body))


@router.delete("/articles/{article_id}", status_code=204)
def delete_article(
    article_id: int,
    service: ArticleService = Depends(_articles),
    principal: Principal = Depends(get_current_principal),
) -> Response:
    service.delete(article_id, principal.user_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


@router.post("/articles/{article_id}/comments", response_model=ArticleCommentDTO, status_code=201)
def create_comment(
    article_id: int,
    response: Response,
    body: ArticleCommentForm,
    service: ArticleCommentService = Depends(_comments),
    principal: Principal = Depends(get_current_principal),
) -> ArticleCommentDTO:
    comment = service.create(article_id, principal.user_id, body.body)
    response.headers["Location"] = f"/articles/{article_id}/comments/{comment.id}"
    return ArticleCommentDTO.from_comment(comment)


@router.get("/articles/{article_id}/comments", response_model=ArticleCommentListDTO)
def list_comments(article_id: int, service: ArticleCommentService = Depends(_comments)) -> ArticleCommentListDTO:
    comments = service.find_by_article(article_id)
    return ArticleCommentListDTO(comments=[ArticleCommentDTO.from_comment(c) for c in comments])
