"""
api/main.py -- FastAPI application entry point for the blog API.

Run with:  python main.py serve
           uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. log_requests          -- one log line per request with latency
  2. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  3. CORSMiddleware        -- answers preflights, adds CORS headers
  4. security_filters      -- the ordered filter chain from api/filters.py
                              (CSRF -> session -> logout -> login ->
                              CSRF cookie -> access decision)

Lifespan opens the user, session and blog stores, builds the article
services, and starts the expired-session purge task; shutdown reverses it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_swagger_ui_html
from starlette.concurrency import run_in_threadpool

from api.errors import register_exception_handlers
from api.filters import build_security_chain
from api.models import HealthResponse
from api.routes.articles import router as articles_router
from api.routes.csrf import router as csrf_router
from api.routes.users import router as users_router
from auth.dependencies import get_current_principal
from auth.models import Principal
from auth.sessions import SessionStore
from auth.store import UserStore
from blog.service import ArticleCommentService, ArticleService
from blog.store import BlogStore
from core.config import get_settings

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("blog.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Delete idle-expired sessions every SESSION_PURGE_INTERVAL_SECONDS.

    get() already ignores expired rows; this only keeps the table from
    growing with sessions whose owners never came back. CancelledError from
    task.cancel() during shutdown propagates out of asyncio.sleep and unwinds
    the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(_settings.session_purge_interval_seconds)
        await run_in_threadpool(app.state.session_store.purge_expired)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open stores on startup and close them on shutdown.

    The user store goes first so the users table exists before the blog
    store declares foreign keys against it.
    """
    logger.info("Blog API starting up")
    app.state.user_store = UserStore()
    app.state.session_store = SessionStore()
    app.state.blog_store = BlogStore()
    app.state.article_service = ArticleService(app.state.blog_store)
    app.state.comment_service = ArticleCommentService(app.state.blog_store, app.state.article_service)
    logger.info("Stores initialized (%s)", _settings.database_url.split("?", 1)[0])
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.blog_store.close()
    app.state.session_store.close()
    app.state.user_store.close()
    logger.info("Blog API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Blog API",
    description="Articles and comments behind session login and double-submit CSRF protection.",
    version=API_VERSION,
    lifespan=lifespan,
    # Built-in /docs and /redoc are disabled; an auth-protected /docs is
    # registered below.
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette inserts each new middleware at the outside of the stack, so the
# registration order below runs innermost first: the security chain is
# registered first and log_requests last.
# ---------------------------------------------------------------------------

security_chain = build_security_chain(_settings)


@app.middleware("http")
async def security_filters(request: Request, call_next):
    return await security_chain(request, call_next)


app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", _settings.csrf_header_name],
    expose_headers=["Location"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# ---------------------------------------------------------------------------
# Request logging middleware
#
# Outermost, so the logged status is the one the client actually receives,
# including 401/403 responses produced by the security filters.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        # Runs for unhandled faults too; ServerErrorMiddleware answers those with 500.
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms %s",
            request.method,
            request.url.path,
            status,
            ms,
            request.client.host if request.client else "unknown",
        )


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(csrf_router, tags=["CSRF"])
app.include_router(users_router, tags=["Users"])
app.include_router(articles_router, tags=["Articles"])

register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Auth-protected API documentation
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False)
async def docs(principal: Principal = Depends(get_current_principal)):
    """Swagger UI -- requires authentication."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="Blog API")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    db_ok = request.app.state.user_store.ping()
    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        version=API_VERSION,
        components={"app": "ok", "database": "ok" if db_ok else "error"},
    )
