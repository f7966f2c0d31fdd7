"""
tests/conftest.py -- Shared test fixtures for blog API integration tests.

This module provides:
  - _make_test_stores(): creates one isolated in-memory DB shared by the
    user, session and blog stores
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - client: TestClient running the full ASGI stack against a fresh DB
  - browser: a BrowserSession wrapping client that tracks the CSRF token
    and sends it the way a browser front end would

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

Each test gets its own database name, so no state leaks between tests.

The DEBUG env var must be set before any auth/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# Set DEBUG before any auth/core import so get_settings() can auto-generate
# SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import httpx
import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.sessions import SessionStore
from auth.store import UserStore
from blog.service import ArticleCommentService, ArticleService
from blog.store import BlogStore

CSRF_COOKIE = "XSRF-TOKEN"
CSRF_HEADER = "X-XSRF-TOKEN"
SESSION_COOKIE = "JSESSIONID"
PROBLEM_JSON = "application/problem+json"

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores() -> tuple[UserStore, SessionStore, BlogStore]:
    """Create the three stores over one fresh named shared-memory SQLite DB.

    UserStore is created first so the users table exists before BlogStore
    creates tables that reference it.
    """
    db_url = f"sqlite:///file:test_blog_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=db_url), SessionStore(db_url=db_url), BlogStore(db_url=db_url)


def _patch_lifespan(user_store: UserStore, session_store: SessionStore, blog_store: BlogStore):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.session_store = session_store
        app.state.blog_store = blog_store
        app.state.article_service = ArticleService(blog_store)
        app.state.comment_service = ArticleCommentService(blog_store, app.state.article_service)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Browser-like helper
# ---------------------------------------------------------------------------


class BrowserSession:
    """Drives a TestClient the way the SPA front end drives a browser.

    The client's cookie jar holds XSRF-TOKEN and JSESSIONID exactly as a
    browser would. Mutating helpers copy the XSRF-TOKEN cookie into the
    X-XSRF-TOKEN header, which is what the front end's HTTP client does.
    """

    def __init__(self, client: TestClient) -> None:
        self.client = client

    def csrf_token(self) -> str:
        """Return the current token, calling GET /csrf-cookie first if the jar has none."""
        token = self.client.cookies.get(CSRF_COOKIE)
        if token is None:
            resp = self.client.get("/csrf-cookie")
            assert resp.status_code == 204
            token = self.client.cookies.get(CSRF_COOKIE)
        assert token
        return token

    def _headers(self) -> dict[str, str]:
        return {CSRF_HEADER: self.csrf_token()}

    def post(self, url: str, json=None) -> httpx.Response:
        return self.client.post(url, json=json, headers=self._headers())

    def put(self, url: str, json=None) -> httpx.Response:
        return self.client.put(url, json=json, headers=self._headers())

    def delete(self, url: str) -> httpx.Response:
        return self.client.delete(url, headers=self._headers())

    def register(self, username: str, password: str) -> httpx.Response:
        return self.post("/users", json={"username": username, "password": password})

    def login(self, username: str, password: str) -> httpx.Response:
        return self.post("/login", json={"username": username, "password": password})

    def signup_and_login(self, username: str, password: str) -> int:
        """Register and log in; return the new user's id."""
        resp = self.register(username, password)
        assert resp.status_code == 201, resp.text
        assert self.login(username, password).status_code == 200
        return resp.json()["id"]

    def logout(self) -> httpx.Response:
        return self.post("/logout")


# ---------------------------------------------------------------------------
# Fixtures -- one fresh database per test
# ---------------------------------------------------------------------------


@pytest.fixture()
def stores() -> Generator[tuple[UserStore, SessionStore, BlogStore], None, None]:
    user_store, session_store, blog_store = _make_test_stores()
    yield user_store, session_store, blog_store
    blog_store.close()
    session_store.close()
    user_store.close()


@pytest.fixture()
def client(stores) -> Generator[TestClient, None, None]:
    """TestClient over the real app with a patched lifespan and a fresh DB."""
    app.router.lifespan_context = _patch_lifespan(*stores)
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture()
def browser(client: TestClient) -> BrowserSession:
    return BrowserSession(client)


@pytest.fixture()
def second_browser(client: TestClient) -> BrowserSession:
    """Another visitor with its own cookie jar, sharing the running app and DB.

    Not entered as a context manager, so the lifespan does not run twice;
    app.state is already populated by the client fixture.
    """
    return BrowserSession(TestClient(app))
