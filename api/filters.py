"""
api/filters.py -- The ordered security filter chain.

Every request passes through these filters, in this order, before routing:

  1. CsrfFilter           -- double-submit check on state-changing requests;
                             writes the XSRF-TOKEN cookie on the way out if
                             a token was generated during the request
  2. SessionFilter        -- resolves the session cookie into a
                             SecurityContext on request.state
  3. LogoutFilter         -- POST /logout: invalidates the session
  4. JsonLoginFilter      -- POST /login: JSON credentials, session rotation
  5. CsrfCookieFilter     -- reads the deferred token so the cookie is
                             emitted on any response that lacked one
  6. AccessDecisionFilter -- 401 for anonymous requests to protected routes

Pattern: Chain of Responsibility as an explicit ordered list. Each filter is
a callable (request, call_next) -> response, the same signature Starlette's
@app.middleware("http") uses, so FilterChain composes them and the whole
chain is installed as a single middleware. Filters never raise into handler
code; every failure is returned as a problem+json response.

Filters hold configuration only. Stores are looked up on request.app.state
(populated by the lifespan), so the chain is built once at import time and
never mutated afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence

from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import Response

from api.access import AccessDecisionManager
from api.errors import localized, problem_response
from api.models import LoginRequest
from auth.csrf import CsrfTokenRepository
from auth.models import Principal, SecurityContext
from auth.sessions import SECURITY_CONTEXT_KEY, SessionStore
from auth.store import UserStore
from auth.tokens import authenticate_user
from core.config import Settings, get_settings

logger = logging.getLogger("blog.auth")

CallNext = Callable[[Request], Awaitable[Response]]
Filter = Callable[[Request, CallNext], Awaitable[Response]]


class FilterChain:
    """Runs filters in list order, then hands the request to call_next."""

    def __init__(self, filters: Sequence[Filter]) -> None:
        self.filters = tuple(filters)

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        async def dispatch(index: int, req: Request) -> Response:
            if index == len(self.filters):
                return await call_next(req)

            async def next_filter(r: Request) -> Response:
                return await dispatch(index + 1, r)

            return await self.filters[index](req, next_filter)

        return await dispatch(0, request)


def _no_store(response: Response) -> Response:
    response.headers["Cache-Control"] = "no-store"
    return response


# ---------------------------------------------------------------------------
# 1. CSRF validation
# ---------------------------------------------------------------------------


class CsrfFilter:
    """Attach a deferred token to the request and enforce the double-submit check."""

    def __init__(self, repository: CsrfTokenRepository) -> None:
        self.repository = repository

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        token = self.repository.load(request)
        request.state.csrf_token = token
        if self.repository.requires_check(request):
            reason = self.repository.failure_reason(request)
            if reason is not None:
                logger.warning("CSRF check failed (%s) on %s %s", reason, request.method, request.url.path)
                response = problem_response(request, 403, detail=localized(request, "error.csrf_invalid"))
                # A client with no cookie at all gets one to retry with.
                token.get()
                self._save_if_generated(token, response)
                return response
        response = await call_next(request)
        self._save_if_generated(token, response)
        return response

    def _save_if_generated(self, token, response: Response) -> None:
        if token.generated:
            self.repository.save(response, token.get())


# ---------------------------------------------------------------------------
# 2. Session resolution
# ---------------------------------------------------------------------------


class SessionFilter:
    """Load the SecurityContext for the session cookie, if any.

    An absent, unknown, or expired session id resolves to an empty
    (unauthenticated) context; the stale cookie is left alone.

    The principal's account is re-read on every request. A session whose
    user was disabled or deleted after login is invalidated and the request
    proceeds anonymously.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        store: SessionStore = request.app.state.session_store
        raw_id = request.cookies.get(self.settings.session_cookie_name)
        session = await run_in_threadpool(store.get, raw_id) if raw_id else None
        context = session.security_context if session is not None else SecurityContext()
        if context.is_authenticated and not await self._account_active(request, context.principal):
            logger.info("Session of inactive user %d invalidated", context.principal.user_id)
            await run_in_threadpool(store.invalidate, session.id)
            session = None
            context = SecurityContext()
        request.state.session_id = session.id if session is not None else None
        request.state.security_context = context
        return await call_next(request)

    async def _account_active(self, request: Request, principal: Principal) -> bool:
        user_store: UserStore = request.app.state.user_store
        user = await run_in_threadpool(user_store.get_by_id, principal.user_id)
        return user is not None and user.enabled


# ---------------------------------------------------------------------------
# 3. Logout
# ---------------------------------------------------------------------------


class LogoutFilter:
    """POST /logout: drop the server-side session and expire both cookies."""

    def __init__(self, settings: Settings, repository: CsrfTokenRepository) -> None:
        self.settings = settings
        self.repository = repository

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        if request.method != "POST" or request.url.path != self.settings.logout_path:
            return await call_next(request)

        context: SecurityContext = request.state.security_context
        if not context.is_authenticated:
            return problem_response(request, 401, detail=localized(request, "error.unauthorized"))

        store: SessionStore = request.app.state.session_store
        await run_in_threadpool(store.invalidate, request.state.session_id)
        request.state.session_id = None
        request.state.security_context = SecurityContext()

        response = Response(status_code=200)
        response.delete_cookie(
            self.settings.session_cookie_name,
            path="/",
            httponly=True,
            samesite="lax",
            secure=self.settings.secure_cookies,
        )
        self.repository.clear(response)
        logger.info("User %d logged out", context.principal.user_id)
        return response


# ---------------------------------------------------------------------------
# 4. JSON login
# ---------------------------------------------------------------------------


class JsonLoginFilter:
    """POST /login with a JSON body of {"username", "password"}.

    Success: rotate the session id, store the SecurityContext in the new
    session, set the session cookie, 200 with an empty body.

    Failure (unknown user, wrong password, disabled account, missing fields,
    unparseable body): one uniform 401. Nothing in the response says which.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        if request.method != "POST" or request.url.path != self.settings.login_path:
            return await call_next(request)

        credentials = await self._read_credentials(request)
        user_store: UserStore = request.app.state.user_store
        user = await run_in_threadpool(authenticate_user, user_store, credentials.username, credentials.password)
        if user is None:
            logger.info("Login failed from %s", request.client.host if request.client else "unknown")
            return _no_store(problem_response(request, 401, detail=localized(request, "error.bad_credentials")))

        principal = Principal.from_user(user)
        principal.erase_credentials()
        context = SecurityContext(principal=principal)

        store: SessionStore = request.app.state.session_store
        # Rotate even when the caller already holds a valid session.
        old_id = request.cookies.get(self.settings.session_cookie_name)
        session = await run_in_threadpool(store.rotate, old_id, {SECURITY_CONTEXT_KEY: context.to_dict()})
        request.state.session_id = session.id
        request.state.security_context = context

        response = Response(status_code=200)
        response.set_cookie(
            self.settings.session_cookie_name,
            value=session.id,
            path="/",
            httponly=True,
            samesite="lax",
            secure=self.settings.secure_cookies,
        )
        logger.info("User %d logged in (session rotated)", principal.user_id)
        return _no_store(response)

    async def _read_credentials(self, request: Request) -> LoginRequest:
        body = await request.body()
        try:
            return LoginRequest.model_validate_json(body or b"{}")
        except ValidationError:
            return LoginRequest(username="", password="")


# ---------------------------------------------------------------------------
# 5. CSRF cookie emission
# ---------------------------------------------------------------------------


async def csrf_cookie_filter(request: Request, call_next: CallNext) -> Response:
    """Materialize the deferred token so CsrfFilter writes the cookie if it was missing."""
    request.state.csrf_token.get()
    return await call_next(request)


# ---------------------------------------------------------------------------
# 6. Access decision
# ---------------------------------------------------------------------------


class AccessDecisionFilter:
    """Reject anonymous requests to routes the rule table marks as protected."""

    def __init__(self, manager: AccessDecisionManager) -> None:
        self.manager = manager

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        context: SecurityContext = request.state.security_context
        if not context.is_authenticated and self.manager.requires_authentication(request.method, request.url.path):
            return problem_response(request, 401, detail=localized(request, "error.unauthorized"))
        return await call_next(request)


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def build_security_chain(settings: Settings | None = None) -> FilterChain:
    """Assemble the filters in their fixed order."""
    settings = settings or get_settings()
    repository = CsrfTokenRepository(settings)
    return FilterChain(
        [
            CsrfFilter(repository),
            SessionFilter(settings),
            LogoutFilter(settings, repository),
            JsonLoginFilter(settings),
            csrf_cookie_filter,
            AccessDecisionFilter(AccessDecisionManager()),
        ]
    )
