"""
auth/csrf.py -- Double-submit cookie CSRF token management.

The token lives in a JS-readable cookie (XSRF-TOKEN by default). A browser
client copies it into the X-XSRF-TOKEN header on every state-changing
request; a cross-site attacker can make the browser send the cookie but
cannot read it, so it cannot forge the header.

Tokens are lazy. The CSRF filter hands every request a DeferredCsrfToken.
Reading it (get()) returns the cookie value if the request carried one,
otherwise generates a new token and marks the deferred token as generated;
the filter then writes the cookie on the response. A request that never reads
the token produces no Set-Cookie.

Tokens are not single-use and are not rotated per request or on login. They
stay valid until the cookie is cleared on logout.

Layer rule: no imports from api/ or blog/. Starlette is used only for the
Request/Response types passed in by the filter.
"""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import Response

from auth.tokens import generate_csrf_token, tokens_match
from core.config import Settings, get_settings

# Methods that never change server state and so never need a token.
SAFE_METHODS: frozenset[str] = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})

MISSING_COOKIE = "missing_cookie"
MISSING_HEADER = "missing_header"
MISMATCH = "mismatch"


class DeferredCsrfToken:
    """A CSRF token that is only materialized when something reads it."""

    def __init__(self, existing: str | None) -> None:
        self._value = existing or None
        self.generated = False

    def get(self) -> str:
        if self._value is None:
            self._value = generate_csrf_token()
            self.generated = True
        return self._value

    @property
    def existing(self) -> str | None:
        """The value sent by the client, or None if it sent none."""
        return None if self.generated else self._value


class CsrfTokenRepository:
    """Loads, saves, and clears the CSRF cookie."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    @property
    def cookie_name(self) -> str:
        return self.settings.csrf_cookie_name

    @property
    def header_name(self) -> str:
        return self.settings.csrf_header_name

    def load(self, request: Request) -> DeferredCsrfToken:
        return DeferredCsrfToken(request.cookies.get(self.cookie_name))

    def save(self, response: Response, token: str) -> None:
        """Write the token cookie.

        httponly=False: the client's JS must read it to echo it in the header.
        No max_age: a browser-session cookie, like the session cookie.
        """
        response.set_cookie(
            self.cookie_name,
            value=token,
            path="/",
            httponly=False,
            samesite="lax",
            secure=self.settings.secure_cookies,
        )

    def clear(self, response: Response) -> None:
        response.delete_cookie(
            self.cookie_name,
            path="/",
            httponly=False,
            samesite="lax",
            secure=self.settings.secure_cookies,
        )

    def requires_check(self, request: Request) -> bool:
        """True for state-changing methods on paths outside the exemption list."""
        if request.method.upper() in SAFE_METHODS:
            return False
        return request.url.path not in self.settings.csrf_exempt_paths

    def failure_reason(self, request: Request) -> str | None:
        """Return why the double-submit check fails, or None when it passes.

        Both values must be present and non-empty, and must be equal.
        """
        cookie_token = request.cookies.get(self.cookie_name)
        header_token = request.headers.get(self.header_name)
        if not cookie_token:
            return MISSING_COOKIE
        if not header_token:
            return MISSING_HEADER
        if not tokens_match(cookie_token, header_token):
            return MISMATCH
        return None
