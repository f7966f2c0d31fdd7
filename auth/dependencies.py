"""
auth/dependencies.py -- FastAPI Depends() helpers exposing the current principal.

The session filter (api/filters.py) resolves the session cookie once per
request and leaves the result on request.state.security_context. These
helpers only read that value; they never touch the session store.

try_get_current_principal() is the soft variant (returns None).
get_current_principal() wraps it and raises HTTP 401 if unauthenticated.
The access decision filter already rejects anonymous requests to protected
routes, so the 401 here only fires if a route is wired without a rule.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import Principal, SecurityContext


def try_get_current_principal(request: Request) -> Principal | None:
    context: SecurityContext | None = getattr(request.state, "security_context", None)
    if context is None:
        return None
    return context.principal


def get_current_principal(request: Request) -> Principal:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.post("/articles")
        async def route(principal: Principal = Depends(get_current_principal)): ...
    """
    principal = try_get_current_principal(request)
    if principal is None:
        raise HTTPException(status_code=401)
    return principal
