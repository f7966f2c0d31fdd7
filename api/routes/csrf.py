"""
api/routes/csrf.py -- CSRF token issuing endpoints.

Routes:
  GET /             -- 204, primes the XSRF-TOKEN cookie
  GET /csrf-cookie  -- 204, primes the XSRF-TOKEN cookie

Both are public. The cookie itself is written by the CSRF filter on the way
out; reading the deferred token here is what makes it generate one when the
request carried none.
"""

from fastapi import APIRouter, Request, Response

router = APIRouter()


@router.get("/", status_code=204, include_in_schema=False)
async def index(request: Request) -> Response:
    request.state.csrf_token.get()
    return Response(status_code=204)


@router.get("/csrf-cookie", status_code=204)
async def csrf_cookie(request: Request) -> Response:
    """Ensure the caller holds an XSRF-TOKEN cookie. No body."""
    request.state.csrf_token.get()
    return Response(status_code=204)
