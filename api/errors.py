"""
api/errors.py -- RFC 7807 problem+json translation for every failure mode.

Dispatch table (condition -> status -> detail):

  RequestValidationError            400  "Invalid request content." + errors[]
  401 (filter or HTTPException)     401  error.unauthorized
  CSRF check failed (filter)        403  error.csrf_invalid
  UnauthorizedResourceAccessError   403  error.access_denied
  ResourceNotFoundError / 404       404  error.not_found
  any other HTTPException           its status, reason phrase as title
  anything else                     500  detail null

Titles are fixed English phrases. Details are localized from the request's
Accept-Language header via core/messages.py. `instance` is always the
request path.

Filters never raise; they call problem_response() directly. Route handlers
and services raise, and the handlers registered by
register_exception_handlers() catch. Exception is registered last, so
more specific handlers win and internal error text never reaches a client.

Usage:
    from api.errors import register_exception_handlers

    app = FastAPI()
    register_exception_handlers(app)
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import TYPE_CHECKING, Optional

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import FieldError, ProblemDetail, ValidationProblemDetail
from blog.errors import ResourceNotFoundError, UnauthorizedResourceAccessError
from core.config import get_settings
from core.messages import MESSAGES, get_message, resolve_locale

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = logging.getLogger("blog.api")

PROBLEM_MEDIA_TYPE = "application/problem+json"

# Titles that differ from the plain HTTP reason phrase.
_TITLES: dict[int, str] = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "NotFound",
    500: "Internal Server Error",
}

# Default detail message key per status, used when a raiser supplies none.
_DETAIL_KEYS: dict[int, str] = {
    400: "error.bad_request",
    401: "error.unauthorized",
    403: "error.access_denied",
    404: "error.not_found",
}


def problem_title(status: int) -> str:
    if status in _TITLES:
        return _TITLES[status]
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Error"


def request_locale(request: Request) -> str:
    return resolve_locale(request.headers.get("accept-language"), get_settings().default_locale)


def localized(request: Request, key: str) -> str:
    return get_message(key, request_locale(request))


def problem_response(
    request: Request,
    status: int,
    detail: Optional[str] = None,
    errors: Optional[list[FieldError]] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """Build a problem+json response for request.

    detail is already-resolved text (or None). Pass errors only for 400s; a
    non-None list switches the body to ValidationProblemDetail.
    """
    if errors is not None:
        problem: ProblemDetail = ValidationProblemDetail(
            title=problem_title(status),
            status=status,
            detail=detail,
            instance=request.url.path,
            errors=errors,
        )
    else:
        problem = ProblemDetail(
            title=problem_title(status),
            status=status,
            detail=detail,
            instance=request.url.path,
        )
    return JSONResponse(
        status_code=status,
        content=problem.model_dump(),
        media_type=PROBLEM_MEDIA_TYPE,
        headers=headers,
    )


def _pointer(loc: tuple) -> str:
    """("body", "title") -> "#/title". The leading source segment is dropped."""
    parts = [str(p) for p in loc]
    if parts and parts[0] in ("body", "query", "path", "header", "cookie"):
        parts = parts[1:]
    return "#/" + "/".join(parts)


def field_errors(request: Request, errors: list[dict]) -> list[FieldError]:
    """Map pydantic error dicts to FieldError entries with localized messages.

    Form validators use catalog keys as error types. Any other pydantic type
    falls back to the generic "missing" or "invalid" message, so pydantic's
    own English text never reaches the client.
    """
    locale = request_locale(request)
    result: list[FieldError] = []
    for err in errors:
        error_type = err.get("type", "")
        key = error_type if error_type in MESSAGES else "invalid"
        result.append(FieldError(pointer=_pointer(tuple(err.get("loc", ()))), detail=get_message(key, locale)))
    return result


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """400 with one errors[] entry per invalid field."""
    return problem_response(
        request,
        400,
        detail=localized(request, "error.bad_request"),
        errors=field_errors(request, list(exc.errors())),
    )


async def not_found_handler(request: Request, exc: ResourceNotFoundError) -> JSONResponse:
    return problem_response(request, 404, detail=localized(request, "error.not_found"))


async def access_denied_handler(request: Request, exc: UnauthorizedResourceAccessError) -> JSONResponse:
    return problem_response(request, 403, detail=localized(request, "error.access_denied"))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Problem body for HTTPException raised by routing or route handlers.

    A detail that names a message key is localized. Otherwise statuses with
    a default message key use it, and any other status passes its detail
    text (usually the reason phrase) through.
    """
    status = exc.status_code
    detail: Optional[str]
    if isinstance(exc.detail, str) and exc.detail in MESSAGES:
        detail = localized(request, exc.detail)
    elif status in _DETAIL_KEYS:
        detail = localized(request, _DETAIL_KEYS[status])
    else:
        detail = exc.detail if isinstance(exc.detail, str) else None
    return problem_response(request, status, detail=detail, headers=getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unanticipated faults.

    The exception is logged server-side only. The body carries exactly
    title, status, detail (null) and instance.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return problem_response(request, 500, detail=None)


def register_exception_handlers(app: FastAPI) -> None:
    """Register every handler on app. The Exception catch-all goes last."""
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(ResourceNotFoundError, not_found_handler)
    app.add_exception_handler(UnauthorizedResourceAccessError, access_denied_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
