"""Exception handlers turning errors into JSON responses.

Application errors (``HomefenceError``) and request validation failures use
the error envelope the dashboard reads:

    {
        "error": {
            "code": "MEMBER_NOT_FOUND",
            "message": "Member with id '...' not found",
            "details": {"member_id": "..."},
            "request_id": "a1b2c3d4",
            "timestamp": "2026-01-01T12:00:00+00:00"
        }
    }

Framework HTTP errors with no application meaning (unknown route, wrong
method) are answered as RFC 7807 problem details. Anything unexpected
becomes a 500 whose body reveals nothing about the failure.
"""

from __future__ import annotations

import html
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from homefence.api.schemas.problem_details import ProblemDetail, get_status_phrase
from homefence.core.exceptions import ExternalServiceError, HomefenceError
from homefence.core.logging import get_logger, sanitize_error
from homefence.core.time_utils import utc_now

logger = get_logger(__name__)

# Longest rejected input echoed back in a validation error
MAX_ECHOED_VALUE = 100


def get_request_id(request: Request) -> str | None:
    """Request id set by RequestIDMiddleware, else the raw header."""
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")


def _request_fields(request: Request) -> dict[str, Any]:
    return {"path": request.url.path, "method": request.method}


def error_envelope(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    *,
    details: dict[str, Any] | None = None,
    errors: list[dict[str, Any]] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the ``{"error": {...}}`` response."""
    body: dict[str, Any] = {"code": code, "message": message}
    if details:
        body["details"] = details
    if errors is not None:
        body["errors"] = errors
    request_id = get_request_id(request)
    if request_id:
        body["request_id"] = request_id
    body["timestamp"] = utc_now().isoformat()
    return JSONResponse(status_code=status_code, content={"error": body}, headers=headers)


async def homefence_exception_handler(request: Request, exc: HomefenceError) -> JSONResponse:
    fields = {**_request_fields(request), "error_code": exc.error_code}
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code}: {exc.message}", extra=fields, exc_info=exc)
    else:
        logger.info(f"{exc.status_code} {exc.error_code}: {exc.message}", extra=fields)

    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return error_envelope(
        request, exc.status_code, exc.error_code, exc.message, details=exc.details, headers=headers
    )


async def external_service_exception_handler(
    request: Request, exc: ExternalServiceError
) -> JSONResponse:
    """An unreachable dependency is an operating condition: warn, no traceback."""
    fields = {**_request_fields(request), "service": exc.service_name}
    cause = getattr(exc, "original_error", None)
    if cause is not None:
        fields["cause"] = sanitize_error(cause)
    service = exc.service_name or "external service"
    logger.warning(f"{service} unavailable: {exc.message}", extra=fields)
    return error_envelope(
        request, exc.status_code, exc.error_code, exc.message, details=exc.details
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """422 listing each offending field as ``body.email``, ``query.limit``..."""
    errors = []
    for error in exc.errors():
        value = error.get("input")
        errors.append(
            {
                "field": ".".join(str(part) for part in error.get("loc", ())) or "unknown",
                "message": error.get("msg", "Invalid value"),
                "value": None if value is None else str(value)[:MAX_ECHOED_VALUE],
            }
        )

    logger.info(
        f"Request validation failed ({len(errors)} error(s))", extra=_request_fields(request)
    )
    return error_envelope(
        request,
        422,
        "VALIDATION_ERROR",
        "Request validation failed",
        errors=errors,
    )


async def problem_details_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    title = get_status_phrase(exc.status_code)
    logger.info(f"HTTP {exc.status_code}: {exc.detail}", extra=_request_fields(request))
    problem = ProblemDetail(
        title=title,
        status=exc.status_code,
        detail=str(exc.detail) if exc.detail else title,
        # The path is client input
        instance=html.escape(request.url.path),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=exc.headers,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__}: {sanitize_error(exc)}",
        extra=_request_fields(request),
        exc_info=exc,
    )
    return error_envelope(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "An unexpected error occurred",
    )


def register_exception_handlers(app: FastAPI) -> None:
    # Starlette picks the handler of the nearest class in the MRO
    handlers: list[tuple[type[Exception], Any]] = [
        (ExternalServiceError, external_service_exception_handler),
        (HomefenceError, homefence_exception_handler),
        (RequestValidationError, validation_exception_handler),
        (StarletteHTTPException, problem_details_exception_handler),
        (Exception, generic_exception_handler),
    ]
    for exc_class, handler in handlers:
        app.add_exception_handler(exc_class, handler)
