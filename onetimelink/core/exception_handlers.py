from __future__ import annotations

"""
Problem+JSON exception handlers (RFC 7807).

Registered by `onetimelink.main.create_app`. All HTTP errors are rendered as
application/problem+json with a stable schema; every error is logged with the
request id so it can be diagnosed without exposing internals to the client.
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from onetimelink.core.exceptions import AppException, RouteNotFoundException, ValidationException
from onetimelink.middleware.request_id import get_request_id

logger = logging.getLogger(__name__)


def _problem(exc: AppException, request: Request) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_problem(instance=request.url.path, request_id=get_request_id(request) or None),
        media_type="application/problem+json",
        headers=getattr(exc, "headers", None),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:  # type: ignore
    if not isinstance(exc, AppException):
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        exc = AppException(detail, status_code=exc.status_code, headers=getattr(exc, "headers", None))
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc.message)
    return _problem(exc, request)


async def route_not_found_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:  # type: ignore
    if isinstance(exc, AppException):
        return await http_exception_handler(request, exc)
    logger.info("No route for %s %s", request.method, request.url.path)
    return _problem(RouteNotFoundException(), request)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # type: ignore
    # Malformed bodies (non-object JSON, non-string email) are client errors, reported as 400.
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    logger.warning("%s %s validation error: %s", request.method, request.url.path, errors)
    return _problem(ValidationException("Validation error", details=errors), request)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # type: ignore
    # Hide internals from clients; the traceback goes to the log.
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "type": "about:blank",
            "title": "Internal Server Error",
            "detail": "An unexpected error occurred.",
            "status": status.HTTP_500_INTERNAL_SERVER_ERROR,
            "instance": request.url.path,
            "request_id": get_request_id(request) or "N/A",
        },
        media_type="application/problem+json",
    )


def install_exception_handlers(app) -> None:
    """Register all handlers on the given FastAPI app."""
    app.add_exception_handler(status.HTTP_404_NOT_FOUND, route_not_found_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)


__all__ = [
    "http_exception_handler",
    "route_not_found_handler",
    "validation_exception_handler",
    "global_exception_handler",
    "install_exception_handlers",
]
