"""Centralized exception handlers for the FastAPI application.

Application exceptions are mapped to HTTP status codes and rendered in the
standard envelope:

    {
        "status": "error",
        "message": "Human-readable error message",
        "errors": [{"field": ..., "message": ..., "value": ...}],
        "timestamp": "..."
    }
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chapter_dashboard.dto import error_payload
from chapter_dashboard.exceptions import (
    ChapterDashboardError,
    ErrorCode,
    RateLimitError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ERROR_CODE_TO_STATUS: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UPLOAD_FORMAT_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PAYLOAD_TOO_LARGE: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    ErrorCode.AUTHENTICATION_REQUIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.INVALID_CREDENTIALS: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.CACHE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def rate_limit_response(exc: RateLimitError) -> JSONResponse:
    """Render a 429. Also used by the rate-limit middleware directly."""
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=error_payload(exc.message, retry_after=exc.retry_after),
        headers={"Retry-After": str(exc.retry_after)},
    )


def error_response(exc: ChapterDashboardError) -> JSONResponse:
    if isinstance(exc, RateLimitError):
        return rate_limit_response(exc)

    errors = None
    if isinstance(exc, ValidationError) and exc.errors:
        errors = [error.to_dict() for error in exc.errors]
    return JSONResponse(
        status_code=ERROR_CODE_TO_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST),
        content=error_payload(exc.message, errors=errors),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI application.

    Parameters
    ----------
    app
        The FastAPI application instance
    """

    @app.exception_handler(ChapterDashboardError)
    async def application_exception_handler(
        request: Request,
        exc: ChapterDashboardError,
    ) -> JSONResponse:
        response = error_response(exc)
        log = logger.error if response.status_code >= 500 else logger.warning
        log(
            "%s on %s %s: %s (details=%s)",
            exc.code.value,
            request.method,
            request.url.path,
            exc.message,
            exc.details,
        )
        return response

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"] if part != "body") or "body",
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_payload("Validation failed", errors=errors),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            message = f"Route {request.url.path} not found"
        else:
            message = str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_payload("Internal server error"),
        )


__all__ = [
    "ERROR_CODE_TO_STATUS",
    "error_response",
    "rate_limit_response",
    "setup_exception_handlers",
]
