"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- AppError subclasses → 400, 404, 410, 429, 500, 503
- Request validation failures → 400 invalid_request (same envelope)
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id and the retryable label
- Rate limit hints in error details are mirrored as X-RateLimit-* headers
"""

import logging
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.errors import (
    AppError,
    CorruptDataAppError,
    ExpiredAppError,
    NotFoundAppError,
    RateLimitedAppError,
    StoreUnavailableAppError,
)
from app.core.logging import get_request_id
from app.core.rate_limit import headers_from_details

logger = logging.getLogger(__name__)


def _route_template(request: Request) -> str:
    """Matched route template; concrete paths can carry a note identifier."""
    return getattr(request.scope.get("route"), "path", None) or "unmatched"


def status_code_for(exc: AppError) -> int:
    """Map a domain error to its HTTP status code.

    - ValidationAppError (and unknown subclasses) → 400 Bad Request
    - NotFoundAppError → 404 Not Found
    - ExpiredAppError → 410 Gone (existed, no longer available)
    - RateLimitedAppError → 429 Too Many Requests
    - CorruptDataAppError → 500 Internal Server Error (server fault)
    - StoreUnavailableAppError → 503 Service Unavailable (retryable)
    """
    if isinstance(exc, NotFoundAppError):
        return 404
    if isinstance(exc, ExpiredAppError):
        return 410
    if isinstance(exc, RateLimitedAppError):
        return 429
    if isinstance(exc, CorruptDataAppError):
        return 500
    if isinstance(exc, StoreUnavailableAppError):
        return 503
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    All responses include:
    - error.code: Machine-readable error code
    - error.message: Human-readable message
    - error.retryable: Whether retrying later can succeed
    - error.request_id: For distributed tracing
    - error.details: Optional structured context

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = status_code_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "retryable": exc.retryable,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        }
    )

    # Build response with consistent structure
    error_content = {
        "code": exc.code,
        "message": exc.message,
        "retryable": exc.retryable,
        "request_id": get_request_id(),
    }

    # Include details only if present (optional structured context)
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers_from_details(exc.details) or None,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render malformed request bodies/params in the standard error envelope.

    Only field locations are echoed back; submitted values (which may include
    note text) are never included in the response or the log.
    """
    fields = sorted({".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()})

    logger.warning(
        "request_validation_failed",
        extra={
            "route": _route_template(request),
            "fields": fields,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": "invalid_request",
                "message": "Request is missing required fields or has fields of the wrong type.",
                "retryable": False,
                "request_id": get_request_id(),
                "details": {"context": {"fields": fields}},
            }
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the exception type and route template only; the concrete path and the
    exception text may carry a note identifier. Clients get a generic message.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "route": _route_template(request),
            "request_method": request.method,
            "request_id": get_request_id(),
        }
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "retryable": True,
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Must be called during app initialization, before route registration.
    Order matters: specific handlers registered before general fallback.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(Exception)(general_exception_handler)
