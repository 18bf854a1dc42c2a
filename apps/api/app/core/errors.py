"""Error handling and exception management.

Defines the API error hierarchy raised by the service layer and the global
exception handlers that turn those errors into the JSON error envelope.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import DatabaseError, IntegrityError

from app.core.otel_metrics import emit_error

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors.

    Attributes:
        status_code: HTTP status code
        error_code: Application-specific error code
        message: Human-readable error message
        details: Optional additional error details
    """

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationAPIError(APIError):
    """Validation error with detailed field information."""

    def __init__(
        self,
        message: str = "Validation error",
        errors: list[dict[str, Any]] | None = None,
    ):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            error_code="validation_error",
            message=message,
            details={"errors": errors or []},
        )


class NotFoundError(APIError):
    """Resource not found error."""

    def __init__(self, resource: str, identifier: str | None = None):
        message = f"{resource} not found"
        if identifier:
            message += f": {identifier}"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="not_found",
            message=message,
            details={"resource": resource, "identifier": identifier},
        )


class ConflictError(APIError):
    """Request conflicts with the current state of a resource."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="conflict",
            message=message,
            details=details or {},
        )


class SessionStateError(ConflictError):
    """Import session is in a state that does not allow the operation."""

    def __init__(self, session_id: Any, current_status: str, action: str):
        self.current_status = current_status
        super().__init__(
            message=f"Cannot {action} import session in status '{current_status}'",
            details={
                "session_id": str(session_id),
                "status": current_status,
                "action": action,
            },
        )


class UnauthorizedError(APIError):
    """Unauthorized access error."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="unauthorized",
            message=message,
        )


class ForbiddenError(APIError):
    """Forbidden access error."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="forbidden",
            message=message,
        )


def format_error_response(
    error: Exception,
    request: Request,
    include_details: bool = False,
) -> dict[str, Any]:
    """Build the error envelope returned by every handler.

    Args:
        error: The exception that occurred
        request: FastAPI request object
        include_details: Whether to include detailed error information

    Returns:
        Dictionary with error response structure
    """
    request_id = getattr(request.state, "request_id", None)

    if isinstance(error, APIError):
        body: dict[str, Any] = {
            "code": error.error_code,
            "message": error.message,
            "request_id": request_id,
        }
        if error.details or include_details:
            body["details"] = error.details
        return {"error": body}

    if isinstance(error, (RequestValidationError, ValidationError)):
        return {
            "error": {
                "code": "validation_error",
                "message": "Validation failed",
                "request_id": request_id,
                "details": {
                    "errors": [
                        {
                            "field": ".".join(str(loc) for loc in err.get("loc", [])),
                            "message": err.get("msg", "Invalid value"),
                            "type": err.get("type", "validation_error"),
                        }
                        for err in error.errors()
                    ]
                },
            }
        }

    body = {
        "code": "internal_error",
        "message": "An internal error occurred",
        "request_id": request_id,
    }
    if include_details:
        body["details"] = {"type": type(error).__name__, "message": str(error)}
    return {"error": body}


def _record_error(request: Request, error_code: str, status_code: int) -> None:
    emit_error(
        error_code=error_code,
        status_code=status_code,
        path=request.url.path,
        method=request.method,
    )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions."""
    request_id = getattr(request.state, "request_id", None)

    logger.warning(
        f"API error: {exc.error_code} - {exc.message}",
        extra={
            "request_id": request_id,
            "error_code": exc.error_code,
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    _record_error(request, exc.error_code, exc.status_code)

    return JSONResponse(
        status_code=exc.status_code,
        content=format_error_response(exc, request, include_details=True),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request body/query validation errors."""
    request_id = getattr(request.state, "request_id", None)

    # Client errors, not bugs
    logger.info(
        f"Validation error: {str(exc)}",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
        },
    )
    _record_error(request, "validation_error", status.HTTP_422_UNPROCESSABLE_CONTENT)

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=format_error_response(exc, request, include_details=True),
    )


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    """Handle database errors."""
    request_id = getattr(request.state, "request_id", None)

    logger.error(
        f"Database error: {str(exc)}",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
        },
        exc_info=True,
    )
    _record_error(request, "database_error", status.HTTP_500_INTERNAL_SERVER_ERROR)

    message = "A database error occurred"
    if isinstance(exc, IntegrityError):
        message = "Database integrity constraint violated"

    body: dict[str, Any] = {
        "code": "database_error",
        "message": message,
        "request_id": request_id,
    }
    # Don't expose database details in production
    if getattr(request.app.state, "debug", False):
        body["details"] = {"type": type(exc).__name__, "message": str(exc)}

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": body},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    request_id = getattr(request.state, "request_id", None)

    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
        },
        exc_info=True,
    )
    _record_error(request, "internal_error", status.HTTP_500_INTERNAL_SERVER_ERROR)

    include_details = getattr(request.app.state, "debug", False)
    response_data = format_error_response(exc, request, include_details=include_details)
    if include_details:
        response_data["error"]["details"]["traceback"] = traceback.format_exc().split("\n")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=response_data,
    )


def setup_error_handlers(app: FastAPI, debug: bool = False) -> None:
    """Register global exception handlers.

    Args:
        app: FastAPI application instance
        debug: Whether to include detailed error information
    """
    app.state.debug = debug

    # Most specific first
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
    app.add_exception_handler(IntegrityError, database_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
