"""
Custom exceptions and error handlers for consistent error responses.

Every failure leaves the service as the envelope
``{"success": false, "error": {"code", "message", "details"?}}``.
"""

import logging
from functools import wraps
from typing import Any, Dict, List, Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from tripfleet.app.core.config import settings
from tripfleet.app.core.reliability import CircuitOpenError

logger = logging.getLogger("tripfleet.errors")

Details = Union[Dict[str, Any], List[Dict[str, Any]], None]


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Details = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            error_code="UNAUTHORIZED",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Details = None):
        super().__init__(
            message=message,
            error_code="FORBIDDEN",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found. Code is ``<RESOURCE>_NOT_FOUND``."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code=f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class QueryValidationError(AppException):
    """Raised when query parameters do not match the endpoint contract."""

    def __init__(self, details: List[Dict[str, Any]]):
        super().__init__(
            message="Invalid query parameters",
            error_code="INVALID_QUERY",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class ValidationFailedError(AppException):
    def __init__(self, message: str = "Validation failed", details: Details = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class InvalidDatesError(AppException):
    def __init__(self, message: str = "Arrival time must be after departure time"):
        super().__init__(message, "INVALID_DATES", status.HTTP_400_BAD_REQUEST)


class InvalidCapacityError(AppException):
    def __init__(self, message: str):
        super().__init__(message, "INVALID_CAPACITY", status.HTTP_400_BAD_REQUEST)


class InvalidStopSequenceError(AppException):
    def __init__(self, sequence: int, last_sequence: int):
        super().__init__(
            message=f"Stop sequence {sequence} must be greater than {last_sequence}",
            error_code="INVALID_STOP_SEQUENCE",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"sequence": sequence, "lastSequence": last_sequence}
        )


class InvalidActionError(AppException):
    def __init__(self, action: str):
        super().__init__(f"Unsupported action '{action}'", "INVALID_ACTION", status.HTTP_400_BAD_REQUEST)


class InvalidStatusTransitionError(AppException):
    def __init__(self, current: str, target: str):
        super().__init__(
            message=f"Cannot change trip status from {current} to {target}",
            error_code="INVALID_STATUS_TRANSITION",
            status_code=status.HTTP_409_CONFLICT,
            details={"currentStatus": current, "targetStatus": target}
        )


class CapacityExceededError(AppException):
    def __init__(self, requested: float, remaining: float):
        super().__init__(
            message=f"Requested {requested} kg exceeds remaining capacity of {remaining} kg",
            error_code="CAPACITY_EXCEEDED",
            status_code=status.HTTP_409_CONFLICT,
            details={"requested": requested, "remaining": remaining}
        )


class ConflictError(AppException):
    """State conflict with a specific code (DRIVER_UNAVAILABLE, VEHICLE_IN_USE, ...)."""

    def __init__(self, message: str, error_code: str):
        super().__init__(message, error_code, status.HTTP_409_CONFLICT)


class CollaboratorError(AppException):
    """A store or downstream dependency failed while serving the request."""

    def __init__(self, error_code: str, message: str, status_code: int = 500, details: Details = None):
        super().__init__(message, error_code, status_code, details)


_FAILURE_MESSAGES = {
    "FETCH_FAILED": "Failed to fetch data",
    "CREATION_FAILED": "Failed to create resource",
    "OPERATION_FAILED": "Operation failed",
}


def _is_network_failure(exc: BaseException) -> bool:
    if isinstance(exc, (CircuitOpenError, ConnectionError, TimeoutError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return isinstance(getattr(exc, "orig", None), (ConnectionError, TimeoutError))


def handle_collaborator_errors(failure_code: str = "FETCH_FAILED"):
    """
    Translate store failures raised inside an endpoint into envelope errors.

    Usage:
        @router.get("/trips")
        @handle_collaborator_errors("FETCH_FAILED")
        async def list_trips(...):
            ...

    AppExceptions pass through untouched. Connection-level failures and an
    open circuit become NETWORK_ERROR (503); other SQLAlchemy errors become
    ``failure_code`` (500). The reason is attached only outside production.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except AppException:
                raise
            except (SQLAlchemyError, CircuitOpenError, ConnectionError, TimeoutError) as exc:
                details = None if settings.is_production else {"reason": str(exc)}
                if _is_network_failure(exc):
                    logger.error("Network failure in %s: %s", func.__name__, exc, exc_info=True)
                    raise CollaboratorError(
                        "NETWORK_ERROR",
                        "Service temporarily unavailable",
                        status.HTTP_503_SERVICE_UNAVAILABLE,
                        details,
                    ) from exc
                logger.error("Store failure in %s: %s", func.__name__, exc, exc_info=True)
                raise CollaboratorError(
                    failure_code,
                    _FAILURE_MESSAGES.get(failure_code, "Operation failed"),
                    status.HTTP_500_INTERNAL_SERVER_ERROR,
                    details,
                ) from exc
        return wrapper
    return decorator


def error_body(code: str, message: str, details: Details = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"success": False, "error": error}


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.error_code, exc.message, exc.details),
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    error_code_map = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        500: "INTERNAL_SERVER_ERROR"
    }

    error_code = error_code_map.get(exc.status_code, "UNKNOWN_ERROR")

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(error_code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


def field_errors(errors) -> List[Dict[str, str]]:
    """Flatten pydantic errors to ``[{field, message}]``, dropping the location prefix."""
    fields = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        fields.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return fields


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for request body validation errors."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("VALIDATION_ERROR", "Validation error", field_errors(exc.errors()))
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception(
        "Unhandled exception on %s %s (correlation_id=%s)",
        request.method,
        request.url.path,
        getattr(request.state, "correlation_id", None),
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("INTERNAL_SERVER_ERROR", "An internal server error occurred")
    )
