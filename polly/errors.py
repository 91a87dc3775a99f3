"""
Typed application errors.

Errors are raised where the failure is detected, carrying their type and the
HTTP status the API answers with. ``classify_error`` folds foreign exceptions
(pydantic, SQLAlchemy, network) into the same shape by exception class.
"""

import enum
import logging
import traceback
from datetime import datetime, timezone
from typing import Optional

from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError

logger = logging.getLogger(__name__)


class ErrorType(str, enum.Enum):
    AUTHENTICATION = "AUTHENTICATION"
    AUTHORIZATION = "AUTHORIZATION"
    VALIDATION = "VALIDATION"
    NETWORK = "NETWORK"
    DATABASE = "DATABASE"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMIT = "RATE_LIMIT"
    UNKNOWN = "UNKNOWN"


DEFAULT_USER_MESSAGES = {
    ErrorType.AUTHENTICATION: "Please sign in to continue",
    ErrorType.AUTHORIZATION: "You do not have permission to perform this action",
    ErrorType.VALIDATION: "Please check your input and try again",
    ErrorType.NETWORK: "Network error. Please check your connection and try again",
    ErrorType.DATABASE: "A database error occurred. Please try again later",
    ErrorType.NOT_FOUND: "The requested resource was not found",
    ErrorType.RATE_LIMIT: "Too many requests. Please wait a moment before trying again",
    ErrorType.UNKNOWN: "An unexpected error occurred. Please try again",
}

ERROR_TITLES = {
    ErrorType.AUTHENTICATION: "Authentication Required",
    ErrorType.AUTHORIZATION: "Access Denied",
    ErrorType.VALIDATION: "Invalid Input",
    ErrorType.NETWORK: "Connection Error",
    ErrorType.NOT_FOUND: "Not Found",
    ErrorType.RATE_LIMIT: "Too Many Requests",
}


def error_title(error_type: ErrorType) -> str:
    return ERROR_TITLES.get(error_type, "Something Went Wrong")


class AppError(Exception):
    """Base error with a type, an HTTP status and a message safe to show users."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.UNKNOWN,
        status_code: int = 500,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.user_message = user_message or DEFAULT_USER_MESSAGES[error_type]

    def to_dict(self) -> dict:
        return {"success": False, "error": self.user_message}


class AuthenticationRequired(AppError):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, ErrorType.AUTHENTICATION, 401)


class AuthorizationDenied(AppError):
    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "Permission denied", ErrorType.AUTHORIZATION, 403, user_message=message)


class ValidationFailed(AppError):
    """Input rejected; ``field`` names the offending form field."""

    def __init__(self, field: str, message: str):
        super().__init__(message, ErrorType.VALIDATION, 400, user_message=message)
        self.field = field


class NotFound(AppError):
    def __init__(self, resource: str, message: Optional[str] = None):
        message = message or f"{resource.capitalize()} not found"
        super().__init__(message, ErrorType.NOT_FOUND, 404, user_message=message)
        self.resource = resource


class Conflict(AppError):
    """A write refused by a data invariant (duplicate vote, closed poll, ...)."""

    def __init__(self, reason: str):
        super().__init__(reason, ErrorType.DATABASE, 409, user_message=reason)
        self.reason = reason


# Where FastAPI found a bad request value; not part of the field name
_REQUEST_LOCATIONS = {"body", "query", "path", "header", "cookie"}


def validation_failed(error) -> ValidationFailed:
    """First pydantic error as a ``ValidationFailed`` naming its field."""
    errors = error.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if not isinstance(part, int)]
    if isinstance(error, RequestValidationError) and loc and loc[0] in _REQUEST_LOCATIONS:
        loc = loc[1:]
    field = loc[0] if loc else "form"
    # Messages raised by our own validators come through ctx without pydantic's prefix
    ctx_error = (first.get("ctx") or {}).get("error")
    message = str(ctx_error) if ctx_error else first.get("msg", "Invalid input")
    return ValidationFailed(field, message)


def classify_error(error: BaseException) -> AppError:
    """Map any exception onto an ``AppError``."""
    if isinstance(error, AppError):
        return error

    if isinstance(error, (ValidationError, RequestValidationError)):
        return validation_failed(error)

    if isinstance(error, IntegrityError):
        return AppError(str(error.orig), ErrorType.DATABASE, 409)

    if isinstance(error, (OperationalError, TimeoutError, ConnectionError)):
        return AppError(str(error), ErrorType.NETWORK, 503)

    return AppError(str(error) or "An unknown error occurred", ErrorType.UNKNOWN, 500)


def handle_server_error(error: BaseException) -> AppError:
    """Classify ``error`` and log a structured record of it."""
    app_error = classify_error(error)
    record = {
        "message": app_error.message,
        "type": app_error.error_type.value,
        "status_code": app_error.status_code,
        "stack": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if app_error.status_code >= 500:
        logger.error("Server error: %s", record)
    else:
        logger.info("Request rejected: %s", {k: v for k, v in record.items() if k != "stack"})
    return app_error


def require_user(user):
    """Return ``user``, or refuse the request when nobody is signed in."""
    if user is None:
        raise AuthenticationRequired()
    return user
