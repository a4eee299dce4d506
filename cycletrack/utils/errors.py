"""
Standardized error response utilities.

Provides consistent error response format across the admin endpoints:
{
    "error": {
        "message": "User-friendly error message",
        "code": "ERROR_CODE"
    }
}

Usage:
    from cycletrack.utils.errors import error_response, ErrorCode

    return error_response("Shop not found", ErrorCode.SHOP_NOT_FOUND, 404)
"""
import logging
from enum import Enum
from flask import jsonify
from typing import Optional

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication & Authorization (401, 403)
    AUTH_REQUIRED = "AUTH_REQUIRED"
    SHOP_INACTIVE = "SHOP_INACTIVE"
    APP_NOT_INSTALLED = "APP_NOT_INSTALLED"

    # Not Found (404)
    NOT_FOUND = "NOT_FOUND"
    SHOP_NOT_FOUND = "SHOP_NOT_FOUND"

    # Conflict (409)
    SYNC_ALREADY_RUNNING = "SYNC_ALREADY_RUNNING"

    # Server Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


def error_response(
    message: str,
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    status_code: int = 500,
    log_error: bool = True,
    details: Optional[dict] = None
) -> tuple:
    """
    Create a standardized error response.

    Args:
        message: User-friendly error message
        code: Error code from ErrorCode enum
        status_code: HTTP status code
        log_error: Whether to log the error
        details: Optional additional details (only logged, not returned to user)

    Returns:
        Tuple of (response, status_code) for Flask
    """
    if log_error and status_code >= 500:
        logger.error(f"API Error [{code}]: {message}", extra={"details": details})
    elif log_error and status_code >= 400:
        logger.warning(f"API Error [{code}]: {message}", extra={"details": details})

    response = {
        "error": {
            "message": message,
            "code": code.value if isinstance(code, ErrorCode) else code
        }
    }

    return jsonify(response), status_code


def unauthorized(message: str = "Authentication required", code: ErrorCode = ErrorCode.AUTH_REQUIRED) -> tuple:
    """401 Unauthorized error."""
    return error_response(message, code, 401, log_error=False)


def forbidden(message: str, code: ErrorCode) -> tuple:
    """403 Forbidden error."""
    return error_response(message, code, 403, log_error=False)


def not_found(message: str, code: ErrorCode = ErrorCode.NOT_FOUND) -> tuple:
    """404 Not Found error."""
    return error_response(message, code, 404, log_error=False)


def conflict(message: str, code: ErrorCode = ErrorCode.SYNC_ALREADY_RUNNING) -> tuple:
    """409 Conflict error."""
    return error_response(message, code, 409, log_error=False)
