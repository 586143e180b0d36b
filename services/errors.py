"""Error types and user-facing messages for Civil Case API failures."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

logger = logging.getLogger("mycc.errors")

STATUS_MESSAGES = {
    400: "Invalid request. Please check your input and try again.",
    401: "Authentication failed. Please log in again.",
    403: "You do not have permission to access this resource.",
    404: "The requested information could not be found.",
    408: "Request timed out. Please try again.",
    429: "Too many requests. Please wait a moment and try again.",
    500: "Internal server error. Please try again later.",
    502: "Service temporarily unavailable. Please try again later.",
    503: "Service unavailable. Please try again later.",
    504: "Request timed out. Please try again later.",
}
CONNECT_ERROR_MESSAGE = "Unable to connect to the service. Please try again later."
TIMEOUT_MESSAGE = "Request timed out. Please try again."
FALLBACK_MESSAGE = "An unexpected error occurred. Please try again."


class CaseApiError(RuntimeError):
    """Raised when the Civil Case API returns an error or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthError(CaseApiError):
    """Raised when a bearer token cannot be obtained."""


class ProcessedError(RuntimeError):
    """An API failure carrying a user-facing message and the action that failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, context: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.context = context


def message_for_status(status: int) -> str:
    return STATUS_MESSAGES.get(status, f"Service error ({status}). Please try again later.")


def _message_from_body(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    for key in ("message", "detail"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def get_status_code(error: BaseException) -> Optional[int]:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    if isinstance(error, (CaseApiError, ProcessedError)):
        return error.status_code
    return None


def extract_error_message(error: BaseException) -> str:
    """Turn any API-related exception into a message safe to show a caseworker."""
    if isinstance(error, (CaseApiError, ProcessedError)):
        return error.message or FALLBACK_MESSAGE
    if isinstance(error, httpx.HTTPStatusError):
        return _message_from_body(error.response) or message_for_status(error.response.status_code)
    if isinstance(error, httpx.TimeoutException):
        return TIMEOUT_MESSAGE
    if isinstance(error, httpx.TransportError):
        return CONNECT_ERROR_MESSAGE
    text = str(error).strip()
    return text or FALLBACK_MESSAGE


def is_http_error(error: BaseException) -> bool:
    return get_status_code(error) is not None


def is_auth_error(error: BaseException) -> bool:
    return get_status_code(error) == 401


def is_forbidden_error(error: BaseException) -> bool:
    return get_status_code(error) == 403


def is_not_found_error(error: BaseException) -> bool:
    return get_status_code(error) == 404


def is_server_error(error: BaseException) -> bool:
    status = get_status_code(error)
    return status is not None and status >= 500


def create_processed_error(error: BaseException, context: str) -> ProcessedError:
    """Wrap an API failure for the error handler. A token failure keeps a 401 so the user is signed out."""
    if isinstance(error, ProcessedError):
        return error
    message = extract_error_message(error)
    status = 401 if isinstance(error, AuthError) else get_status_code(error)
    logger.error("Error %s: %s (status=%s)", context, message, status)
    return ProcessedError(message, status, context)
