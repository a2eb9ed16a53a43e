"""
client/errors.py -- Client-side error taxonomy.

classify_error() is the only place that inspects a raw exception's shape
(HTTP status, timeout, connection failure). Retry decisions and user-facing
messages both go through it, so they can never disagree about what kind of
failure occurred.
"""

from __future__ import annotations

from enum import Enum

import requests


class ErrorKind(str, Enum):
    AUTH_FAILURE = "auth_failure"
    NETWORK_ERROR = "network_error"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"


ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.AUTH_FAILURE: "Your session is not valid. Please log in.",
    ErrorKind.NETWORK_ERROR: "Could not reach the server. Check your connection.",
    ErrorKind.SERVER_ERROR: "The server encountered an error. Please try again later.",
    ErrorKind.UNKNOWN: "An unexpected error occurred.",
}

_RETRYABLE = frozenset({ErrorKind.NETWORK_ERROR, ErrorKind.SERVER_ERROR})


def classify_error(exc: BaseException) -> ErrorKind:
    """Map a raw exception from an API call onto ErrorKind."""
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        status = exc.response.status_code
        if status in (401, 403):
            return ErrorKind.AUTH_FAILURE
        if status >= 500:
            return ErrorKind.SERVER_ERROR
        return ErrorKind.UNKNOWN
    if isinstance(exc, requests.JSONDecodeError):
        return ErrorKind.UNKNOWN
    if isinstance(exc, (requests.Timeout, requests.ConnectionError)):
        return ErrorKind.NETWORK_ERROR
    if isinstance(exc, requests.RequestException):
        # No response object: the request never completed.
        return ErrorKind.NETWORK_ERROR if exc.response is None else ErrorKind.UNKNOWN
    return ErrorKind.UNKNOWN


def is_retryable(exc: BaseException) -> bool:
    return classify_error(exc) in _RETRYABLE


class CircuitOpenError(Exception):
    """A navigation was refused because the redirect circuit breaker is open.

    retry_after is the remaining cooldown in seconds. The breaker can be
    closed early with RedirectCircuitBreaker.reset_circuit().
    """

    def __init__(self, message: str, retry_after: float) -> None:
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after
