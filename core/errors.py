"""
core/errors.py -- Server-side error taxonomy.

Every failure the auth flow can produce is one of these classes. Each carries
the HTTP status the API layer renders it with, so route handlers raise and
api/main.py's exception handlers do the translation into the JSON envelope.

InvalidToken and UserNotFound deliberately share a status and a public
message: a client must not be able to tell which check rejected it.

Layer rule: core/ is the kernel. No imports from api/, auth/ or client/.
"""

from __future__ import annotations

UNAUTHORIZED_MESSAGE = "Unauthorized request."


class ReadivineError(Exception):
    """Base class. `message` is safe to show to API clients."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str = "", errors: list | None = None) -> None:
        self.message = message or self.__class__.__doc__.strip().splitlines()[0]
        self.errors = errors or []
        super().__init__(self.message)


class ConfigError(ReadivineError):
    """Server configuration is missing or invalid."""

    status_code = 500
    code = "config_error"


class UpstreamError(ReadivineError):
    """The identity provider or GitHub API call failed."""

    status_code = 502
    code = "upstream_error"

    def __init__(
        self,
        message: str = "",
        provider_status: int | None = None,
        provider_message: str | None = None,
        code: str = "upstream_error",
    ) -> None:
        super().__init__(message)
        self.provider_status = provider_status
        self.provider_message = provider_message
        self.code = code


class InvalidToken(ReadivineError):
    """Session token is missing, malformed, expired or wrongly signed."""

    status_code = 401
    code = "unauthorized"


class UserNotFound(ReadivineError):
    """Session token is valid but its user no longer exists."""

    status_code = 401
    code = "unauthorized"


class BadRequest(ReadivineError):
    """A required input is missing."""

    status_code = 400
    code = "bad_request"


class InternalError(ReadivineError):
    """An internal invariant failed."""

    status_code = 500
    code = "internal_error"


class NotFound(ReadivineError):
    """The requested record does not exist."""

    status_code = 404
    code = "not_found"
