"""Exception hierarchy for fluentrest.

All exceptions inherit from :class:`FluentRestError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`fluentrest.exit_codes`.
Library callers catch the specific subclasses; the CLI entry point in
:func:`fluentrest.app.main` catches ``FluentRestError`` and exits with the
matching code.

Subclass hierarchy::

    FluentRestError (exit 1)
    +-- MissingResourceError  (exit 2)
    +-- UnauthorizedError     (exit 3)
    +-- NotFoundError         (exit 4)
    +-- ApiError              (exit 5)
    +-- TransportFault        (exit 6)
    +-- ValidationError       (exit 7)
    +-- RequestTimeoutError   (exit 8)
    +-- ConfigError           (exit 1)
"""

from __future__ import annotations

from typing import Any, Optional

from fluentrest.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
    EXIT_TIMEOUT,
    EXIT_VALIDATION_ERROR,
)


class FluentRestError(Exception):
    """Base exception for all fluentrest errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code


class MissingResourceError(FluentRestError):
    """Raised when a request is built before a resource was selected."""

    exit_code = EXIT_INVALID_USAGE

    def __init__(self, message: str = "Must provide a resource"):
        super().__init__(message)


class UnauthorizedError(FluentRestError):
    """Raised when the API answers 401, either as status or as in-body code."""

    exit_code = EXIT_AUTH_FAILURE
    status = 401


class NotFoundError(FluentRestError):
    """Raised when the API answers 404."""

    exit_code = EXIT_NOT_FOUND
    status = 404


class RequestTimeoutError(FluentRestError):
    """Raised on HTTP 408 and on transport-level timeouts."""

    exit_code = EXIT_TIMEOUT
    status = 408


class ValidationError(FluentRestError):
    """Raised when the API rejects the request parameters (HTTP 422).

    Args:
        message: The ``message`` field of the response body.
        errors: The ``errors`` field of the response body, usually a
            mapping of field name to a list of messages.
    """

    exit_code = EXIT_VALIDATION_ERROR
    status = 422

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Any = None,
    ) -> None:
        super().__init__(message or "The request parameters are invalid")
        self.errors = errors if errors is not None else {}


class ApiError(FluentRestError):
    """Catch-all for responses that could not be decoded or mapped.

    Args:
        message: Diagnostic text (method, URL, request body and the API's
            own error description or the raw response body).
        status: The HTTP status code, or the in-body code for 200 responses.
    """

    exit_code = EXIT_SERVER_ERROR

    def __init__(self, message: str, status: int = 0) -> None:
        super().__init__(message)
        self.status = status


class TransportFault(FluentRestError):
    """Raised on network-level failures (DNS resolution, connection refused)."""

    exit_code = EXIT_CONNECTION_ERROR


class ConfigError(FluentRestError):
    """Raised for configuration problems (invalid JSON, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE
