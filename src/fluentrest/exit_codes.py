"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~fluentrest.exceptions.FluentRestError` subclass.
Shell scripts driving the ``fluentrest`` CLI can inspect the exit code to
tell a rejected token from a missing record without parsing stderr.

Example::

    $ fluentrest show products 42
    $ echo $?
    4   # EXIT_NOT_FOUND -- the record does not exist
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or without a resource."""

EXIT_AUTH_FAILURE = 3
"""The API rejected the auth token or domain (HTTP 401)."""

EXIT_NOT_FOUND = 4
"""The requested record or resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The API returned a status or body that could not be mapped."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (DNS failure, connection refused)."""

EXIT_VALIDATION_ERROR = 7
"""The API rejected the request parameters (HTTP 422)."""

EXIT_TIMEOUT = 8
"""The request timed out (HTTP 408 or a transport timeout)."""
