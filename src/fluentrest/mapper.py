"""Response mapping -- turns raw HTTP responses into success payloads or typed errors.

The API signals errors in two ways: through the HTTP status code, or through
a ``{"code": ..., "message": ...}`` body on a 200 response. Both are folded
into the same result by :func:`resolve`, a pure function of the status code
and the decoded body:

====================  ===================================================
Status                Result
====================  ===================================================
401                   :class:`~fluentrest.exceptions.UnauthorizedError`
404                   :class:`~fluentrest.exceptions.NotFoundError`
408                   :class:`~fluentrest.exceptions.RequestTimeoutError`
422                   :class:`~fluentrest.exceptions.ValidationError`
200                   body, or the in-body ``code`` mapped as above
204                   body, or ``None`` when empty or undecodable
anything else         :class:`~fluentrest.exceptions.ApiError`
====================  ===================================================

Whether a failure is raised or returned as ``{"error": message}`` is decided
by the caller through the ``throw`` argument of :meth:`ResponseMapper.handle`.
A 204 with an undecodable body and a 200 carrying an unmapped in-body code
still succeed, but their diagnostic is handed to the error reporter.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

import httpx

from fluentrest.exceptions import (
    ApiError,
    FluentRestError,
    NotFoundError,
    RequestTimeoutError,
    UnauthorizedError,
    ValidationError,
)
from fluentrest.models import RequestDescriptor

ErrorReporter = Callable[[ApiError], None]

UNDECODABLE: Any = object()
"""Marker for a body that is not valid JSON."""

_STATUS_ERRORS: dict[int, type[FluentRestError]] = {
    401: UnauthorizedError,
    404: NotFoundError,
    408: RequestTimeoutError,
}


@dataclass(frozen=True)
class Success:
    """A mapped 2xx response.

    ``diagnostic`` is set when the response succeeded despite an anomaly
    worth reporting. It does not take part in equality.
    """

    body: Any
    headers: dict[str, str] = field(default_factory=dict)
    diagnostic: Optional[ApiError] = field(default=None, compare=False)

    def to_payload(self) -> dict[str, Any]:
        return {"body": self.body, "headers": self.headers}


@dataclass(frozen=True)
class Failure:
    """A mapped error response."""

    error: FluentRestError

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.error.message}


MappedResponse = Union[Success, Failure]


def decode_json(response: httpx.Response) -> Any:
    """Return the decoded JSON body of *response*, or :data:`UNDECODABLE`."""
    try:
        return response.json()
    except ValueError:
        return UNDECODABLE


def resolve(status: int, data: Any, describe: Callable[[], str]) -> MappedResponse:
    """Map a status code and decoded body to a :class:`Success` or :class:`Failure`.

    Args:
        status: HTTP status code, or the in-body ``code`` of a 200 response.
        data: Decoded JSON body, or :data:`UNDECODABLE`.
        describe: Produces the diagnostic message for generic errors and
            reported anomalies. Not called for cleanly mapped responses.
    """
    if status in _STATUS_ERRORS:
        return Failure(_STATUS_ERRORS[status](_status_message(status, data)))

    if status == 422:
        if not isinstance(data, Mapping):
            return Failure(ApiError(describe(), status))
        return Failure(ValidationError(data.get("message"), data.get("errors")))

    if status == 200:
        if data is UNDECODABLE:
            return Failure(ApiError(describe(), status))
        code = _in_body_code(data)
        if code in _STATUS_ERRORS or code == 422:
            return resolve(code, data, describe)
        if code is not None:
            return Success(data, diagnostic=ApiError(describe(), code))
        return Success(data)

    if status == 204:
        if data is UNDECODABLE:
            return Success(None, diagnostic=ApiError(describe(), status))
        return Success(data)

    return Failure(ApiError(describe(), status))


def _in_body_code(data: Any) -> Optional[int]:
    if not isinstance(data, Mapping) or "message" not in data:
        return None
    code = data.get("code")
    if isinstance(code, bool):
        return None
    if isinstance(code, int):
        return code
    if isinstance(code, str) and code.strip().isdigit():
        return int(code)
    return None


def _status_message(status: int, data: Any) -> str:
    msg = ""
    if isinstance(data, Mapping):
        msg = str(data.get("message") or data.get("error") or "")
    return f"HTTP {status}: {msg}" if msg else f"HTTP {status}"


class ResponseMapper:
    """Maps :class:`httpx.Response` objects for a given request.

    Args:
        error_reporter: Optional callable receiving every generic
            :class:`~fluentrest.exceptions.ApiError` before it is raised or
            returned, e.g. to log it or render a diagnostic page. It also
            receives the diagnostic of a successful response that was
            reported rather than failed.
    """

    def __init__(self, error_reporter: Optional[ErrorReporter] = None) -> None:
        self._error_reporter = error_reporter

    def map(self, response: httpx.Response, request: RequestDescriptor) -> MappedResponse:
        """Map *response* to a :class:`Success` or :class:`Failure`."""
        if response.status_code == 204 and not response.content:
            data: Any = None
        else:
            data = decode_json(response)

        result = resolve(
            response.status_code,
            data,
            lambda: self.describe(response, request, data),
        )
        if isinstance(result, Success):
            if result.diagnostic is not None:
                self._report(result.diagnostic)
            return Success(result.body, dict(response.headers), result.diagnostic)
        if isinstance(result.error, ApiError):
            self._report(result.error)
        return result

    def _report(self, error: ApiError) -> None:
        if self._error_reporter is not None:
            self._error_reporter(error)

    def handle(
        self,
        response: httpx.Response,
        request: RequestDescriptor,
        throw: bool = True,
    ) -> Any:
        """Return the success body, or raise / return the mapped error.

        Args:
            response: The raw response.
            request: The request that produced it.
            throw: Raise the error when ``True``; otherwise return
                ``{"error": message}``.

        Raises:
            FluentRestError: A subclass matching the response, when *throw*
                is ``True``.
        """
        result = self.map(response, request)
        if isinstance(result, Success):
            return result.body
        if throw:
            raise result.error
        return result.to_payload()

    @staticmethod
    def error_body(response: httpx.Response) -> Any:
        """The decoded JSON body of a failed response, or its raw text."""
        data = decode_json(response)
        if data is UNDECODABLE:
            return response.text
        return data

    @staticmethod
    def describe(
        response: httpx.Response,
        request: RequestDescriptor,
        data: Any = UNDECODABLE,
    ) -> str:
        """Diagnostic text for a response that could not be mapped."""
        head = f"{request.method} {_effective_url(response, request)}\n{_request_body(request)}"
        if isinstance(data, Mapping):
            return (
                f"{head}\n\n{data.get('code', '')} {data.get('message', '')}\n"
                f"{data.get('description', '')}"
            )
        return f"{head}\n\nResponse Body:\n\n{response.text}"


def _effective_url(response: httpx.Response, request: RequestDescriptor) -> str:
    try:
        return str(response.url)
    except RuntimeError:
        return request.url


def _request_body(request: RequestDescriptor) -> str:
    if request.body is None:
        return ""
    if isinstance(request.body, (str, bytes)):
        return request.body.decode() if isinstance(request.body, bytes) else request.body
    return json.dumps(request.body, default=str)
