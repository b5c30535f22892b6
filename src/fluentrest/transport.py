"""HTTP transport on top of :mod:`httpx`.

:class:`Transport` is the only component that performs network I/O. It
offers two entry points:

- :meth:`Transport.execute` -- one blocking request over :class:`httpx.Client`.
- :meth:`Transport.execute_all` -- a batch of requests over
  :class:`httpx.AsyncClient`, with at most ``max_concurrency`` requests in
  flight. The call blocks until every request has completed or failed.

Both paths run the registered before-send decorators (auth token, domain,
language headers) and then apply the descriptor's own headers, so per-call
overrides always win. Network, redirect and URL failures are translated into
:class:`~fluentrest.exceptions.RequestTimeoutError` or
:class:`~fluentrest.exceptions.TransportFault`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any, Callable, Optional, Union

import httpx

from fluentrest.builder import flatten_query
from fluentrest.exceptions import FluentRestError, RequestTimeoutError, TransportFault
from fluentrest.hooks import BeforeSendHook, CompleteHook, HookContext, HookRunner
from fluentrest.models import RequestDescriptor
from fluentrest.output import get_output

MAX_POOL_SIZE = 25

_HTTPX_FAILURES = (httpx.HTTPError, httpx.InvalidURL)

HTTPTransport = Union[httpx.BaseTransport, httpx.AsyncBaseTransport]
CompleteCallback = Callable[[RequestDescriptor, httpx.Response], None]
ErrorCallback = Callable[[RequestDescriptor, Optional[httpx.Response], Optional[FluentRestError]], None]


class Transport:
    """Executes :class:`RequestDescriptor` objects.

    Args:
        timeout: Request timeout in seconds.
        verify_ssl: Verify TLS certificates.
        http_transport: Optional :mod:`httpx` transport passed to both the
            sync and async clients. Tests pass an :class:`httpx.MockTransport`.

    Example::

        transport = Transport(timeout=10)
        transport.add_before_send("token", header_decorator("X-Auth-Token", "s3cret"))
        response = transport.execute(descriptor)
    """

    def __init__(
        self,
        timeout: float = 30,
        verify_ssl: bool = True,
        http_transport: Optional[HTTPTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._http_transport = http_transport
        self._hooks = HookRunner()
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Hooks
    # ------------------------------------------------------------------ #

    def add_before_send(self, name: str, hook: BeforeSendHook) -> None:
        self._hooks.add_before_send(name, hook)

    def add_on_complete(self, hook: CompleteHook) -> None:
        self._hooks.add_on_complete(hook)

    # ------------------------------------------------------------------ #
    # Single requests
    # ------------------------------------------------------------------ #

    def execute(self, request: RequestDescriptor) -> httpx.Response:
        """Send one request and return the raw response, whatever its status.

        Raises:
            RequestTimeoutError: On a transport timeout.
            TransportFault: On any other network, redirect or URL failure.
        """
        ctx = self.prepare(request)
        get_output().debug(f"{ctx.method} {ctx.url}")
        try:
            response = self._sync_client().request(**self._request_kwargs(ctx))
        except _HTTPX_FAILURES as exc:
            raise _fault(exc) from exc
        self._complete(ctx, response)
        return response

    # ------------------------------------------------------------------ #
    # Batches
    # ------------------------------------------------------------------ #

    def execute_all(
        self,
        requests: list[RequestDescriptor],
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
        max_concurrency: int = MAX_POOL_SIZE,
    ) -> None:
        """Send *requests* concurrently and report each outcome.

        ``on_complete(request, response)`` is called for responses with a
        status below 400. ``on_error(request, response, fault)`` is called
        for 4xx/5xx responses (``fault`` is ``None``) and for network
        failures (``response`` is ``None``). Callbacks may run in any order.

        Must not be called from inside a running event loop.
        """
        if not requests:
            return
        get_output().debug(
            f"Dispatching {len(requests)} request(s), max {max_concurrency} in flight"
        )
        asyncio.run(self._execute_all(requests, on_complete, on_error, max_concurrency))

    async def _execute_all(
        self,
        requests: list[RequestDescriptor],
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
        max_concurrency: int,
    ) -> None:
        semaphore = asyncio.Semaphore(max(1, max_concurrency))
        async with self._async_client() as client:
            await asyncio.gather(
                *(
                    self._dispatch(client, semaphore, request, on_complete, on_error)
                    for request in requests
                )
            )

    async def _dispatch(
        self,
        client: httpx.AsyncClient,
        semaphore: asyncio.Semaphore,
        request: RequestDescriptor,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
    ) -> None:
        ctx = self.prepare(request)
        async with semaphore:
            try:
                response = await client.request(**self._request_kwargs(ctx))
            except _HTTPX_FAILURES as exc:
                on_error(request, None, _fault(exc))
                return
        self._complete(ctx, response)
        if response.status_code >= 400:
            on_error(request, response, None)
        else:
            on_complete(request, response)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def prepare(self, request: RequestDescriptor) -> HookContext:
        """Build the outgoing :class:`HookContext` for *request*."""
        ctx = HookContext(
            method=request.method,
            url=request.url,
            headers={"Accept": "application/json"},
            params=flatten_query(request.query),
            body=request.body,
            queue_name=request.queue_name,
        )
        self._hooks.run_before_send(ctx)
        ctx.headers.update(request.headers)
        return ctx

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _complete(self, ctx: HookContext, response: httpx.Response) -> None:
        ctx.status_code = response.status_code
        ctx.response_headers = dict(response.headers)
        self._hooks.run_on_complete(ctx)

    def _request_kwargs(self, ctx: HookContext) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "method": ctx.method,
            "url": ctx.url,
            "headers": ctx.headers,
            "params": ctx.params,
        }
        if isinstance(ctx.body, (Mapping, list)):
            if ctx.body:
                kwargs["json"] = ctx.body
        elif isinstance(ctx.body, (str, bytes)):
            kwargs["content"] = ctx.body
        elif ctx.body is not None:
            kwargs["json"] = ctx.body
        return kwargs

    def _sync_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self._timeout,
                verify=self._verify_ssl,
                follow_redirects=True,
                transport=self._http_transport,  # type: ignore[arg-type]
            )
        return self._client

    def _async_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            verify=self._verify_ssl,
            follow_redirects=True,
            transport=self._http_transport,  # type: ignore[arg-type]
        )


def _fault(exc: Exception) -> FluentRestError:
    if isinstance(exc, httpx.TimeoutException):
        return RequestTimeoutError(f"Request timed out: {exc}")
    if isinstance(exc, httpx.TransportError):
        return TransportFault(f"Connection failed: {exc}")
    return TransportFault(f"Request failed: {exc}")
