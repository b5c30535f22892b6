"""Fluent REST client with queueing and response caching.

This module provides :class:`Client`, the orchestrator of the package. It
layers on top of :class:`~fluentrest.transport.Transport`:

- **Fluent DSL** -- ``resource()``, ``set_param()`` and ``header()``
  accumulate working state for the next request.
- **Verb surface** -- ``get``, ``show``, ``store``, ``update``, ``delete``,
  ``options``, ``copy``, ``patch``, ``bulk`` and the compound ``upsert``
  all build a request and funnel it through :meth:`Client.send`.
- **Queue modes** -- a request either runs immediately or is parked under a
  name until :meth:`Client.flush` runs the whole queue concurrently.
- **Response caching** -- immediate GET requests go through
  :meth:`~fluentrest.cache.RequestCache.run`.
- **Error mapping** -- every response is mapped by
  :class:`~fluentrest.mapper.ResponseMapper`.

Working state is reset after every send and after every flush, so options
set for one call never leak into the next one.

Example::

    with Client(ClientConfig(token="s3cret")) as client:
        products = client.resource("products").set_param("limit", 10).get()

        client.using_queue("first").resource("products").show(1)
        client.using_queue("second").resource("products").show(2)
        results = client.flush()
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Optional

import httpx

from fluentrest.batch import PendingQueue, QueueExecutor
from fluentrest.builder import (
    ClientState,
    RequestBuilder,
    WorkingState,
    merge_recursive,
    require_resource,
)
from fluentrest.cache import NoCache, RequestCache
from fluentrest.exceptions import ValidationError
from fluentrest.hooks import header_decorator
from fluentrest.mapper import ErrorReporter, ResponseMapper
from fluentrest.models import ClientConfig, HTTPMethod, RequestDescriptor
from fluentrest.output import debug
from fluentrest.transport import MAX_POOL_SIZE, Transport


class Client:
    """Fluent client for one REST API.

    Args:
        config: Base URL, auth headers, timeouts and default resource.
            Defaults to :class:`~fluentrest.models.ClientConfig` defaults.
        transport: Transport to send requests with. Built from
            ``config.request`` when omitted.
        cache: Response cache. Defaults to :class:`~fluentrest.cache.NoCache`.
        default_resource: Resource restored after every send; overrides
            ``config.default_resource``.
        domain: Host sent as ``X-Auth-Domain``; overrides ``config.domain``.
        error_reporter: Optional callable that receives generic
            :class:`~fluentrest.exceptions.ApiError` instances.
        max_concurrency: Ceiling on in-flight requests during :meth:`flush`.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        transport: Optional[Transport] = None,
        cache: Optional[RequestCache] = None,
        default_resource: Optional[str] = None,
        domain: Optional[str] = None,
        error_reporter: Optional[ErrorReporter] = None,
        max_concurrency: int = MAX_POOL_SIZE,
    ) -> None:
        self._config = config or ClientConfig()
        self._transport = transport or Transport(
            timeout=self._config.request.timeout,
            verify_ssl=self._config.request.verify_ssl,
        )
        self._cache = (cache if cache is not None else NoCache()).bind(self._transport)
        self._mapper = ResponseMapper(error_reporter)
        self._builder = RequestBuilder(self._config.base_url)
        self._default_resource = (
            default_resource if default_resource is not None else self._config.default_resource
        )
        self._state = WorkingState(resource=self._default_resource)
        self._queue = PendingQueue()
        self._queue_key: Optional[str] = None
        self._executor = QueueExecutor(
            self._transport, self._cache, self._mapper, max_concurrency=max_concurrency
        )

        domain = domain or self._config.domain
        if domain:
            self.set_domain(domain)
        if self._config.token:
            self.set_token(self._config.token)
        if self._config.language:
            self.set_language(self._config.language)

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        self._transport.close()
        self._cache.close()

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    def set_token(self, token: str) -> Client:
        """Send *token* as ``X-Auth-Token`` on every request."""
        self._transport.add_before_send("token", header_decorator("X-Auth-Token", token))
        return self

    def set_domain(self, domain: str) -> Client:
        """Send *domain* as ``X-Auth-Domain`` on every request."""
        self._transport.add_before_send("domain", header_decorator("X-Auth-Domain", domain))
        return self

    def set_language(self, language: str) -> Client:
        """Send *language* as ``Accept-Language`` on every request."""
        self._transport.add_before_send(
            "language", header_decorator("Accept-Language", language)
        )
        return self

    def set_url(self, url: str) -> Client:
        self._builder.base_url = url
        return self

    @property
    def base_url(self) -> str:
        return self._builder.base_url

    @property
    def cache(self) -> RequestCache:
        return self._cache

    @property
    def transport(self) -> Transport:
        return self._transport

    # ------------------------------------------------------------------ #
    # Working state
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> ClientState:
        return self._state.state

    @property
    def params(self) -> dict[str, Any]:
        """A copy of the dynamic parameters collected so far."""
        return dict(self._state.params)

    @property
    def current_resource(self) -> str:
        return self._state.resource

    def resource(self, name: str) -> Client:
        """Select the resource targeted by the next request."""
        self._state.resource = name
        self._state.touch()
        return self

    def get_resource(self) -> str:
        """Return the current resource.

        Raises:
            MissingResourceError: If no resource is selected.
        """
        return require_resource(self._state)

    def set_param(self, name: str, value: Any) -> Client:
        """Record a dynamic parameter for the next request. Last value wins."""
        self._state.params[name] = value
        self._state.touch()
        return self

    param = set_param

    def set_params(self, params: Mapping[str, Any]) -> Client:
        for name, value in params.items():
            self.set_param(name, value)
        return self

    def header(self, name: str, value: str) -> Client:
        """Add a header to the next request only."""
        self._state.headers[name] = value
        self._state.touch()
        return self

    def reset(self) -> Client:
        """Clear resource, params and header overrides."""
        self._state.reset(self._default_resource)
        return self

    # ------------------------------------------------------------------ #
    # Queue modes
    # ------------------------------------------------------------------ #

    def queue(self, name: str, callback: Callable[[Client], Any]) -> Client:
        """Build a request inside *callback* and park it under *name*."""
        self.using_queue(name)
        callback(self)
        return self

    def using_queue(self, name: Optional[str]) -> Client:
        """Park subsequent requests under *name*. ``None`` returns to immediate mode."""
        self._queue_key = name
        return self

    def reset_queue(self) -> Client:
        self._queue_key = None
        return self

    def is_using_queue(self) -> bool:
        return bool(self._queue_key)

    def pending(self) -> dict[str, RequestDescriptor]:
        """Snapshot of the requests waiting for :meth:`flush`."""
        return self._queue.snapshot()

    def queue_get(self, name: str) -> Any:
        """Shorthand for ``get({}, name)``."""
        return self.get({}, name)

    def flush(self) -> dict[str, Any]:
        """Run every pending request concurrently and return results by name.

        Never raises for individual request failures; see
        :meth:`~fluentrest.batch.QueueExecutor.flush` for the result shape.
        Afterwards the client is back in immediate mode.
        """
        try:
            return self._executor.flush(self._queue)
        finally:
            self.reset_queue()
            self.reset()

    # ------------------------------------------------------------------ #
    # Verbs
    # ------------------------------------------------------------------ #

    def authenticate(self, username: str, password: str) -> Any:
        """POST credentials to ``<base>/auth``."""
        url = self._builder.url("auth")
        body = {"username": username, "password": password}
        return self.send(HTTPMethod.POST, url, {"body": body}, cache=False)

    def get(
        self,
        query: Optional[Mapping[str, Any]] = None,
        queue_name: Optional[str] = None,
        cache: bool = True,
    ) -> Any:
        """GET the current resource collection."""
        url = self._builder.resource_url(self._state)
        return self.send(HTTPMethod.GET, url, {"query": self._merged(query)}, queue_name, cache)

    def get_skip_cache(
        self,
        query: Optional[Mapping[str, Any]] = None,
        queue_name: Optional[str] = None,
    ) -> Any:
        return self.get(query, queue_name, cache=False)

    def show(
        self,
        id: Any,
        query: Optional[Mapping[str, Any]] = None,
        queue_name: Optional[str] = None,
        cache: bool = True,
    ) -> Any:
        """GET a single record of the current resource."""
        url = self._builder.resource_url(self._state, id)
        return self.send(HTTPMethod.GET, url, {"query": self._merged(query)}, queue_name, cache)

    def show_skip_cache(
        self,
        id: Any,
        query: Optional[Mapping[str, Any]] = None,
        queue_name: Optional[str] = None,
    ) -> Any:
        return self.show(id, query, queue_name, cache=False)

    def store(
        self,
        body: Any = None,
        queue_name: Optional[str] = None,
        cache: bool = False,
    ) -> Any:
        """POST a new record. Raw (non-mapping) bodies are sent unchanged."""
        url = self._builder.resource_url(self._state)
        return self.send(HTTPMethod.POST, url, {"body": self._body(body)}, queue_name, cache)

    def store_skip_cache(self, body: Any = None, queue_name: Optional[str] = None) -> Any:
        return self.store(body, queue_name, cache=False)

    def update(self, id: Any, body: Any = None, queue_name: Optional[str] = None) -> Any:
        """PUT a record."""
        url = self._builder.resource_url(self._state, id)
        return self.send(HTTPMethod.PUT, url, {"body": self._body(body)}, queue_name)

    def upsert(
        self,
        unique: Mapping[str, Any],
        body: Any,
        resolve_id: Callable[[Any], Any],
    ) -> Any:
        """Update the record matching *unique*, or store a new one.

        Looks up records with ``get(unique)`` (always immediately, even in
        queue mode), passes the result to *resolve_id*, restores the
        resource, params and headers that were set before the lookup, then
        calls :meth:`update` when *resolve_id* returned an id and
        :meth:`store` otherwise.
        """
        saved = self._state.snapshot()
        queue_key = self._queue_key
        self._queue_key = None
        try:
            result = self.get(unique)
        finally:
            self._queue_key = queue_key

        existing_id = resolve_id(result)
        self._state.restore(saved)

        if existing_id:
            return self.update(existing_id, body)
        return self.store(body)

    def delete(
        self,
        id: Any,
        body: Optional[Mapping[str, Any]] = None,
        queue_name: Optional[str] = None,
    ) -> Any:
        url = self._builder.resource_url(self._state, id)
        return self.send(HTTPMethod.DELETE, url, {"body": self._merged(body)}, queue_name)

    def options(self, queue_name: Optional[str] = None) -> Any:
        url = self._builder.resource_url(self._state)
        return self.send(HTTPMethod.OPTIONS, url, {}, queue_name)

    def copy(
        self,
        id: Any,
        query: Optional[Mapping[str, Any]] = None,
        queue_name: Optional[str] = None,
    ) -> Any:
        url = self._builder.resource_url(self._state, id)
        return self.send(HTTPMethod.COPY, url, {"query": self._merged(query)}, queue_name)

    def patch(
        self,
        id: Any,
        body: Optional[Mapping[str, Any]] = None,
        queue_name: Optional[str] = None,
    ) -> Any:
        url = self._builder.resource_url(self._state, id)
        return self.send(HTTPMethod.PATCH, url, {"body": self._merged(body)}, queue_name)

    def bulk(self, items: list[Any], queue_name: Optional[str] = None) -> Any:
        """POST many records at once to ``<resource>/_bulk``."""
        url = self._builder.resource_url(self._state, "_bulk")
        return self.send(HTTPMethod.POST, url, {"body": self._merged({"bulk": items})}, queue_name)

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #

    def send(
        self,
        method: str,
        url: str,
        options: Optional[Mapping[str, Any]] = None,
        queue_name: Optional[str] = None,
        cache: bool = True,
    ) -> Any:
        """Build a request and run it now or park it in the queue.

        Args:
            method: HTTP method, including custom verbs.
            url: Full request URL.
            options: ``query``, ``body`` and ``headers`` for the request.
            queue_name: Park the request under this name and return the
                whole pending queue. An empty name means no legacy queueing.
            cache: Allow the cache to answer / store an immediate GET.

        Returns:
            The pending queue snapshot when *queue_name* is given, ``None``
            in named-queue mode, else the mapped response body.

        Raises:
            FluentRestError: A subclass describing the failed response or
                network fault, in immediate mode only.
        """
        options = dict(options or {})
        headers = {**options.get("headers", {}), **self._state.headers}
        method = method.value if isinstance(method, HTTPMethod) else method.upper()
        name = queue_name or self._queue_key or None

        self._state.mark_sent()
        request = self._builder.build(
            method,
            url,
            query=options.get("query"),
            body=options.get("body"),
            headers=headers,
            resource=self._state.resource,
            queue_name=name,
        )

        if queue_name:
            self._queue.put(queue_name, request)
            debug(f"Queued {request.method} {request.queued_url}")
            self.reset()
            return self._queue.snapshot()

        if self.is_using_queue():
            self._queue.put(name, request)
            debug(f"Queued {request.method} {request.queued_url}")
            self.reset()
            return None

        try:
            return _unwrap(self._cache.run(request, self._fallback, cache))
        finally:
            self.reset()

    def _fallback(self, response: httpx.Response, request: RequestDescriptor) -> dict[str, Any]:
        return {
            "body": self._mapper.handle(response, request),
            "headers": dict(response.headers),
        }

    def _merged(self, values: Optional[Mapping[str, Any]]) -> dict[str, Any]:
        return merge_recursive(self._state.params, values or {})

    def _body(self, body: Any) -> Any:
        if body is None or isinstance(body, Mapping):
            return self._merged(body)
        return body


def _unwrap(payload: Mapping[str, Any]) -> Any:
    """Body of a cached or fresh payload.

    A batch flush caches GET 422 responses as ``{"error": <body>}``; such an
    entry is raised again as a :class:`ValidationError`.
    """
    if "body" in payload:
        return payload["body"]
    error = payload.get("error")
    if isinstance(error, Mapping):
        raise ValidationError(error.get("message"), error.get("errors"))
    raise ValidationError(str(error) if error else None)
