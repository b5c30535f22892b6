"""Cache abstraction for GET responses.

:class:`RequestCache` owns the cache-or-fetch logic shared by every backend:

- :meth:`RequestCache.run` -- return a stored value, or execute the request,
  map it with the caller's fallback and store the result.
- :meth:`RequestCache.peek` -- read-only lookup used to split a batch into
  cached and to-be-dispatched requests.
- :meth:`RequestCache.save` -- direct write used by the batch executor.

Keys are SHA-1 hashes of ``METHOD~scheme~host~path~query`` where the query
is flattened and sorted, so two requests that differ only in parameter
insertion order share an entry. Only GET requests are ever written.

Backends implement :meth:`~RequestCache.get`, :meth:`~RequestCache.remember`
and :meth:`~RequestCache.get_tags`.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional
from urllib.parse import parse_qsl, urlencode

import httpx

from fluentrest.builder import flatten_query
from fluentrest.models import RequestDescriptor
from fluentrest.output import debug

if TYPE_CHECKING:
    from fluentrest.transport import Transport

Fallback = Callable[[httpx.Response, RequestDescriptor], Any]


class RequestCache(ABC):
    """Base class for response caches."""

    _transport: Optional[Transport] = None

    def bind(self, transport: Transport) -> RequestCache:
        """Attach the transport :meth:`run` executes requests against."""
        self._transport = transport
        return self

    def run(
        self,
        request: RequestDescriptor,
        fallback: Fallback,
        cache_enabled: bool = True,
    ) -> Any:
        """Return the cached value for *request* or fetch and store it.

        When *cache_enabled* is ``False`` or the request is not a GET, the
        request is executed once and the cache is neither read nor written.
        Exceptions raised by *fallback* propagate and nothing is stored.
        """
        if not cache_enabled or request.method != "GET":
            return fallback(self._execute(request), request)

        key = self.make_key(request)
        data = self.get(key)
        if data is not None:
            debug(f"Cache hit: {request.method} {request.url}")
            return data

        data = fallback(self._execute(request), request)
        return self.remember(key, data, self.get_tags(request))

    def peek(self, request: RequestDescriptor, default: Any = None) -> Any:
        """Look up *request* without executing anything."""
        return self.get(self.make_key(request), default)

    def save(self, request: RequestDescriptor, value: Any) -> Any:
        """Store *value* for *request*. Non-GET requests are ignored."""
        if request.method != "GET":
            return value
        return self.remember(self.make_key(request), value, self.get_tags(request))

    @staticmethod
    def make_key(request: RequestDescriptor) -> str:
        """Canonical fingerprint of *request*."""
        url = request.parsed_url
        pairs = parse_qsl(url.query.decode(), keep_blank_values=True)
        pairs.extend(flatten_query(request.query))
        raw = "~".join(
            [
                request.method.upper(),
                url.scheme,
                url.host,
                url.path,
                urlencode(sorted(pairs)),
            ]
        )
        return hashlib.sha1(raw.encode()).hexdigest()

    def _execute(self, request: RequestDescriptor) -> httpx.Response:
        assert self._transport is not None, "Cache not bound -- call bind(transport) first"
        return self._transport.execute(request)

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under *key*, or *default*."""

    @abstractmethod
    def remember(self, key: str, value: Any, tags: Iterable[str] = ()) -> Any:
        """Store *value* under *key* with *tags* and return it."""

    @abstractmethod
    def get_tags(self, request: RequestDescriptor) -> list[str]:
        """Invalidation tags for *request*."""

    def close(self) -> None:
        """Release backend resources."""


class NoCache(RequestCache):
    """Pass-through cache: every lookup misses and every write is discarded."""

    def get(self, key: str, default: Any = None) -> Any:
        return default

    def remember(self, key: str, value: Any, tags: Iterable[str] = ()) -> Any:
        return value

    def get_tags(self, request: RequestDescriptor) -> list[str]:
        return []


class TaggedCache(RequestCache):
    """Base for stored backends that support tag-based invalidation.

    Requests are tagged with their resource name, so
    ``cache.invalidate_tags(["products"])`` drops every cached response of
    the ``products`` resource.
    """

    def get_tags(self, request: RequestDescriptor) -> list[str]:
        return [request.resource] if request.resource else []

    @abstractmethod
    def invalidate_tags(self, tags: Iterable[str]) -> int:
        """Remove all entries carrying any of *tags*. Returns the count removed."""

    @abstractmethod
    def clear(self) -> None:
        """Remove all entries."""

    @abstractmethod
    def stats(self) -> dict[str, Any]:
        """Backend statistics (at least ``size``)."""
