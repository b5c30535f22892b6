"""Deferred batch dispatch.

Requests issued while the client is in queue mode are stored in a
:class:`PendingQueue` under a caller-chosen name instead of being sent.
:meth:`QueueExecutor.flush` later realises the whole queue:

1. Requests already in the cache are answered from it.
2. The rest are sent as one concurrent batch (at most 25 in flight).
3. Each completion is mapped and stored under its queue name. Successful
   GET results are written back to the cache, and so are GET responses
   with status 422, which the API returns consistently for the same input.

Completions are matched to names through the descriptor's ``queue_name``
correlation token. Per-request failures never abort the flush; they show
up as ``{"error": ...}`` values in the result.
"""

from __future__ import annotations

from typing import Any, Iterator, Optional

import httpx

from fluentrest.cache import RequestCache
from fluentrest.exceptions import FluentRestError
from fluentrest.mapper import ResponseMapper, Success
from fluentrest.models import RequestDescriptor
from fluentrest.output import debug
from fluentrest.transport import MAX_POOL_SIZE, Transport


class PendingQueue:
    """Named requests waiting for :meth:`QueueExecutor.flush`.

    Names are unique; putting a request under an existing name replaces
    the earlier request, which is then never dispatched.
    """

    def __init__(self) -> None:
        self._items: dict[str, RequestDescriptor] = {}

    def put(self, name: str, request: RequestDescriptor) -> None:
        if request.queue_name != name:
            request = request.model_copy(update={"queue_name": name})
        self._items[name] = request

    def snapshot(self) -> dict[str, RequestDescriptor]:
        return dict(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, name: object) -> bool:
        return name in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)


class QueueExecutor:
    """Executes a :class:`PendingQueue` as one concurrent batch.

    Args:
        transport: Transport used for dispatch.
        cache: Cache consulted before dispatch and written after it.
        mapper: Maps each completed response.
        max_concurrency: Ceiling on simultaneous in-flight requests.
    """

    def __init__(
        self,
        transport: Transport,
        cache: RequestCache,
        mapper: ResponseMapper,
        max_concurrency: int = MAX_POOL_SIZE,
    ) -> None:
        self._transport = transport
        self._cache = cache
        self._mapper = mapper
        self._max_concurrency = max_concurrency

    def flush(self, queue: PendingQueue) -> dict[str, Any]:
        """Realise every request in *queue* and empty it.

        Returns:
            A mapping with one entry per queued name, in queue order. Values
            are ``{"body": ..., "headers": ...}`` for successes (including
            cache hits) and ``{"error": ...}`` for failures.
        """
        pending = queue.snapshot()
        ready: dict[str, Any] = {}
        to_dispatch: list[RequestDescriptor] = []

        for name, request in pending.items():
            cached = self._cache.peek(request)
            if cached is not None:
                ready[name] = cached
            else:
                to_dispatch.append(request)

        debug(f"Flushing queue: {len(ready)} cached, {len(to_dispatch)} to dispatch")

        def on_complete(request: RequestDescriptor, response: httpx.Response) -> None:
            result = self._mapper.map(response, request)
            payload = result.to_payload()
            ready[_name_of(request)] = payload
            if isinstance(result, Success):
                self._cache.save(request, payload)

        def on_error(
            request: RequestDescriptor,
            response: Optional[httpx.Response],
            fault: Optional[FluentRestError],
        ) -> None:
            name = _name_of(request)
            if response is None:
                ready[name] = {"error": fault.message if fault is not None else "Request failed"}
                return
            ready[name] = {"error": self._mapper.error_body(response)}
            if response.status_code == 422:
                self._cache.save(request, ready[name])

        try:
            self._transport.execute_all(
                to_dispatch, on_complete, on_error, max_concurrency=self._max_concurrency
            )
        finally:
            queue.clear()
        return {name: ready[name] for name in pending}


def _name_of(request: RequestDescriptor) -> str:
    if request.queue_name is None:
        raise FluentRestError(f"Queued request without a name: {request.method} {request.url}")
    return request.queue_name
