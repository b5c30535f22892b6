"""fluentrest -- a fluent client for one REST API, with batching and caching.

Requests are described with a chainable DSL, sent immediately or parked in a
named queue, and realised together by a concurrent flush. GET responses can
be cached by a canonical request fingerprint, and every response is mapped
onto a small typed error taxonomy.

Typical use::

    from fluentrest import Client, ClientConfig

    with Client(ClientConfig(token="s3cret", domain="shop.example.com")) as client:
        product = client.resource("products").show(42)

Modules:
    client: :class:`Client`, the orchestrator.
    builder: request building and the client working state.
    batch: pending queue and concurrent flush.
    cache: pluggable GET response caches.
    mapper: response to success/error mapping.
    transport: :mod:`httpx` based transport with header decorators.
    exceptions: exception hierarchy with exit-code mapping.
    app: Typer CLI entry point.
"""

from fluentrest.cache import DiskCache, MemoryCache, NoCache, RequestCache
from fluentrest.client import Client
from fluentrest.exceptions import (
    ApiError,
    FluentRestError,
    MissingResourceError,
    NotFoundError,
    RequestTimeoutError,
    TransportFault,
    UnauthorizedError,
    ValidationError,
)
from fluentrest.models import ClientConfig, RequestDescriptor
from fluentrest.transport import Transport

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "Client",
    "ClientConfig",
    "DiskCache",
    "FluentRestError",
    "MemoryCache",
    "MissingResourceError",
    "NoCache",
    "NotFoundError",
    "RequestCache",
    "RequestDescriptor",
    "RequestTimeoutError",
    "Transport",
    "TransportFault",
    "UnauthorizedError",
    "ValidationError",
]
