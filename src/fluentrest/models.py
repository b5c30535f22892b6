"""Canonical Pydantic models shared across all fluentrest modules.

The models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`CacheConfig`, :class:`OutputConfig` and
    the top-level :class:`ClientConfig`.

**Request models** -- produced by :class:`~fluentrest.builder.RequestBuilder`
and consumed by the cache, the transport and the queue executor:
    :class:`HTTPMethod` and :class:`RequestDescriptor`.

All models use Pydantic v2.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BASE_URL = "https://api.komparu.com/v1"


# --- Config ---


class RequestConfig(BaseModel):
    """Default HTTP request settings applied to every API call."""

    timeout: float = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class CacheConfig(BaseModel):
    """Response cache settings."""

    backend: str = Field(
        default="none", description="Cache backend: none, memory, disk"
    )
    ttl_seconds: int = Field(default=300, description="Cache TTL in seconds")
    directory: Optional[str] = Field(
        default=None,
        description="Directory for the disk backend (defaults to the XDG cache dir)",
    )


class OutputConfig(BaseModel):
    """Default output format preferences for the CLI."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class ClientConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/fluentrest/config.json``.

    Loaded and saved by :func:`~fluentrest.config.load_config` and
    :func:`~fluentrest.config.save_config`. See
    :func:`~fluentrest.config.resolve_config` for the precedence chain.

    Example::

        ClientConfig(
            base_url="https://api.example.com/v1",
            token="secret",
            domain="shop.example.com",
        )
    """

    base_url: str = Field(default=DEFAULT_BASE_URL, description="API root URL")
    token: Optional[str] = Field(
        default=None, description="Value sent as the X-Auth-Token header"
    )
    domain: Optional[str] = Field(
        default=None, description="Value sent as the X-Auth-Domain header"
    )
    language: Optional[str] = Field(
        default=None, description="Value sent as the Accept-Language header"
    )
    default_resource: str = Field(
        default="", description="Resource restored after every send"
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Requests ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods used by the verb surface. Custom verbs are plain strings."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"
    COPY = "COPY"


class RequestDescriptor(BaseModel):
    """A fully built request. Never mutated after construction.

    Attributes:
        method: Upper-case HTTP method.
        url: Full URL without query string or fragment.
        query: Nested query mapping. Flattened with bracket notation when
            sent (see :func:`~fluentrest.builder.flatten_query`).
        body: Mapping (sent as JSON), raw payload, or ``None``.
        headers: Per-request headers. These win over transport decorators.
        resource: Resource the request was built for, used for cache tags.
        queue_name: Correlation token for queued requests, ``None`` for
            immediate requests.
    """

    model_config = ConfigDict(frozen=True)

    method: str
    url: str
    query: dict[str, Any] = Field(default_factory=dict)
    body: Any = None
    headers: dict[str, str] = Field(default_factory=dict)
    resource: str = ""
    queue_name: Optional[str] = None

    @property
    def queued_url(self) -> str:
        """The URL with the ``#<queue_name>`` disambiguator, for display only."""
        if self.queue_name is None:
            return self.url
        return f"{self.url}#{self.queue_name}"

    @property
    def parsed_url(self) -> httpx.URL:
        return httpx.URL(self.url)
