"""Request building for the fluent client DSL.

This module holds the pieces :class:`~fluentrest.client.Client` uses to turn
its mutable working state into immutable
:class:`~fluentrest.models.RequestDescriptor` objects:

- :class:`WorkingState` -- resource, dynamic params and header overrides
  accumulated between two sends, plus the ``IDLE -> BUILDING -> SENT``
  state machine that governs when they are reset.
- :class:`RequestBuilder` -- joins the base URL, resource and id segments
  and deep-copies the merged options into a descriptor.
- :func:`merge_recursive` and :func:`flatten_query` -- option merging and
  the bracket-notation query encoding the API expects.
"""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

from fluentrest.exceptions import MissingResourceError
from fluentrest.models import RequestDescriptor


class ClientState(str, enum.Enum):
    """Lifecycle of the client's working state."""

    IDLE = "idle"
    BUILDING = "building"
    SENT = "sent"


@dataclass
class WorkingState:
    """Per-call state accumulated by the fluent setters.

    Attributes:
        resource: Resource name targeted by the next request.
        params: Dynamic parameters, last write wins per key.
        headers: Header overrides for the next request only.
        state: Current :class:`ClientState`.
    """

    resource: str = ""
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    state: ClientState = ClientState.IDLE

    def touch(self) -> None:
        """Mark the state as being built. No-op while a send is in progress."""
        if self.state == ClientState.IDLE:
            self.state = ClientState.BUILDING

    def mark_sent(self) -> None:
        self.state = ClientState.SENT

    def reset(self, default_resource: str = "") -> None:
        """Return to a clean ``IDLE`` state."""
        self.resource = default_resource
        self.params = {}
        self.headers = {}
        self.state = ClientState.IDLE

    def snapshot(self) -> WorkingState:
        return WorkingState(
            resource=self.resource,
            params=copy.deepcopy(self.params),
            headers=dict(self.headers),
            state=self.state,
        )

    def restore(self, saved: WorkingState) -> None:
        self.resource = saved.resource
        self.params = copy.deepcopy(saved.params)
        self.headers = dict(saved.headers)
        self.state = saved.state


def merge_recursive(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge *override* into a copy of *base*.

    Nested mappings present on both sides are merged key by key; any other
    value in *override* replaces the one in *base* outright.
    """
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_recursive(current, value)
        else:
            merged[key] = value
    return merged


def flatten_query(query: Mapping[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """Flatten a nested query mapping into ``(key, value)`` pairs.

    Nested mappings and lists use bracket notation, so
    ``{"filter": {"type": ["a", "b"]}}`` becomes
    ``[("filter[type][0]", "a"), ("filter[type][1]", "b")]``. Booleans are
    sent as ``1`` / ``0`` and ``None`` values are dropped.
    """
    pairs: list[tuple[str, str]] = []
    for key, value in query.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, Mapping):
            pairs.extend(flatten_query(value, name))
        elif isinstance(value, (list, tuple)):
            pairs.extend(flatten_query(dict(enumerate(value)), name))
        elif isinstance(value, bool):
            pairs.append((name, "1" if value else "0"))
        else:
            pairs.append((name, str(value)))
    return pairs


def canonical_query(query: Mapping[str, Any]) -> str:
    """Encode *query* with its keys sorted, independent of insertion order."""
    return urlencode(sorted(flatten_query(query)))


class RequestBuilder:
    """Builds :class:`RequestDescriptor` objects against one base URL.

    Args:
        base_url: API root, e.g. ``https://api.komparu.com/v1``. Trailing
            slashes are ignored.
    """

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url

    @property
    def base_url(self) -> str:
        return self._base_url

    @base_url.setter
    def base_url(self, value: str) -> None:
        self._base_url = value.rstrip("/")

    def url(self, *segments: Any) -> str:
        """Join the base URL with *segments*, skipping ``None``."""
        parts = [self._base_url]
        parts.extend(str(s).strip("/") for s in segments if s is not None)
        return "/".join(parts)

    def resource_url(self, state: WorkingState, *segments: Any) -> str:
        """URL for the current resource plus optional id / action segments.

        Raises:
            MissingResourceError: If no resource is selected.
        """
        return self.url(require_resource(state), *segments)

    def build(
        self,
        method: str,
        url: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        resource: str = "",
        queue_name: Optional[str] = None,
    ) -> RequestDescriptor:
        """Create an immutable descriptor from deep copies of the options."""
        return RequestDescriptor(
            method=method.upper(),
            url=url,
            query=copy.deepcopy(dict(query or {})),
            body=copy.deepcopy(body),
            headers=dict(headers or {}),
            resource=resource,
            queue_name=queue_name,
        )


def require_resource(state: WorkingState) -> str:
    if not state.resource:
        raise MissingResourceError()
    return state.resource
