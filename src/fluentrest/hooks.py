"""Hook definitions, context dataclass, and runner for the request lifecycle.

This module provides two core components:

* :class:`HookContext` -- A mutable dataclass that carries request and response
  state through the hook chain. Fields are progressively populated as the
  request/response lifecycle advances.
* :class:`HookRunner` -- Executes ``before_send`` decorators and
  ``on_complete`` hooks in registration order.

Before-send decorators are registered under a name so that calling
:meth:`~fluentrest.client.Client.set_token` twice replaces the first
token instead of stacking two decorators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

BeforeSendHook = Callable[["HookContext"], None]
CompleteHook = Callable[["HookContext"], None]


@dataclass
class HookContext:
    """Mutable context object threaded through the hook chain.

    Attributes:
        method: HTTP method (e.g. ``"GET"``).
        url: The request URL without query string.
        headers: Outgoing request headers (mutable).
        params: Flattened query parameters.
        body: Optional request body.
        queue_name: Correlation token of a queued request.
        status_code: HTTP response status code.
        response_headers: Response headers dict.
    """

    method: str = ""
    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    params: list[tuple[str, str]] = field(default_factory=list)
    body: Any = None
    queue_name: Optional[str] = None
    status_code: int = 0
    response_headers: dict[str, str] = field(default_factory=dict)


class HookRunner:
    """Executes registered hooks in registration order."""

    def __init__(self) -> None:
        self._before_send: dict[str, BeforeSendHook] = {}
        self._on_complete: list[CompleteHook] = []

    def add_before_send(self, name: str, hook: BeforeSendHook) -> None:
        """Register *hook* under *name*, replacing any previous hook of that name."""
        self._before_send.pop(name, None)
        self._before_send[name] = hook

    def add_on_complete(self, hook: CompleteHook) -> None:
        self._on_complete.append(hook)

    def run_before_send(self, ctx: HookContext) -> HookContext:
        """Execute before-send decorators. Each may modify ``ctx.headers``."""
        for hook in self._before_send.values():
            hook(ctx)
        return ctx

    def run_on_complete(self, ctx: HookContext) -> HookContext:
        """Execute on-complete hooks with the response fields populated."""
        for hook in self._on_complete:
            hook(ctx)
        return ctx


def header_decorator(name: str, value: str) -> BeforeSendHook:
    """Return a before-send hook that sets header *name* to *value*."""

    def _decorate(ctx: HookContext) -> None:
        ctx.headers[name] = value

    return _decorate
