"""Built-in CLI command groups and helpers shared between them.

:func:`open_client` resolves the effective configuration from the root
callback's options and builds a :class:`~fluentrest.client.Client` with the
configured cache backend. Tests inject an :class:`httpx.MockTransport`
through ``ctx.obj["http_transport"]``.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import typer

from fluentrest.client import Client


def open_client(ctx: typer.Context) -> Client:
    """Build a client from the resolved configuration and the context options."""
    from fluentrest.cache import create_cache
    from fluentrest.config import get_cache_dir, resolve_config
    from fluentrest.transport import Transport

    obj = ctx.obj or {}
    config = resolve_config(
        cli_base_url=obj.get("url"),
        cli_token=obj.get("token"),
        cli_domain=obj.get("domain"),
        cli_language=obj.get("language"),
    )
    transport = Transport(
        timeout=config.request.timeout,
        verify_ssl=config.request.verify_ssl,
        http_transport=obj.get("http_transport"),
    )
    cache = create_cache(config.cache, default_dir=get_cache_dir())
    return Client(config, transport=transport, cache=cache)


def parse_value(raw: str) -> Any:
    """Decode *raw* as JSON when possible, otherwise keep the string."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return raw


def parse_params(pairs: Optional[list[str]]) -> dict[str, Any]:
    """Turn ``key=value`` strings into a dict.

    Raises:
        typer.BadParameter: If an item has no ``=``.
    """
    params: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got: {pair}")
        params[key] = parse_value(value)
    return params
