"""Cache commands -- inspect and invalidate the configured response cache."""

from __future__ import annotations

import typer

from fluentrest.cache import TaggedCache
from fluentrest.commands import open_client
from fluentrest.output import format_response, info, success

cache_app = typer.Typer(no_args_is_help=True)


def _tagged(ctx: typer.Context) -> TaggedCache | None:
    client = open_client(ctx)
    if isinstance(client.cache, TaggedCache):
        return client.cache
    info("The configured cache backend does not store responses.")
    client.close()
    return None


@cache_app.command("clear")
def cache_clear(ctx: typer.Context) -> None:
    """Remove every cached response."""
    cache = _tagged(ctx)
    if cache is None:
        return
    cache.clear()
    cache.close()
    success("Cache cleared.")


@cache_app.command("invalidate")
def cache_invalidate(
    ctx: typer.Context,
    resource: list[str] = typer.Argument(help="Resource name(s) whose responses to drop."),
) -> None:
    """Drop cached responses of one or more resources."""
    cache = _tagged(ctx)
    if cache is None:
        return
    removed = cache.invalidate_tags(resource)
    cache.close()
    success(f"Removed {removed} cached response(s).")


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show cache backend statistics."""
    cache = _tagged(ctx)
    if cache is None:
        return
    data = cache.stats()
    cache.close()
    format_response(data)
