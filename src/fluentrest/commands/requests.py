"""Verb commands -- ``fluentrest get``, ``show``, ``store``, ``update``, ``patch``, ``delete``.

Each command selects a resource, records ``--param key=value`` pairs as
dynamic parameters and prints the mapped response body to stdout.
Failures propagate as :class:`~fluentrest.exceptions.FluentRestError` and
are turned into exit codes by :func:`fluentrest.app.main`.
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from fluentrest.commands import open_client, parse_params, parse_value
from fluentrest.output import format_response

ParamOption = typer.Option(
    None, "--param", "-p", help="Dynamic parameter as key=value (repeatable)."
)


def _body(data: Optional[str]) -> Any:
    return parse_value(data) if data is not None else None


def get_command(
    ctx: typer.Context,
    resource: str = typer.Argument(help="Resource name, e.g. 'products'."),
    param: Optional[list[str]] = ParamOption,
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the response cache."),
) -> None:
    """List records of a resource."""
    with open_client(ctx) as client:
        result = client.resource(resource).set_params(parse_params(param)).get(cache=not no_cache)
    format_response(result)


def show_command(
    ctx: typer.Context,
    resource: str = typer.Argument(help="Resource name."),
    id: str = typer.Argument(help="Record id."),
    param: Optional[list[str]] = ParamOption,
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the response cache."),
) -> None:
    """Show one record."""
    with open_client(ctx) as client:
        result = client.resource(resource).set_params(parse_params(param)).show(
            id, cache=not no_cache
        )
    format_response(result)


def store_command(
    ctx: typer.Context,
    resource: str = typer.Argument(help="Resource name."),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="JSON request body."),
    param: Optional[list[str]] = ParamOption,
) -> None:
    """Create a record."""
    with open_client(ctx) as client:
        result = client.resource(resource).set_params(parse_params(param)).store(_body(data))
    format_response(result)


def update_command(
    ctx: typer.Context,
    resource: str = typer.Argument(help="Resource name."),
    id: str = typer.Argument(help="Record id."),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="JSON request body."),
    param: Optional[list[str]] = ParamOption,
) -> None:
    """Replace a record."""
    with open_client(ctx) as client:
        result = client.resource(resource).set_params(parse_params(param)).update(id, _body(data))
    format_response(result)


def patch_command(
    ctx: typer.Context,
    resource: str = typer.Argument(help="Resource name."),
    id: str = typer.Argument(help="Record id."),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="JSON request body."),
    param: Optional[list[str]] = ParamOption,
) -> None:
    """Partially update a record."""
    with open_client(ctx) as client:
        result = client.resource(resource).set_params(parse_params(param)).patch(id, _body(data))
    format_response(result)


def delete_command(
    ctx: typer.Context,
    resource: str = typer.Argument(help="Resource name."),
    id: str = typer.Argument(help="Record id."),
) -> None:
    """Delete a record."""
    with open_client(ctx) as client:
        result = client.resource(resource).delete(id)
    format_response(result)
