"""Batch command -- realise a file of named requests with one concurrent flush.

The batch file is a JSON object mapping queue names to request specs::

    {
        "cheap": {"resource": "products", "params": {"sort": "price"}},
        "one":   {"resource": "products", "id": 42},
        "new":   {"resource": "products", "method": "store", "body": {"name": "x"}}
    }

``method`` defaults to ``get`` (or ``show`` when an ``id`` is present).
The flush result, one entry per name, is printed to stdout.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer

from fluentrest.client import Client
from fluentrest.commands import open_client
from fluentrest.output import format_response, warning

_VERBS = ("get", "show", "store", "update", "patch", "delete")


def _enqueue(client: Client, name: str, spec: Any) -> None:
    if not isinstance(spec, dict):
        raise typer.BadParameter(f"Request '{name}' must be a JSON object")
    method = str(spec.get("method") or ("show" if "id" in spec else "get")).lower()
    if method not in _VERBS:
        raise typer.BadParameter(f"Request '{name}' has unsupported method: {method}")

    client.using_queue(name)
    client.resource(spec.get("resource", "")).set_params(spec.get("params") or {})
    if method == "get":
        client.get(spec.get("query"))
    elif method == "show":
        client.show(spec["id"], spec.get("query"))
    elif method == "store":
        client.store(spec.get("body"))
    elif method == "update":
        client.update(spec["id"], spec.get("body"))
    elif method == "patch":
        client.patch(spec["id"], spec.get("body"))
    else:
        client.delete(spec["id"], spec.get("body"))


def batch_command(
    ctx: typer.Context,
    file: Path = typer.Argument(help="JSON file mapping names to request specs.", exists=True),
) -> None:
    """Queue every request in FILE and flush them concurrently."""
    try:
        specs = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Invalid batch file {file}: {exc}") from exc
    if not isinstance(specs, dict):
        raise typer.BadParameter(f"Batch file {file} must contain a JSON object")

    with open_client(ctx) as client:
        for name, spec in specs.items():
            _enqueue(client, name, spec)
        results = client.flush()

    failed = [name for name, value in results.items() if "error" in value]
    if failed:
        warning(f"{len(failed)} of {len(results)} request(s) failed: {', '.join(failed)}")
    format_response(results)
