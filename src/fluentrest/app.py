"""Typer application and CLI entry point for fluentrest.

The CLI is a thin consumer of :class:`~fluentrest.client.Client`: the root
callback collects connection overrides (base URL, token, domain, language)
and output flags, and the sub-commands issue verb calls or flush a batch.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. :class:`~fluentrest.exceptions.FluentRestError`
instances become clean exits with the error's ``exit_code``; anything else
is written to a crash log under the data directory.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from fluentrest import __version__
from fluentrest.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="fluentrest",
    help="Query the REST API from the command line.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"fluentrest {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    url: Optional[str] = typer.Option(None, "--url", help="API base URL."),
    token: Optional[str] = typer.Option(None, "--token", help="X-Auth-Token value."),
    domain: Optional[str] = typer.Option(None, "--domain", help="X-Auth-Domain value."),
    language: Optional[str] = typer.Option(
        None, "--language", help="Accept-Language value."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~fluentrest.output.OutputManager` and stores
    the connection overrides in ``ctx.obj`` for
    :func:`~fluentrest.commands.open_client`.
    """
    from fluentrest.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["url"] = url
    ctx.obj["token"] = token
    ctx.obj["domain"] = domain
    ctx.obj["language"] = language


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #

from fluentrest.commands.batch import batch_command  # noqa: E402
from fluentrest.commands.cache import cache_app  # noqa: E402
from fluentrest.commands.config import config_app  # noqa: E402
from fluentrest.commands.requests import (  # noqa: E402
    delete_command,
    get_command,
    patch_command,
    show_command,
    store_command,
    update_command,
)

app.command("get")(get_command)
app.command("show")(show_command)
app.command("store")(store_command)
app.command("update")(update_command)
app.command("patch")(patch_command)
app.command("delete")(delete_command)
app.command("batch")(batch_command)
app.add_typer(cache_app, name="cache", help="Response cache management.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from fluentrest.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``fluentrest`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    from fluentrest.exceptions import FluentRestError
    from fluentrest.output import error

    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except FluentRestError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
