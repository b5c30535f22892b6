"""Config commands -- view and modify the user configuration.

Provides the ``fluentrest config`` sub-command group for reading, updating
and resetting the :class:`~fluentrest.models.ClientConfig` stored in the
fluentrest config directory.
"""

from __future__ import annotations

import typer

from fluentrest.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the stored configuration.

    The token is masked; use the config file directly to read it.

    Example::

        fluentrest config show
        fluentrest --json config show
    """
    from fluentrest.config import get_config_dir, load_config

    data = load_config().model_dump(mode="json")
    if data.get("token"):
        data["token"] = "***"
    info(f"Config directory: {get_config_dir()}")
    format_response(data)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'cache.backend')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to match the
    existing field's type (bool, int, float or str) and the updated config
    is validated before saving.

    Example::

        fluentrest config set base_url https://api.example.com/v1
        fluentrest config set cache.backend disk
        fluentrest config set cache.ttl_seconds 600
    """
    from fluentrest.config import load_config, save_config
    from fluentrest.models import ClientConfig

    data = load_config().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    current = target[final_key]
    coerced: object = value
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes")
    elif isinstance(current, (int, float)):
        try:
            coerced = type(current)(value)
        except ValueError:
            error(f"Expected a number for {key}, got: {value}")
            raise typer.Exit(code=2) from None

    target[final_key] = coerced

    try:
        new_config = ClientConfig.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset configuration to defaults."""
    from fluentrest.config import save_config
    from fluentrest.models import ClientConfig

    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_config(ClientConfig())
    success("Configuration reset to defaults.")
