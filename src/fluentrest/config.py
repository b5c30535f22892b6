"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for fluentrest:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.fluentrest/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir` and :func:`get_data_dir`.
* **User config** -- A single :class:`~fluentrest.models.ClientConfig`
  JSON file storing the base URL, auth headers, cache and output defaults.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config and user config into the
  effective configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from fluentrest.builder import merge_recursive
from fluentrest.exceptions import ConfigError
from fluentrest.models import ClientConfig

_APP_NAME = "fluentrest"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "fluentrest.json"

ENV_OVERRIDES = {
    "FLUENTREST_URL": "base_url",
    "FLUENTREST_TOKEN": "token",
    "FLUENTREST_DOMAIN": "domain",
    "FLUENTREST_LANGUAGE": "language",
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/fluentrest/`` (default ``~/.config/fluentrest/``).
    On macOS/Windows: ``~/.fluentrest/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory used by the disk cache backend.

    On Linux/BSD: ``$XDG_CACHE_HOME/fluentrest/`` (default ``~/.cache/fluentrest/``).
    On macOS/Windows: ``~/.fluentrest/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/fluentrest/`` (default ``~/.local/share/fluentrest/``).
    On macOS/Windows: ``~/.fluentrest/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is removed and the exception re-raised.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- User config ---


def config_path() -> Path:
    """Path to the user config file."""
    return get_config_dir() / _CONFIG_FILENAME


def _read_json(path: Path, label: str) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid {label} at {path}: expected a JSON object")
    return data


def _validate(data: dict[str, Any], source: str) -> ClientConfig:
    try:
        return ClientConfig.model_validate(data)
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid configuration ({source}): {exc}") from exc


def load_config() -> ClientConfig:
    """Load the user configuration.

    Returns:
        The deserialised :class:`~fluentrest.models.ClientConfig`, or a
        default instance when the file does not exist.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = config_path()
    if not path.is_file():
        return ClientConfig()
    return _validate(_read_json(path, "config"), str(path))


def save_config(config: ClientConfig) -> None:
    """Persist the user configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local overrides from ``./fluentrest.json``.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    return _read_json(path, "project config")


# --- Precedence resolution ---


def resolve_config(
    cli_base_url: Optional[str] = None,
    cli_token: Optional[str] = None,
    cli_domain: Optional[str] = None,
    cli_language: Optional[str] = None,
) -> ClientConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags
        2. Environment variables (``FLUENTREST_URL``, ``FLUENTREST_TOKEN``,
           ``FLUENTREST_DOMAIN``, ``FLUENTREST_LANGUAGE``)
        3. Project config (``./fluentrest.json``)
        4. User config (``~/.config/fluentrest/config.json``)
        5. Defaults
    """
    data = load_config().model_dump(mode="json")

    project = load_project_config()
    if project is not None:
        data = merge_recursive(data, project)

    for env_var, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            data[key] = value

    cli = {
        "base_url": cli_base_url,
        "token": cli_token,
        "domain": cli_domain,
        "language": cli_language,
    }
    for key, value in cli.items():
        if value is not None:
            data[key] = value

    return _validate(data, "resolved")
