"""Shared test fixtures for fluentrest.

Provides a fake API backed by :class:`httpx.MockTransport`, clients wired
to it, isolated config environments, and output state management. These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest

from fluentrest.cache import MemoryCache, NoCache
from fluentrest.client import Client
from fluentrest.models import ClientConfig
from fluentrest.output import OutputFormat, OutputManager, reset_output, set_output
from fluentrest.transport import Transport

BASE_URL = "https://api.example.com/v1"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Fake API
# ---------------------------------------------------------------------------


class FakeApi:
    """Routes requests by ``(method, path)`` and records every call.

    Unrouted requests get ``200 {"ok": true}``. Routes registered with
    :meth:`reply` build a fresh :class:`httpx.Response` for every call.
    """

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def reply(
        self,
        method: str,
        path: str,
        status: int = 200,
        json: Any = None,
        text: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        def _build(request: httpx.Request) -> httpx.Response:
            if text is not None:
                return httpx.Response(status, text=text, headers=headers)
            if json is None:
                return httpx.Response(status, headers=headers)
            return httpx.Response(status, json=json, headers=headers)

        self._routes[(method.upper(), path)] = _build

    def route(self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self._routes[(method.upper(), path)] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self._routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(200, json={"ok": True})
        return route(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def last(self) -> httpx.Request:
        assert self.calls, "No request was sent"
        return self.calls[-1]


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


def make_client(
    api: FakeApi,
    cache: Any = None,
    **config: Any,
) -> Client:
    """Build a :class:`Client` talking to *api* at :data:`BASE_URL`."""
    config.setdefault("base_url", BASE_URL)
    transport = Transport(http_transport=api.transport)
    return Client(
        ClientConfig(**config),
        transport=transport,
        cache=cache if cache is not None else NoCache(),
    )


@pytest.fixture
def client(fake_api: FakeApi) -> Client:
    """Client without a response cache."""
    with make_client(fake_api) as c:
        yield c


@pytest.fixture
def client_factory(fake_api: FakeApi) -> Callable[..., Client]:
    """Build further clients against the same fake API."""
    built: list[Client] = []

    def _factory(cache: Any = None, **config: Any) -> Client:
        c = make_client(fake_api, cache=cache, **config)
        built.append(c)
        return c

    yield _factory
    for c in built:
        c.close()


@pytest.fixture
def cached_client(fake_api: FakeApi) -> Client:
    """Client with an in-memory response cache."""
    with make_client(fake_api, cache=MemoryCache()) as c:
        yield c


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user
    config. Clears all FLUENTREST_* environment variables and changes
    the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("fluentrest.config._is_xdg_platform", lambda: True)

    for var in [
        "FLUENTREST_URL",
        "FLUENTREST_TOKEN",
        "FLUENTREST_DOMAIN",
        "FLUENTREST_LANGUAGE",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def verbose_output() -> OutputManager:
    """Install a plain, verbose OutputManager so debug lines reach stderr."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
