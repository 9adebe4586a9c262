"""Shared test fixtures for clientcache.

Provides reusable fixtures for creating isolated config environments,
managing output state, faking an API server with :class:`httpx.MockTransport`,
and running CLI commands.  These fixtures are automatically discovered by
pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest

from clientcache import __version__
from clientcache.models import Configuration
from clientcache.output import OutputFormat, OutputManager, reset_output, set_output
from clientcache.registry import reset_default_registry


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _reset_registry_between_tests(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test with the built-in version registry."""
    monkeypatch.delenv("CLIENTCACHE_API_VERSIONS", raising=False)
    reset_default_registry()
    yield
    reset_default_registry()


# ---------------------------------------------------------------------------
# Fake API server
# ---------------------------------------------------------------------------


class FakeServer:
    """In-process API server used through :class:`httpx.MockTransport`.

    Serves ``/version``, ``/api``, ``/apis`` and any resource registered in
    :attr:`resources`.  Every request is recorded in :attr:`requests`.
    """

    def __init__(
        self,
        legacy_versions: Optional[list[str]] = None,
        group_versions: Optional[list[str]] = None,
        preferred: Optional[str] = None,
        git_version: str = f"v{__version__}",
    ) -> None:
        self.legacy_versions = ["v1"] if legacy_versions is None else legacy_versions
        self.group_versions = [] if group_versions is None else group_versions
        self.preferred = preferred
        self.git_version = git_version
        self.resources: dict[str, Any] = {}
        self.requests: list[httpx.Request] = []

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/version":
            return httpx.Response(200, json={"major": "0", "minor": "3", "gitVersion": self.git_version})
        if path == "/api":
            body: dict[str, Any] = {"kind": "APIVersions", "versions": self.legacy_versions}
            if self.preferred:
                body["preferredVersion"] = self.preferred
            return httpx.Response(200, json=body)
        if path == "/apis":
            if not self.group_versions:
                return httpx.Response(404, json={"message": "not found"})
            groups = [
                {"name": gv.split("/")[0], "versions": [{"groupVersion": gv}]}
                for gv in self.group_versions
            ]
            return httpx.Response(200, json={"kind": "APIGroupList", "groups": groups})
        if path in self.resources:
            return httpx.Response(200, json=self.resources[path])
        return httpx.Response(404, json={"message": f"{path} not found"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def configuration(self, **overrides: Any) -> Configuration:
        values: dict[str, Any] = {
            "host": "https://api.test",
            "max_retries": 0,
            "transport": self.transport(),
        }
        values.update(overrides)
        return Configuration(**values)


@pytest.fixture
def fake_server() -> FakeServer:
    """A fake API server serving the legacy ``v1`` version."""
    return FakeServer()


@pytest.fixture
def make_server() -> Callable[..., FakeServer]:
    """Factory for :class:`FakeServer` instances with custom versions."""
    return FakeServer


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user
    config. Clears all CLIENTCACHE_* environment variables and changes
    the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("clientcache.config._is_xdg_platform", lambda: True)

    for var in [
        "CLIENTCACHE_PROFILE",
        "CLIENTCACHE_SERVER",
        "CLIENTCACHE_CONFIG",
        "CLIENTCACHE_API_VERSIONS",
        "CLIENTCACHE_MATCH_SERVER_VERSION",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
