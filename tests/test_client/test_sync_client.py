"""Tests for the synchronous API client and client construction."""

from __future__ import annotations

import base64
from typing import Any

import httpx
import pytest

from clientcache.client import APIClient, default_user_agent, new_client, set_defaults
from clientcache.exceptions import AuthError, ConfigError, ConnectionError_, NotFoundError, ServerError
from clientcache.models import Configuration, GroupVersion
from clientcache.output import OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _config(handler=None, **overrides: Any) -> Configuration:
    values: dict[str, Any] = {"host": "https://api.test", "max_retries": 0}
    if handler is not None:
        values["transport"] = httpx.MockTransport(handler)
    values.update(overrides)
    return Configuration(**values)


def _recording_handler(status_code: int = 200, body: Any = None):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json=body if body is not None else {})

    return requests, handler


@pytest.fixture(autouse=True)
def _clean_output():
    """Reset the global output manager between tests."""
    set_output(OutputManager(no_color=True, quiet=True))
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("clientcache.client.sync_client.time.sleep", lambda _: None)


# ---------------------------------------------------------------------------
# Headers and credentials
# ---------------------------------------------------------------------------


class TestHeaders:
    def test_bearer_token_and_user_agent(self) -> None:
        requests, handler = _recording_handler()
        config = _config(handler, bearer_token="tok", user_agent="clientcache/test", headers={"X-Extra": "1"})

        with APIClient(config) as client:
            client.get("/version")

        sent = requests[0]
        assert sent.headers["Authorization"] == "Bearer tok"
        assert sent.headers["User-Agent"] == "clientcache/test"
        assert sent.headers["X-Extra"] == "1"
        assert sent.headers["Accept"] == "application/json"

    def test_basic_auth_without_token(self) -> None:
        requests, handler = _recording_handler()
        config = _config(handler, username="admin", password="pw")

        with APIClient(config) as client:
            client.get("/version")

        expected = base64.b64encode(b"admin:pw").decode()
        assert requests[0].headers["Authorization"] == f"Basic {expected}"

    def test_token_wins_over_basic_auth(self) -> None:
        requests, handler = _recording_handler()
        config = _config(handler, bearer_token="tok", username="admin", password="pw")

        with APIClient(config) as client:
            client.get("/version")

        assert requests[0].headers["Authorization"] == "Bearer tok"

    def test_explicit_transport_overrides_config(self) -> None:
        config_requests, config_handler = _recording_handler()
        arg_requests, arg_handler = _recording_handler()
        config = _config(config_handler)

        with APIClient(config, transport=httpx.MockTransport(arg_handler)) as client:
            client.get("/version")

        assert len(arg_requests) == 1
        assert config_requests == []


# ---------------------------------------------------------------------------
# Versioned paths
# ---------------------------------------------------------------------------


class TestVersionedPath:
    def test_legacy_group(self) -> None:
        client = APIClient(_config(group_version=GroupVersion.parse("v1")))
        assert client.versioned_path("namespaces/default/pods") == "/api/v1/namespaces/default/pods"
        assert client.versioned_path() == "/api/v1"

    def test_named_group(self) -> None:
        client = APIClient(_config(group_version=GroupVersion.parse("apps/v1")))
        assert client.versioned_path("/deployments/") == "/apis/apps/v1/deployments"

    def test_api_path_override(self) -> None:
        client = APIClient(_config(group_version=GroupVersion.parse("v1"), api_path="/k8s/api/"))
        assert client.versioned_path("pods") == "/k8s/api/v1/pods"

    def test_requires_group_version(self) -> None:
        client = APIClient(_config())
        with pytest.raises(ConfigError):
            client.versioned_path("pods")


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class TestDiscovery:
    def test_server_version(self, fake_server) -> None:
        with APIClient(fake_server.configuration()) as client:
            version = client.server_version()
        assert version.git_version == fake_server.git_version

    def test_legacy_only_server(self, fake_server) -> None:
        with APIClient(fake_server.configuration()) as client:
            versions = client.server_api_versions()
        assert versions.versions == ["v1"]
        assert versions.preferred_version is None
        assert fake_server.paths() == ["/api", "/apis"]

    def test_groups_follow_legacy_versions(self, make_server) -> None:
        server = make_server(legacy_versions=["v1"], group_versions=["apps/v1", "batch/v1"], preferred="v1")
        with APIClient(server.configuration()) as client:
            versions = client.server_api_versions()
        assert versions.versions == ["v1", "apps/v1", "batch/v1"]
        assert versions.preferred_version == "v1"


# ---------------------------------------------------------------------------
# Error mapping and retries
# ---------------------------------------------------------------------------


class TestErrorMapping:
    @pytest.mark.parametrize(
        "status, exc_type",
        [(401, AuthError), (403, AuthError), (404, NotFoundError), (409, ServerError), (500, ServerError)],
    )
    def test_status_codes(self, status: int, exc_type: type) -> None:
        _, handler = _recording_handler(status, {"message": "nope"})
        with APIClient(_config(handler)) as client:
            with pytest.raises(exc_type) as exc_info:
                client.get("/api/v1/pods")
        assert "nope" in str(exc_info.value)
        assert f"HTTP {status}" in str(exc_info.value)

    def test_server_error_retried_then_succeeds(self) -> None:
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            if len(attempts) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"ok": True})

        with APIClient(_config(handler, max_retries=3)) as client:
            response = client.get("/version")

        assert response.json() == {"ok": True}
        assert len(attempts) == 3

    def test_connection_error_after_retries(self) -> None:
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ConnectError("refused", request=request)

        with APIClient(_config(handler, max_retries=2)) as client:
            with pytest.raises(ConnectionError_):
                client.get("/version")
        assert len(attempts) == 3

    def test_client_errors_not_retried(self) -> None:
        requests, handler = _recording_handler(404)
        with APIClient(_config(handler, max_retries=3)) as client:
            with pytest.raises(NotFoundError):
                client.get("/missing")
        assert len(requests) == 1


# ---------------------------------------------------------------------------
# Construction helpers
# ---------------------------------------------------------------------------


class TestSetDefaults:
    def test_fills_missing_values(self) -> None:
        config = _config(group_version=GroupVersion.parse("apps/v1"))
        set_defaults(config)
        assert config.api_path == "/apis"
        assert config.user_agent == default_user_agent()
        assert config.content_type == "application/json"

    def test_keeps_existing_values(self) -> None:
        config = _config(
            group_version=GroupVersion.parse("v1"),
            api_path="/custom",
            user_agent="mine",
            content_type="application/yaml",
        )
        set_defaults(config)
        assert (config.api_path, config.user_agent, config.content_type) == (
            "/custom",
            "mine",
            "application/yaml",
        )


class TestNewClient:
    def test_builds_client(self) -> None:
        config = _config(group_version=GroupVersion.parse("v1"))
        client = new_client(config)
        assert isinstance(client, APIClient)
        assert client.config is config

    @pytest.mark.parametrize("group_version", [None, GroupVersion()])
    def test_requires_group_version(self, group_version) -> None:
        with pytest.raises(ConfigError):
            new_client(_config(group_version=group_version))

    def test_requires_host(self) -> None:
        with pytest.raises(ConfigError):
            new_client(_config(host="", group_version=GroupVersion.parse("v1")))
