"""Synchronous API client bound to one server configuration.

This module provides :class:`APIClient`, the client handle that
:class:`~clientcache.cache.ClientCache` constructs and memoizes.  It wraps
:class:`httpx.Client` and layers on:

- **Credential injection** -- bearer token or basic auth from the
  :class:`~clientcache.models.Configuration`.
- **Versioned paths** -- :meth:`APIClient.versioned_path` joins the API path
  prefix, the negotiated group-version, and a resource path.
- **Discovery** -- :meth:`APIClient.server_version` and
  :meth:`APIClient.server_api_versions` read what the server reports about
  itself; the version check and negotiation build on these.
- **Retry with backoff** -- retries on 5xx and network errors with
  exponential delay (1 s, 2 s, 4 s, ...).
- **Error mapping** -- HTTP and network failures become typed
  :mod:`clientcache.exceptions`.

Unlike a per-request context manager, an ``APIClient`` opens its connection
pool on construction because cached clients are reused for the lifetime of
the process.  It still supports ``with`` for short-lived discovery use.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from clientcache.exceptions import (
    AuthError,
    ConfigError,
    ConnectionError_,
    NotFoundError,
    ServerError,
)
from clientcache.models import APIVersions, Configuration, ServerVersion
from clientcache.output import get_output

LEGACY_API_PATH = "/api"
"""Path prefix of the legacy (group-less) API."""

GROUPS_API_PATH = "/apis"
"""Path prefix of named API groups."""


def default_api_path(config: Configuration) -> str:
    """Return the API path prefix for *config*'s group-version."""
    if config.api_path:
        return config.api_path.rstrip("/")
    gv = config.group_version
    if gv is not None and gv.group:
        return GROUPS_API_PATH
    return LEGACY_API_PATH


class APIClient:
    """Synchronous HTTP client for one API server.

    Args:
        config: Connection settings.  When ``config.group_version`` is set
            the client can build versioned resource paths; discovery calls
            work either way.
        transport: Optional transport overriding ``config.transport``.

    Example::

        client = APIClient(config)
        try:
            namespaces = client.get(client.versioned_path("namespaces")).json()
        finally:
            client.close()
    """

    def __init__(
        self,
        config: Configuration,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        headers: dict[str, str] = {"Accept": "application/json"}
        if config.user_agent:
            headers["User-Agent"] = config.user_agent
        if config.content_type:
            headers["Content-Type"] = config.content_type
        if config.bearer_token:
            headers["Authorization"] = f"Bearer {config.bearer_token}"
        headers.update(config.headers)

        auth: Optional[tuple[str, str]] = None
        if config.username and not config.bearer_token:
            auth = (config.username, config.password or "")

        self._client = httpx.Client(
            base_url=config.host.rstrip("/"),
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers=headers,
            auth=auth,
            transport=transport or config.transport,
            follow_redirects=True,
        )

    @property
    def config(self) -> Configuration:
        """The configuration this client was built from."""
        return self._config

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def close(self) -> None:
        """Close the underlying connection pool."""
        self._client.close()

    def __enter__(self) -> APIClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Paths
    # ------------------------------------------------------------------ #

    def versioned_path(self, path: str = "") -> str:
        """Join the API path prefix, the negotiated group-version, and *path*.

        Args:
            path: Resource path relative to the version root (e.g.
                ``"namespaces/default/pods"``).

        Returns:
            An absolute path such as ``/api/v1/namespaces/default/pods``.

        Raises:
            ConfigError: If the client's configuration has no group-version.
        """
        gv = self._config.group_version
        if gv is None or gv.is_empty():
            raise ConfigError("Client has no API version; build it through ClientCache")
        root = f"{default_api_path(self._config)}/{gv}"
        path = path.strip("/")
        return f"{root}/{path}" if path else root

    # ------------------------------------------------------------------ #
    # Discovery
    # ------------------------------------------------------------------ #

    def server_version(self) -> ServerVersion:
        """Return the server's ``/version`` document."""
        response = self.get("/version")
        return ServerVersion.model_validate(response.json())

    def server_api_versions(self) -> APIVersions:
        """Return every group-version the server serves.

        Legacy versions from ``/api`` come first, in the server's order,
        followed by each named group's versions from ``/apis``.  Servers
        without named groups answer ``/apis`` with 404, which is ignored.
        """
        legacy = self.get(LEGACY_API_PATH).json() or {}
        versions: list[str] = list(legacy.get("versions") or [])
        preferred = legacy.get("preferredVersion") or None

        try:
            groups = self.get(GROUPS_API_PATH).json() or {}
        except NotFoundError:
            groups = {}
        for group in groups.get("groups") or []:
            for entry in group.get("versions") or []:
                gv = entry.get("groupVersion")
                if gv and gv not in versions:
                    versions.append(gv)

        return APIVersions(versions=versions, preferred_version=preferred)

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Optional[Any] = None,
    ) -> httpx.Response:
        """Make an HTTP request with retry and error mapping.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE).
            path: URL path (appended to the configured host).
            params: Query parameters.
            headers: Extra request headers.
            json_body: JSON-serialisable body.

        Returns:
            The :class:`httpx.Response` from the server.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ServerError: On other 4xx, and on 5xx after all retries.
            ConnectionError_: On network / timeout errors after all retries.
        """
        response = self._execute_with_retry(method, path, params, headers, json_body)
        self._map_response_error(response)
        return response

    def get(self, path: str, **kwargs: Any) -> httpx.Response:
        """Send a GET request."""
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> httpx.Response:
        """Send a POST request."""
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> httpx.Response:
        """Send a PUT request."""
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> httpx.Response:
        """Send a PATCH request."""
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        """Send a DELETE request."""
        return self.request("DELETE", path, **kwargs)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _execute_with_retry(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]],
        headers: Optional[dict[str, str]],
        json_body: Any,
    ) -> httpx.Response:
        """Execute the HTTP request with exponential-backoff retry.

        Retries on 5xx status codes and connection / timeout errors up to
        ``max_retries`` times. The delay doubles each attempt: 1 s, 2 s, 4 s, ...
        """
        max_retries = self._config.max_retries
        output = get_output()

        for attempt in range(max_retries + 1):
            try:
                kwargs: dict[str, Any] = {"params": params, "headers": headers}
                if json_body is not None:
                    kwargs["json"] = json_body
                response = self._client.request(method, path, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    output.debug(
                        f"Connection error: {exc}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(delay)
                    continue
                raise ConnectionError_(
                    f"Connection to {self._config.host} failed after "
                    f"{max_retries + 1} attempts: {exc}"
                ) from exc

            if response.status_code >= 500 and attempt < max_retries:
                delay = 2 ** attempt
                output.debug(
                    f"Server error {response.status_code}, retrying in {delay}s "
                    f"(attempt {attempt + 1}/{max_retries})"
                )
                time.sleep(delay)
                continue
            return response

        raise ServerError("Request failed after all retries")  # pragma: no cover

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        try:
            detail = response.json()
            if isinstance(detail, dict):
                msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
            else:
                msg = str(detail)
        except Exception:
            msg = response.text[:200] if response.text else ""

        prefix = f"HTTP {status} {response.request.method} {response.request.url.path}"
        full_msg = f"{prefix}: {msg}" if msg else prefix

        if status in (401, 403):
            raise AuthError(full_msg)
        if status == 404:
            raise NotFoundError(full_msg)
        raise ServerError(full_msg)
