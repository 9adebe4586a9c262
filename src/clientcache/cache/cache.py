"""Memoized API clients and configurations, keyed by requested API version.

:class:`ClientCache` sits between the commands and the API server.  For each
distinct version string it loads the base configuration once, optionally
checks that the server runs a matching release, negotiates a concrete
group-version against what the server advertises, and then reuses the
resulting :class:`~clientcache.models.Configuration` and
:class:`~clientcache.client.APIClient` for the rest of the process.

Keying rules:

* Configurations are stored twice: under the version string the caller
  passed (the *alias*, ``""`` meaning "server default") and under the
  canonical negotiated group-version.  The two entries are equal by value
  but are independent objects, so a later call with the canonical string is
  a cache hit.  A request that is already canonical has just the one entry.
* Clients are stored only under the canonical group-version.  A caller that
  keeps passing an alias which differs from its canonical form gets a cached
  configuration but a newly built client on every call.
  :meth:`ClientCache.close` closes all of them.

Nothing is ever evicted, and failures are never cached.

See Also:
    :mod:`clientcache.client.version` -- the default version checker and
    negotiator.
    :mod:`clientcache.loader` -- sources of the base configuration.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from clientcache.client import APIClient, new_client, set_defaults
from clientcache.client.version import matches_server_version, negotiate_version
from clientcache.loader import ClientConfigLoader
from clientcache.models import Configuration, GroupVersion
from clientcache.output import debug
from clientcache.registry import VersionRegistry, default_registry
from clientcache.singleflight import SingleFlight

VersionChecker = Callable[[Optional[APIClient], Configuration], None]
Negotiator = Callable[
    [Optional[APIClient], Configuration, Optional[GroupVersion], list[GroupVersion]],
    GroupVersion,
]
ClientFactory = Callable[[Configuration], APIClient]


class ClientCache:
    """Per-process cache of negotiated configurations and API clients.

    Args:
        loader: Source of the base, version-independent configuration.
            Called once, on first use.
        match_version: When ``True``, the first use also verifies that the
            server's version matches this client's.
        registry: Group-versions this client supports, in preference order.
            Defaults to :func:`~clientcache.registry.default_registry`.
        version_checker: Replaces
            :func:`~clientcache.client.version.matches_server_version`.
        negotiator: Replaces
            :func:`~clientcache.client.version.negotiate_version`.
        client_factory: Replaces :func:`~clientcache.client.new_client`.

    Example::

        cache = ClientCache(ProfileConfigLoader())
        client = cache.client_for_version("v1")
        pods = client.get(client.versioned_path("pods")).json()

    Safe for concurrent use from multiple threads.
    """

    def __init__(
        self,
        loader: ClientConfigLoader,
        match_version: bool = False,
        *,
        registry: Optional[VersionRegistry] = None,
        version_checker: Optional[VersionChecker] = None,
        negotiator: Optional[Negotiator] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._loader = loader
        self._match_version = match_version
        self._registry = registry if registry is not None else default_registry()
        self._version_checker = version_checker or matches_server_version
        self._negotiator = negotiator or negotiate_version
        self._client_factory = client_factory or new_client

        self._configs: dict[str, Configuration] = {}
        self._clients: dict[str, APIClient] = {}
        self._built: list[APIClient] = []
        self._lock = threading.Lock()

        self._default_config: Optional[Configuration] = None
        # Never built here; collaborators open their own discovery client.
        self._default_client: Optional[APIClient] = None
        self._default_lock = threading.Lock()

        self._config_calls: SingleFlight[Configuration] = SingleFlight()
        self._client_calls: SingleFlight[APIClient] = SingleFlight()

    @property
    def match_version(self) -> bool:
        return self._match_version

    @property
    def registry(self) -> VersionRegistry:
        return self._registry

    # ------------------------------------------------------------------ #
    # Public lookups
    # ------------------------------------------------------------------ #

    def client_config_for_version(self, version: str = "") -> Configuration:
        """Return the negotiated configuration for *version*.

        Args:
            version: Requested group-version (``"v1"``, ``"apps/v1"``), or
                ``""`` to let the server choose.

        Returns:
            A configuration whose ``group_version`` is the negotiated
            version.  It is shared with later callers; clone it before
            modifying it.

        Raises:
            ConfigError: If the base configuration cannot be loaded.
            VersionMismatchError: If version matching is enabled and fails.
            InvalidVersionError: If *version* or a registered version is
                malformed.
            NegotiationError: If no mutually supported version exists.
        """
        base = self._ensure_default()

        with self._lock:
            cached = self._configs.get(version)
        if cached is not None:
            debug(f"Config cache hit for {version or '(server default)'}")
            return cached

        return self._config_calls.do(version, lambda: self._resolve_config(version, base))

    def client_for_version(self, version: str = "") -> APIClient:
        """Return an API client for *version*, building it on first use.

        The client is stored under the canonical negotiated version, so a
        later request with that exact string reuses it.
        A request by alias (``""`` for instance) builds a fresh client each
        time; every client built here stays open until :meth:`close`.

        Raises:
            ClientCacheError: Whatever configuration resolution or client
                construction raised.
        """
        with self._lock:
            cached = self._clients.get(version)
        if cached is not None:
            debug(f"Client cache hit for {version}")
            return cached

        return self._client_calls.do(version, lambda: self._build_client(version))

    def close(self) -> None:
        """Close every client this cache has built, including replaced ones."""
        with self._lock:
            built, self._built = self._built, []
            self._clients.clear()
        for client in built:
            client.close()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _ensure_default(self) -> Configuration:
        """Load the base configuration, and check the server, exactly once.

        A failed load or check leaves nothing behind, so the next call
        tries again.
        """
        if self._default_config is not None:
            return self._default_config

        with self._default_lock:
            if self._default_config is not None:
                return self._default_config

            config = self._loader.client_config()
            debug(f"Loaded client configuration for {config.host}")
            if self._match_version:
                self._version_checker(self._default_client, config)
                debug("Server version matches client version")
            self._default_config = config
            return config

    def _resolve_config(self, version: str, base: Configuration) -> Configuration:
        with self._lock:
            cached = self._configs.get(version)
        if cached is not None:
            return cached

        config = base.clone()
        preferred = GroupVersion.parse(version) if version else None
        registered = [GroupVersion.parse(entry) for entry in self._registry.versions()]

        negotiated = self._negotiator(self._default_client, config, preferred, registered)
        config.group_version = negotiated
        set_defaults(config)

        canonical = str(negotiated)
        with self._lock:
            self._configs[version] = config
            if canonical != version:
                self._configs[canonical] = config.clone()
        debug(f"Negotiated API version {canonical} for {version or '(server default)'}")
        return config

    def _build_client(self, version: str) -> APIClient:
        with self._lock:
            cached = self._clients.get(version)
        if cached is not None:
            return cached

        config = self.client_config_for_version(version)
        client = self._client_factory(config)
        with self._lock:
            self._clients[str(config.group_version)] = client
            self._built.append(client)
        debug(f"Built API client for {config.group_version}")
        return client
