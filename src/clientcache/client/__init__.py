"""API client construction for clientcache.

Provides the client handle and the client-side collaborators that
:class:`~clientcache.cache.ClientCache` orchestrates:

    :class:`APIClient` -- httpx-backed client bound to one configuration.
    :func:`new_client` -- build an :class:`APIClient` from a finalised
        configuration (the cache's default client constructor).
    :func:`set_defaults` -- fill version-independent defaults into a
        configuration after negotiation.

The version check and negotiation algorithm live in
:mod:`clientcache.client.version`.

Example::

    from clientcache.client import new_client

    client = new_client(config)
    resp = client.get(client.versioned_path("namespaces"))
"""

from __future__ import annotations

import platform

from clientcache import __version__
from clientcache.client.sync_client import APIClient, default_api_path
from clientcache.exceptions import ConfigError
from clientcache.models import Configuration

__all__ = ["APIClient", "new_client", "set_defaults", "default_user_agent"]

DEFAULT_CONTENT_TYPE = "application/json"


def default_user_agent() -> str:
    """Return ``clientcache/<version> (<os>/<arch>)``."""
    return f"clientcache/{__version__} ({platform.system().lower()}/{platform.machine().lower()})"


def set_defaults(config: Configuration) -> None:
    """Fill version-independent defaults into *config* in place.

    Sets the API path prefix from the group-version (``/api`` for the
    legacy group, ``/apis`` for named groups), the user agent, and the
    content type, leaving any value the caller already set untouched.
    """
    if not config.api_path:
        config.api_path = default_api_path(config)
    if not config.user_agent:
        config.user_agent = default_user_agent()
    if not config.content_type:
        config.content_type = DEFAULT_CONTENT_TYPE


def new_client(config: Configuration) -> APIClient:
    """Construct an :class:`APIClient` from a negotiated configuration.

    Args:
        config: A configuration whose ``group_version`` has been set.

    Returns:
        A new, open :class:`APIClient`.

    Raises:
        ConfigError: If the configuration has no host or no group-version.
    """
    if not config.host:
        raise ConfigError("Host must be set to build an API client")
    if config.group_version is None or config.group_version.is_empty():
        raise ConfigError("GroupVersion is required when building an API client")
    return APIClient(config)
