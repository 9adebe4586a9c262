"""Client/server version compatibility and API version negotiation.

Two collaborators of :class:`~clientcache.cache.ClientCache` live here:

* :func:`matches_server_version` -- the optional bootstrap check that the
  server runs the same release as this client.
* :func:`negotiate_version` -- picks the group-version both sides will
  speak, given the caller's preference and the client's registered set.

Both accept ``client=None``.  In that case they open a short-lived
discovery client from the configuration and close it before returning,
so the cache never has to construct a bootstrap client of its own.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from clientcache import __version__
from clientcache.client.sync_client import APIClient
from clientcache.exceptions import ClientCacheError, NegotiationError, VersionMismatchError
from clientcache.models import Configuration, GroupVersion
from clientcache.output import debug


@contextmanager
def _discovery_client(
    client: Optional[APIClient], config: Configuration
) -> Iterator[APIClient]:
    """Yield *client*, or a temporary unversioned client closed on exit."""
    if client is not None:
        yield client
        return
    with APIClient(config) as temporary:
        yield temporary


def _normalize(version: str) -> str:
    return version.strip().lstrip("v")


def matches_server_version(
    client: Optional[APIClient],
    config: Configuration,
    client_version: Optional[str] = None,
) -> None:
    """Check that the server reports the same version as this client.

    Args:
        client: Client to query, or ``None`` to use a temporary one built
            from *config*.
        config: Connection configuration.
        client_version: Version to compare against; defaults to this
            package's ``__version__``.  A leading ``v`` is ignored on both
            sides.

    Raises:
        VersionMismatchError: If the server's version cannot be read or
            differs from *client_version*.
    """
    expected = client_version or __version__
    with _discovery_client(client, config) as discovery:
        try:
            server = discovery.server_version()
        except ClientCacheError as exc:
            raise VersionMismatchError(f"couldn't read version from server: {exc}") from exc

    if _normalize(server.git_version) != _normalize(expected):
        raise VersionMismatchError(
            f"server version ({server.git_version or 'unknown'}) differs from "
            f"client version (v{_normalize(expected)})"
        )


def negotiate_version(
    client: Optional[APIClient],
    config: Configuration,
    preferred: Optional[GroupVersion],
    registered: list[GroupVersion],
) -> GroupVersion:
    """Choose the group-version to use against the server.

    The preferred version is *preferred* when given, else
    ``config.group_version`` when set.

    * A preferred version must be in *registered*.  It is accepted when the
      server serves it, or when the server advertises nothing at all
      (discovery can be forbidden).  If it came from the configuration and
      the server does not serve it, negotiation fails.
    * Otherwise the server's choice applies: its reported preferred
      version, else the first version it lists.  That choice must be in
      *registered*.

    Args:
        client: Client to query, or ``None`` to use a temporary one built
            from *config*.
        config: Connection configuration; not modified.
        preferred: Caller-requested group-version, if any.
        registered: Group-versions this client supports, in preference order.

    Returns:
        The negotiated :class:`~clientcache.models.GroupVersion`.

    Raises:
        NegotiationError: If no mutually acceptable version exists.
        ClientCacheError: Transport errors from discovery, unchanged.
    """
    client_versions = [str(gv) for gv in registered]

    with _discovery_client(client, config) as discovery:
        server = discovery.server_api_versions()
    server_versions = server.versions
    debug(f"Server API versions: {', '.join(server_versions) or '(none)'}")

    from_config = False
    if preferred is None and config.group_version is not None and not config.group_version.is_empty():
        preferred = config.group_version
        from_config = True

    if preferred is not None and not preferred.is_empty():
        wanted = str(preferred)
        if wanted not in client_versions:
            raise NegotiationError(
                f"client does not support API version {wanted!r}; "
                f"client supported API versions: {client_versions}"
            )
        if not server_versions or wanted in server_versions:
            return preferred
        if from_config:
            raise NegotiationError(f"server does not support API version {wanted!r}")

    choice = server.preferred_version or (server_versions[0] if server_versions else None)
    if choice is not None and choice in client_versions:
        return registered[client_versions.index(choice)]

    raise NegotiationError(
        "failed to negotiate an api version; "
        f"server supports: {server_versions}, client supports: {client_versions}"
    )
