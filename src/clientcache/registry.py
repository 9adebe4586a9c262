"""Registry of the API group-versions this client process understands.

Version negotiation needs to know which group-versions the *client* can
speak before it asks the server which ones *it* serves.  The
:class:`VersionRegistry` holds that list, in preference order, as plain
strings.  Entries are deliberately not parsed on registration: the
:class:`~clientcache.cache.ClientCache` parses them at negotiation time so
that a malformed entry surfaces as an
:class:`~clientcache.exceptions.InvalidVersionError` from the call that
needed it.

For most use cases, call :func:`default_registry` to get the process-wide
registry, seeded from the ``CLIENTCACHE_API_VERSIONS`` environment
variable or :data:`DEFAULT_API_VERSIONS`.

See Also:
    :func:`~clientcache.client.version.negotiate_version` -- consumes the
    parsed registry.
"""

from __future__ import annotations

import os
import threading
from typing import Iterable, Iterator, Optional

DEFAULT_API_VERSIONS: tuple[str, ...] = ("v1",)
"""Group-versions registered when ``CLIENTCACHE_API_VERSIONS`` is unset."""

_ENV_VAR = "CLIENTCACHE_API_VERSIONS"


class VersionRegistry:
    """Ordered, de-duplicated collection of group-version strings.

    Earlier entries are preferred during negotiation.  Registering a string
    that is already present keeps its original position.

    Example::

        registry = VersionRegistry(["v1"])
        registry.register("apps/v1")
        assert registry.versions() == ["v1", "apps/v1"]
    """

    def __init__(self, versions: Optional[Iterable[str]] = None) -> None:
        self._versions: list[str] = []
        self._lock = threading.Lock()
        for version in versions or ():
            self.register(version)

    def register(self, version: str) -> None:
        """Append *version* unless it is already registered.

        Args:
            version: A group-version string such as ``"v1"`` or ``"apps/v1"``.
        """
        with self._lock:
            if version not in self._versions:
                self._versions.append(version)

    def versions(self) -> list[str]:
        """Return a snapshot of the registered strings in preference order."""
        with self._lock:
            return list(self._versions)

    def __contains__(self, version: object) -> bool:
        with self._lock:
            return version in self._versions

    def __iter__(self) -> Iterator[str]:
        return iter(self.versions())

    def __len__(self) -> int:
        with self._lock:
            return len(self._versions)

    def __repr__(self) -> str:
        return f"VersionRegistry({self.versions()!r})"


def versions_from_env() -> list[str]:
    """Read ``CLIENTCACHE_API_VERSIONS`` (comma separated), or the built-in defaults."""
    raw = os.environ.get(_ENV_VAR, "")
    versions = [part.strip() for part in raw.split(",") if part.strip()]
    return versions or list(DEFAULT_API_VERSIONS)


_default: Optional[VersionRegistry] = None
_default_lock = threading.Lock()


def default_registry() -> VersionRegistry:
    """Return the process-wide :class:`VersionRegistry`, creating it on first use."""
    global _default
    with _default_lock:
        if _default is None:
            _default = VersionRegistry(versions_from_env())
        return _default


def reset_default_registry() -> None:
    """Forget the process-wide registry so the next call re-reads the environment.

    Primarily useful in test suites.
    """
    global _default
    with _default_lock:
        _default = None
