"""Built-in CLI sub-commands for clientcache.

This package groups the Typer command modules that form the CLI's
command tree:

* :mod:`~clientcache.commands.version` -- client and server versions.
* :mod:`~clientcache.commands.api_versions` -- versions the server serves.
* :mod:`~clientcache.commands.get` -- GET a resource under a negotiated
  version.
* :mod:`~clientcache.commands.negotiate` -- show how version strings
  resolve.
* :mod:`~clientcache.commands.config` -- view and modify settings and
  profiles.

Commands that talk to the server share the invocation's
:class:`~clientcache.cache.ClientCache`, fetched with :func:`get_cache`.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import typer

from clientcache.cache import ClientCache
from clientcache.exceptions import ClientCacheError
from clientcache.output import error


def get_cache(ctx: typer.Context) -> ClientCache:
    """Return the :class:`ClientCache` created by the root callback.

    Raises:
        RuntimeError: If the command was invoked outside the root app.
    """
    obj = ctx.find_root().obj or {}
    cache = obj.get("cache")
    if cache is None:
        raise RuntimeError("ClientCache not initialised; invoke through the clientcache app")
    return cache


@contextmanager
def handle_errors() -> Iterator[None]:
    """Report a :class:`ClientCacheError` and exit with its exit code."""
    try:
        yield
    except ClientCacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
