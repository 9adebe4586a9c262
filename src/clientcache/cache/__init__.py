"""Version-keyed caching of API configurations and clients.

This package provides :class:`ClientCache`, which loads the base connection
configuration once, negotiates an API version per requested version string,
and memoizes the resulting configurations and
:class:`~clientcache.client.APIClient` instances.

The cache is created by the CLI's root callback and consumed by every
command through :func:`~clientcache.commands.get_cache`.
"""

from clientcache.cache.cache import ClientCache

__all__ = ["ClientCache"]
