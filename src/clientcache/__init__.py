"""clientcache -- memoized, version-negotiated API clients for command-line tools.

A command-line tool that talks to a versioned API server usually needs the
same few expensive steps before its first request: load a connection
configuration, confirm that the server's version matches the client, and
negotiate which API group-version both sides will speak.  This package
performs those steps once per distinct version string and reuses the
resulting configuration and client objects for every later call.

Typical use::

    from clientcache.cache import ClientCache
    from clientcache.loader import ProfileConfigLoader

    cache = ClientCache(ProfileConfigLoader(), match_version=True)
    client = cache.client_for_version("v1")
    response = client.get(client.versioned_path("namespaces"))

Modules:
    cache: The :class:`~clientcache.cache.ClientCache` itself.
    client: httpx-backed API client, version check, and negotiation.
    loader: Pluggable loaders producing the base connection configuration.
    registry: Group-versions known to this process.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration and profile management.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.3.0"
