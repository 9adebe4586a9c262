"""Version command -- print the client and server versions."""

from __future__ import annotations

import typer

from clientcache import __version__
from clientcache.commands import get_cache, handle_errors
from clientcache.output import format_response


def version_command(
    ctx: typer.Context,
    client_only: bool = typer.Option(
        False, "--client", help="Only print the client version."
    ),
) -> None:
    """Print the client version and the server's version.

    The server is queried through the cache's server-default client, so
    ``--match-server-version`` is honoured before anything is printed.

    Example::

        clientcache version
        clientcache version --client --json
    """
    data: dict[str, object] = {"clientVersion": __version__}
    if not client_only:
        with handle_errors():
            client = get_cache(ctx).client_for_version("")
            server = client.server_version()
        data["serverVersion"] = server.model_dump(by_alias=True)
    format_response(data)
