"""API versions command -- list the group-versions the server serves."""

from __future__ import annotations

import typer

from clientcache.commands import get_cache, handle_errors
from clientcache.output import print_table


def api_versions_command(ctx: typer.Context) -> None:
    """Print the group-versions advertised by the server, sorted.

    Example::

        clientcache api-versions
        clientcache --json api-versions
    """
    with handle_errors():
        client = get_cache(ctx).client_for_version("")
        advertised = client.server_api_versions()

    rows = [[gv] for gv in sorted(advertised.versions)]
    print_table(["VERSION"], rows, title="API Versions")
