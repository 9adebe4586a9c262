"""Negotiate command -- show what each requested version resolves to."""

from __future__ import annotations

from typing import Optional

import typer

from clientcache.commands import get_cache, handle_errors
from clientcache.output import print_table


def negotiate_command(
    ctx: typer.Context,
    versions: Optional[list[str]] = typer.Argument(
        None, help="Requested group-versions; none means the server default."
    ),
) -> None:
    """Resolve each requested version through the cache and print the result.

    Repeated and equivalent versions are resolved once; later rows are
    served from the cache.

    Example::

        clientcache negotiate
        clientcache negotiate v1 apps/v1
    """
    cache = get_cache(ctx)
    rows: list[list[str]] = []
    with handle_errors():
        for requested in versions or [""]:
            config = cache.client_config_for_version(requested)
            rows.append([requested or "(default)", str(config.group_version), config.api_path])

    print_table(["REQUESTED", "NEGOTIATED", "API PATH"], rows, title="Negotiated Versions")
