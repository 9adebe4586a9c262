"""Get command -- fetch a resource under a negotiated API version.

``clientcache get PATH`` resolves a client for ``--api-version`` (the
server's preferred version when omitted), joins ``PATH`` onto that
version's root (``/api/v1`` or ``/apis/<group>/<version>``) and prints the
response body.
"""

from __future__ import annotations

from typing import Optional

import typer

from clientcache.commands import get_cache, handle_errors
from clientcache.output import debug, error, format_response


def get_command(
    ctx: typer.Context,
    path: str = typer.Argument(
        help="Resource path relative to the version root, e.g. 'namespaces'."
    ),
    api_version: str = typer.Option(
        "", "--api-version", help="Group-version to use, e.g. 'v1' or 'apps/v1'."
    ),
    query: Optional[list[str]] = typer.Option(
        None, "--query", "-Q", help="Query parameter as key=value (repeatable)."
    ),
) -> None:
    """GET a resource and print the response.

    Args:
        ctx: Typer context carrying the invocation's cache.
        path: Resource path relative to the negotiated version root.
        api_version: Requested group-version; empty lets the server choose.
        query: Query parameters in ``key=value`` form.

    Raises:
        typer.Exit: With the error's exit code when resolution or the
            request fails, or code 2 for a malformed ``--query``.

    Example::

        clientcache get namespaces
        clientcache get deployments --api-version apps/v1 -Q limit=5
    """
    params: dict[str, str] = {}
    for item in query or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            error(f"Invalid query parameter (expected key=value): {item}")
            raise typer.Exit(code=2)
        params[key] = value

    with handle_errors():
        client = get_cache(ctx).client_for_version(api_version)
        full_path = client.versioned_path(path)
        debug(f"GET {full_path}")
        response = client.get(full_path, params=params or None)

    try:
        body = response.json()
    except ValueError:
        body = response.text
    format_response(body)
