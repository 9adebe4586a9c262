"""Typer application and CLI entry point for clientcache.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``version``, ``api-versions``, ``get``,
``negotiate``, ``config``).  The root callback initialises output and
builds the invocation's single :class:`~clientcache.cache.ClientCache`,
which every server-facing command shares through the Typer context.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``.  It installs signal handlers and invokes the Typer app.
Unhandled exceptions are written to a crash log under the data directory.

See Also:
    :mod:`clientcache.loader`: How the base connection configuration is found.
    :mod:`clientcache.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from clientcache import __version__
from clientcache.exit_codes import EXIT_GENERIC_FAILURE
from clientcache.loader import default_loader


app = typer.Typer(
    name="clientcache",
    help="Talk to a versioned API server through negotiated, cached clients.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"clientcache {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Profile name to use."
    ),
    server: Optional[str] = typer.Option(
        None, "--server", "-s", help="API server URL (overrides the profile)."
    ),
    config_file: Optional[str] = typer.Option(
        None, "--config-file", help="JSON or YAML connection file (overrides profiles)."
    ),
    match_server_version: bool = typer.Option(
        False,
        "--match-server-version",
        help="Require the server version to match the client version.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~clientcache.output.OutputManager` from
    CLI flags and builds the :class:`~clientcache.cache.ClientCache` for
    this invocation.  Nothing is loaded or contacted yet: the cache reads
    its configuration on first use.

    Args:
        ctx: Typer invocation context.
        version: If ``True``, print the version string and exit.
        profile: Profile name override (highest precedence).
        server: Server URL override (highest precedence).
        config_file: Connection file used instead of profiles.
        match_server_version: Verify the server version on first use.
            Also enabled by ``CLIENTCACHE_MATCH_SERVER_VERSION`` or the
            project or global config.
        json_output: Force JSON output format.
        plain_output: Force plain-text output format.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential diagnostic output.
        verbose: Enable debug-level diagnostic output.
    """
    from clientcache.cache import ClientCache
    from clientcache.commands import handle_errors
    from clientcache.config import resolve_settings
    from clientcache.output import OutputFormat, OutputManager, set_output
    from clientcache.registry import VersionRegistry

    with handle_errors():
        settings = resolve_settings(cli_match_version=match_server_version)

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        try:
            fmt = OutputFormat(settings.output_format)
        except ValueError:
            fmt = OutputFormat.AUTO

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    cache = ClientCache(
        default_loader(profile=profile, server=server, config_file=config_file),
        match_version=settings.match_server_version,
        registry=VersionRegistry(settings.api_versions),
    )

    ctx.ensure_object(dict)
    ctx.obj["profile"] = profile
    ctx.obj["server"] = server
    ctx.obj["verbose"] = verbose
    ctx.obj["cache"] = cache
    ctx.call_on_close(cache.close)


# ------------------------------------------------------------------ #
# Built-in commands
# ------------------------------------------------------------------ #

from clientcache.commands.api_versions import api_versions_command  # noqa: E402
from clientcache.commands.config import config_app  # noqa: E402
from clientcache.commands.get import get_command  # noqa: E402
from clientcache.commands.negotiate import negotiate_command  # noqa: E402
from clientcache.commands.version import version_command  # noqa: E402

app.command("version")(version_command)
app.command("api-versions")(api_versions_command)
app.command("get")(get_command)
app.command("negotiate")(negotiate_command)
app.add_typer(config_app, name="config", help="Configuration and profile management.")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path.

    Args:
        exc: The unhandled exception to log.

    Returns:
        Absolute path to the written crash log file.
    """
    from clientcache.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``clientcache`` console script.

    Unhandled :class:`~clientcache.exceptions.ClientCacheError` instances
    cause a clean exit with the error's ``exit_code``.  All other exceptions
    produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from clientcache.exceptions import ClientCacheError
        from clientcache.output import error

        if isinstance(exc, ClientCacheError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
