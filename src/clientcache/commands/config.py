"""Config commands -- view and modify settings and server profiles.

Provides the ``clientcache config`` sub-command group for reading and
updating the user's global configuration file
(:class:`~clientcache.models.GlobalConfig`) and for managing the
per-server :class:`~clientcache.models.Profile` files the profile loader
reads.  Settings are persisted in the clientcache config directory.
"""

from __future__ import annotations

from typing import Optional

import typer

from clientcache.commands import handle_errors
from clientcache.output import error, format_response, info, print_table, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show current configuration.

    Loads the global config from disk and prints the config directory
    path followed by the full configuration as formatted output (table
    or JSON, depending on the active output mode).

    Example::

        clientcache config show
        clientcache config show --json
    """
    from clientcache.config import get_config_dir, load_global_config

    with handle_errors():
        config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'output.format')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to match the
    existing field's type (bool, int, list or str); list values are comma
    separated.  The updated config is validated against
    :class:`~clientcache.models.GlobalConfig` before saving.

    Raises:
        typer.Exit: With code 2 if the key path is invalid, the value
            cannot be coerced, or Pydantic validation fails.

    Example::

        clientcache config set default_profile staging
        clientcache config set match_server_version true
        clientcache config set api_versions v1,apps/v1
    """
    from clientcache.config import load_global_config, save_global_config
    from clientcache.models import GlobalConfig

    with handle_errors():
        config = load_global_config()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    current = target[final_key]
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes")
    elif isinstance(current, int):
        try:
            coerced = int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    elif isinstance(current, list):
        coerced = [part.strip() for part in value.split(",") if part.strip()]  # type: ignore[assignment]
    else:
        coerced = value  # type: ignore[assignment]

    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except Exception as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    with handle_errors():
        save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("profiles")
def config_profiles() -> None:
    """List stored profiles, marking the default one.

    Example::

        clientcache config profiles
    """
    from clientcache.config import list_profiles, load_global_config, load_profile

    with handle_errors():
        default = load_global_config().default_profile
        rows = []
        for name in list_profiles():
            profile = load_profile(name)
            marker = "*" if name == default else ""
            rows.append([marker, name, profile.server, profile.api_version or "-"])

    if not rows:
        info("No profiles. Create one with: clientcache config set-profile NAME --server URL")
        return
    print_table(["", "NAME", "SERVER", "API VERSION"], rows, title="Profiles")


@config_app.command("set-profile")
def config_set_profile(
    name: str = typer.Argument(help="Profile name."),
    server: Optional[str] = typer.Option(
        None, "--server", "-s", help="API server URL (required for a new profile)."
    ),
    api_version: Optional[str] = typer.Option(
        None, "--api-version", help="Group-version to prefer when none is requested."
    ),
    api_path: Optional[str] = typer.Option(
        None, "--api-path", help="Override the versioned API path prefix."
    ),
    token_source: Optional[str] = typer.Option(
        None, "--token-source", help="Bearer token source: env:VAR, file:/path, or prompt."
    ),
    username: Optional[str] = typer.Option(
        None, "--username", help="Basic-auth username."
    ),
    password_source: Optional[str] = typer.Option(
        None, "--password-source", help="Basic-auth password source."
    ),
    insecure: Optional[bool] = typer.Option(
        None, "--insecure/--verify", help="Skip or enforce TLS verification."
    ),
) -> None:
    """Create a profile, or update the given fields of an existing one.

    Secrets are never stored: only their source descriptors are.  An
    ``--api-version`` is validated before the profile is written.

    Example::

        clientcache config set-profile staging --server https://10.0.0.1:6443 \\
            --token-source env:STAGING_TOKEN
        clientcache config set-profile staging --api-version apps/v1
    """
    from clientcache.config import load_profile, profile_exists, save_profile
    from clientcache.models import GroupVersion, Profile

    with handle_errors():
        if api_version:
            GroupVersion.parse(api_version)

        if profile_exists(name):
            profile = load_profile(name)
        elif server is None:
            error(f"Profile '{name}' does not exist; --server is required to create it")
            raise typer.Exit(code=2)
        else:
            profile = Profile(name=name, server=server)

        updates = {
            "server": server,
            "api_version": api_version,
            "api_path": api_path,
            "token_source": token_source,
            "username": username,
            "password_source": password_source,
        }
        for field, value in updates.items():
            if value is not None:
                setattr(profile, field, value)
        if insecure is not None:
            profile.request.verify_ssl = not insecure

        save_profile(profile)
    success(f"Saved profile '{name}' ({profile.server})")


@config_app.command("use-profile")
def config_use_profile(
    name: str = typer.Argument(help="Profile name."),
) -> None:
    """Make a profile the default for later invocations.

    Example::

        clientcache config use-profile staging
    """
    from clientcache.config import load_global_config, profile_exists, save_global_config

    with handle_errors():
        if not profile_exists(name):
            error(f"Profile '{name}' not found")
            raise typer.Exit(code=4)
        config = load_global_config()
        config.default_profile = name
        save_global_config(config)
    success(f"Default profile set to '{name}'")


@config_app.command("delete-profile")
def config_delete_profile(
    name: str = typer.Argument(help="Profile name."),
) -> None:
    """Delete a profile, clearing it as the default if it was one.

    Example::

        clientcache config delete-profile staging
    """
    from clientcache.config import delete_profile, load_global_config, save_global_config

    with handle_errors():
        delete_profile(name)
        config = load_global_config()
        if config.default_profile == name:
            config.default_profile = None
            save_global_config(config)
    success(f"Deleted profile '{name}'")
