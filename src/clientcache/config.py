"""Where clientcache keeps its settings, and how they combine.

Persistent state lives in the config directory (XDG on Linux/BSD,
``~/.clientcache/`` elsewhere):

* ``config.json`` -- :class:`~clientcache.models.GlobalConfig`: the default
  profile, ``match_server_version``, extra ``api_versions``, output format.
* ``profiles/<name>.json`` -- one :class:`~clientcache.models.Profile` per
  API server: its URL, preferred group-version and credential sources.

A ``clientcache.json`` in the working directory
(:class:`~clientcache.models.ProjectConfig`) can pin a profile, switch on
version matching and register more API versions for one project.

Two resolvers fold the layers together with the environment and CLI flags:

* :func:`resolve_settings` -- the version registry and the
  ``match_server_version`` switch the :class:`~clientcache.cache.ClientCache`
  is built with.  Never touches profiles, so it cannot fail for want of
  one.
* :func:`resolve_profile` -- which server to talk to.  Called lazily by
  :class:`~clientcache.loader.ProfileConfigLoader` on the cache's first use.

Files are written by :func:`_write_json`, which replaces the target
atomically.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Optional, TypeVar

from pydantic import BaseModel, ValidationError

from clientcache.exceptions import ConfigError
from clientcache.models import GlobalConfig, Profile, ProjectConfig, Settings
from clientcache.registry import versions_from_env

_APP_NAME = "clientcache"
_PROJECT_FILENAME = "clientcache.json"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")

_M = TypeVar("_M", bound=BaseModel)


# --- Directories ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(xdg_var: str, xdg_default: str, fallback: str = "") -> Path:
    """``$XDG_VAR/clientcache`` on XDG platforms, else ``~/.clientcache/<fallback>``."""
    if _is_xdg_platform():
        base = Path(os.environ.get(xdg_var) or Path.home() / xdg_default)
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / fallback
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory holding ``config.json`` and ``profiles/`` (created on demand)."""
    return _app_dir("XDG_CONFIG_HOME", ".config")


def get_data_dir() -> Path:
    """Directory for crash logs (created on demand)."""
    return _app_dir("XDG_DATA_HOME", ".local/share", fallback="logs")


def get_profiles_dir() -> Path:
    path = get_config_dir() / "profiles"
    path.mkdir(exist_ok=True)
    return path


# --- JSON files ---


def _write_json(path: Path, model: BaseModel) -> None:
    """Serialise *model* to *path*, replacing any previous file in one step.

    The temporary file sits next to *path* so ``os.replace`` stays on one
    filesystem.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(model.model_dump(mode="json"), indent=2) + "\n"
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def _read_json(path: Path, model: type[_M], what: str) -> Optional[_M]:
    """Load *path* into *model*, or ``None`` if the file does not exist."""
    if not path.is_file():
        return None
    try:
        return model.model_validate_json(path.read_bytes())
    except (ValidationError, OSError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / "config.json"


def load_global_config() -> GlobalConfig:
    """Return the stored :class:`~clientcache.models.GlobalConfig`, or defaults.

    Raises:
        ConfigError: If the file exists but is not a valid global config.
    """
    return _read_json(_global_config_path(), GlobalConfig, "global config") or GlobalConfig()


def save_global_config(config: GlobalConfig) -> None:
    _write_json(_global_config_path(), config)


# --- Profiles ---


def _profile_path(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


def load_profile(name: str) -> Profile:
    """Load the profile called *name*.

    Raises:
        ConfigError: If it does not exist or is not a valid profile.
    """
    path = _profile_path(name)
    profile = _read_json(path, Profile, f"profile '{name}'")
    if profile is None:
        raise ConfigError(f"Profile '{name}' not found at {path}")
    return profile


def save_profile(profile: Profile) -> None:
    _write_json(_profile_path(profile.name), profile)


def delete_profile(name: str) -> None:
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


# --- Project file ---


def load_project_config() -> ProjectConfig:
    """Read ``./clientcache.json``; an absent file means no overrides."""
    path = Path.cwd() / _PROJECT_FILENAME
    return _read_json(path, ProjectConfig, "project config") or ProjectConfig()


# --- Resolution ---


def _env_flag(name: str) -> Optional[bool]:
    raw = os.environ.get(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean (true/false), got: {raw!r}")


def resolve_settings(cli_match_version: bool = False) -> Settings:
    """Combine flags, environment, project file and global config.

    ``match_server_version``: the ``--match-server-version`` flag, else
    ``CLIENTCACHE_MATCH_SERVER_VERSION``, else the project file, else the
    global config.

    ``api_versions``: ``CLIENTCACHE_API_VERSIONS`` (or the built-in
    defaults) first, then the project file's, then the global config's;
    the first occurrence of a version fixes its position.

    Raises:
        ConfigError: If a config file or the environment is malformed.
    """
    global_cfg = load_global_config()
    project = load_project_config()

    layers = (
        True if cli_match_version else None,
        _env_flag("CLIENTCACHE_MATCH_SERVER_VERSION"),
        project.match_server_version,
        global_cfg.match_server_version,
    )
    match = next(layer for layer in layers if layer is not None)

    versions = [*versions_from_env(), *project.api_versions, *global_cfg.api_versions]
    return Settings(
        match_server_version=match,
        api_versions=list(dict.fromkeys(versions)),
        output_format=global_cfg.output.format,
    )


def resolve_profile(
    cli_profile: Optional[str] = None,
    cli_server: Optional[str] = None,
) -> Optional[Profile]:
    """Pick the server profile for this invocation.

    The profile name comes from the first of: ``cli_profile``,
    ``CLIENTCACHE_PROFILE``, the project file, the global default, or the
    only stored profile.  A server URL from ``cli_server`` or
    ``CLIENTCACHE_SERVER`` then replaces the profile's, or stands in for a
    profile named ``"default"`` when none was picked.

    Returns:
        The profile, or ``None`` if neither a profile nor a server is known.

    Raises:
        ConfigError: If the named profile is missing or invalid.
    """
    global_cfg = load_global_config()
    name = (
        cli_profile
        or os.environ.get("CLIENTCACHE_PROFILE")
        or load_project_config().default_profile
        or global_cfg.default_profile
    )
    if name is None and global_cfg.auto_select_single_profile:
        stored = list_profiles()
        if len(stored) == 1:
            name = stored[0]

    profile = load_profile(name) if name else None

    server = cli_server or os.environ.get("CLIENTCACHE_SERVER")
    if server:
        if profile is None:
            return Profile(name="default", server=server)
        profile.server = server
    return profile


# --- Credentials ---


def _from_env(var: str) -> str:
    value = os.environ.get(var)
    if value is None:
        raise ConfigError(f"Environment variable '{var}' is not set (source: env:{var})")
    return value


def _from_file(location: str) -> str:
    path = Path(location).expanduser()
    try:
        return path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        raise ConfigError(f"Credential file not found: {path} (source: file:{location})") from None
    except OSError as exc:
        raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc


def resolve_credential(source: str) -> str:
    """Return the secret a profile's ``token_source``/``password_source`` points at.

    ``env:VAR`` reads an environment variable, ``file:PATH`` reads a file
    (surrounding whitespace stripped) and ``prompt`` asks on the terminal.

    Raises:
        ConfigError: If the source is unknown or yields nothing.
    """
    scheme, sep, rest = source.partition(":")
    if sep and scheme == "env":
        return _from_env(rest)
    if sep and scheme == "file":
        return _from_file(rest)
    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError("Cannot prompt for credentials: stdin is not a TTY (source: prompt)")
        return getpass.getpass("Enter credential: ")
    raise ConfigError(f"Unknown credential source format: {source}")
