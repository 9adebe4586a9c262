"""Loaders producing the base, version-independent connection configuration.

:class:`~clientcache.cache.ClientCache` calls its loader exactly once, on
first use, and negotiates every API version from the result.  A loader only
answers "how do I reach the server and with which credentials"; it never
picks an API version.

Available loaders:

* :class:`ProfileConfigLoader` -- the active profile from the user's config
  directory, resolved through :func:`~clientcache.config.resolve_profile`.
* :class:`FileConfigLoader` -- a standalone JSON or YAML connection file.
* :class:`StaticConfigLoader` -- a configuration built in code.

:func:`default_loader` picks between the first two the way the CLI does.
"""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from clientcache.config import resolve_credential, resolve_profile
from clientcache.exceptions import ConfigError
from clientcache.models import Configuration, GroupVersion, Profile


class ClientConfigLoader(ABC):
    """Source of the base :class:`~clientcache.models.Configuration`.

    Subclasses implement :meth:`client_config`.  Implementations may do
    I/O (read files, prompt for secrets) and should raise
    :class:`~clientcache.exceptions.ConfigError` when no usable
    configuration can be produced.
    """

    @abstractmethod
    def client_config(self) -> Configuration:
        """Return a fresh base configuration.

        Raises:
            ConfigError: If the configuration cannot be loaded.
        """
        ...


class StaticConfigLoader(ClientConfigLoader):
    """Serve a configuration built in code.

    Each call returns a clone, so callers cannot alter the loader's copy.
    """

    def __init__(self, config: Configuration) -> None:
        self._config = config

    def client_config(self) -> Configuration:
        return self._config.clone()


class FileConfigLoader(ClientConfigLoader):
    """Read a connection file in JSON or YAML.

    The file holds the fields of :class:`~clientcache.models.Configuration`
    (``host`` is required).  ``bearer_token`` and ``password`` may be given
    as credential sources instead, through ``token_source`` and
    ``password_source``.

    Example file::

        host: https://127.0.0.1:6443
        token_source: env:API_TOKEN
        verify_ssl: false
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def client_config(self) -> Configuration:
        if not self._path.is_file():
            raise ConfigError(f"Connection file not found: {self._path}")
        try:
            content = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Failed to read connection file {self._path}: {exc}") from exc
        if not content.strip():
            raise ConfigError(f"Connection file is empty: {self._path}")

        suffix = self._path.suffix.lower()
        hint = "json" if suffix == ".json" else "yaml" if suffix in (".yaml", ".yml") else ""
        data = _parse_content(content, hint, source=str(self._path))

        token_source = data.pop("token_source", None)
        if token_source and not data.get("bearer_token"):
            data["bearer_token"] = resolve_credential(token_source)
        password_source = data.pop("password_source", None)
        if password_source and not data.get("password"):
            data["password"] = resolve_credential(password_source)
        if isinstance(data.get("group_version"), str):
            data["group_version"] = GroupVersion.parse(data["group_version"])

        try:
            return Configuration.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid connection file {self._path}: {exc}") from exc


class ProfileConfigLoader(ClientConfigLoader):
    """Build the configuration from the active profile.

    Args:
        profile: Profile name override (highest precedence).
        server: Server URL override (highest precedence).

    The profile is resolved on each call, through the same precedence chain
    as the CLI (flag, ``CLIENTCACHE_PROFILE``, ``./clientcache.json``,
    global default, single-profile auto-select).
    """

    def __init__(self, profile: Optional[str] = None, server: Optional[str] = None) -> None:
        self._profile = profile
        self._server = server

    def client_config(self) -> Configuration:
        profile = resolve_profile(cli_profile=self._profile, cli_server=self._server)
        if profile is None:
            raise ConfigError(
                "No profile configured. Create one with "
                "'clientcache config set-profile NAME --server URL' or pass --server."
            )
        return configuration_from_profile(profile)


def configuration_from_profile(profile: Profile) -> Configuration:
    """Translate a stored :class:`~clientcache.models.Profile` into a configuration.

    Credential sources are resolved here; ``api_version`` becomes the
    configuration's default group-version (used by negotiation when the
    caller requests none).

    Raises:
        ConfigError: If a credential source cannot be resolved.
        InvalidVersionError: If ``api_version`` is malformed.
    """
    token = resolve_credential(profile.token_source) if profile.token_source else None
    password = resolve_credential(profile.password_source) if profile.password_source else None
    group_version = GroupVersion.parse(profile.api_version) if profile.api_version else None
    return Configuration(
        host=profile.server,
        api_path=profile.api_path,
        group_version=group_version,
        bearer_token=token,
        username=profile.username,
        password=password,
        timeout=profile.request.timeout,
        verify_ssl=profile.request.verify_ssl,
        max_retries=profile.request.max_retries,
    )


def default_loader(
    profile: Optional[str] = None,
    server: Optional[str] = None,
    config_file: Optional[str] = None,
) -> ClientConfigLoader:
    """Pick the loader the CLI uses.

    A connection file (argument, else ``CLIENTCACHE_CONFIG``) wins over
    profiles.
    """
    path = config_file or os.environ.get("CLIENTCACHE_CONFIG")
    if path:
        return FileConfigLoader(path)
    return ProfileConfigLoader(profile=profile, server=server)


def _parse_content(content: str, hint: str, source: str) -> dict[str, Any]:
    """Parse *content* as JSON or YAML.

    Tries JSON first unless the hint is ``yaml``; valid JSON is also valid
    YAML, but JSON parsing is stricter.

    Raises:
        ConfigError: If the content is neither, or is not a mapping.
    """
    if hint != "yaml":
        try:
            result = json.loads(content)
        except json.JSONDecodeError as exc:
            if hint == "json":
                raise ConfigError(f"Invalid JSON in {source}: {exc}") from exc
        else:
            return _require_mapping(result, source)

    try:
        result = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {source} as JSON or YAML: {exc}") from exc
    return _require_mapping(result, source)


def _require_mapping(result: Any, source: str) -> dict[str, Any]:
    if not isinstance(result, dict):
        kind = type(result).__name__ if result is not None else "empty document"
        raise ConfigError(f"{source} must contain a mapping (got {kind})")
    return result
