"""Canonical Pydantic models shared across all clientcache modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Version models** -- API group-versions and what the server reports about
them:
    :class:`GroupVersion`, :class:`ServerVersion`, and :class:`APIVersions`.

**Connection model** -- everything needed to reach the server:
    :class:`Configuration`, produced by a
    :class:`~clientcache.loader.ClientConfigLoader`, finalised by
    :class:`~clientcache.cache.ClientCache`, and consumed by
    :class:`~clientcache.client.APIClient`.

**Persisted configuration models** -- serialised as JSON in the user's
config directory:
    :class:`RequestConfig`, :class:`OutputConfig`, :class:`Profile`, and
    :class:`GlobalConfig`.

All models use Pydantic v2 with ``model_config`` where needed.
"""

from __future__ import annotations

import re
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from clientcache.exceptions import InvalidVersionError

_DNS_LABEL_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
_DNS_LABEL_MAX = 63
_DNS_SUBDOMAIN_MAX = 253


def _is_dns_label(value: str) -> bool:
    return len(value) <= _DNS_LABEL_MAX and bool(_DNS_LABEL_RE.match(value))


def _is_dns_subdomain(value: str) -> bool:
    if len(value) > _DNS_SUBDOMAIN_MAX:
        return False
    return all(_is_dns_label(part) for part in value.split("."))


# --- Version models ---


class GroupVersion(BaseModel):
    """An API group and version pair, e.g. ``apps/v1`` or the legacy ``v1``.

    The legacy (core) group has an empty ``group`` and renders as just the
    version.  Instances are immutable so that they can be shared between
    cached configurations without copying.

    Example::

        gv = GroupVersion.parse("extensions/v1beta1")
        assert gv.group == "extensions"
        assert str(gv) == "extensions/v1beta1"
        assert str(GroupVersion.parse("v1")) == "v1"
    """

    model_config = ConfigDict(frozen=True)

    group: str = ""
    version: str = ""

    @classmethod
    def parse(cls, text: str) -> GroupVersion:
        """Parse a ``group/version`` or bare ``version`` string.

        An empty string (or a lone ``/``) yields the empty group-version.

        Args:
            text: The string to parse.

        Returns:
            The parsed :class:`GroupVersion`.

        Raises:
            InvalidVersionError: If the string has more than one ``/``, or
                its group is not a lowercase DNS subdomain, or its version
                is not a lowercase DNS label.
        """
        if text in ("", "/"):
            return cls()

        slashes = text.count("/")
        if slashes == 0:
            group, version = "", text
        elif slashes == 1:
            group, version = text.split("/")
        else:
            raise InvalidVersionError(f"unexpected GroupVersion string: {text!r}")

        if not _is_dns_label(version):
            raise InvalidVersionError(
                f"invalid API version {version!r} in {text!r}: "
                "must be a lowercase alphanumeric DNS label (e.g. 'v1', 'v1beta1')"
            )
        if group and not _is_dns_subdomain(group):
            raise InvalidVersionError(
                f"invalid API group {group!r} in {text!r}: "
                "must be a lowercase DNS subdomain (e.g. 'apps', 'batch.example.com')"
            )
        return cls(group=group, version=version)

    def is_empty(self) -> bool:
        """Return ``True`` when neither group nor version is set."""
        return not self.group and not self.version

    def __str__(self) -> str:
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"


class ServerVersion(BaseModel):
    """The server's ``/version`` document.

    Only ``gitVersion`` is used for compatibility checks; the remaining
    fields are kept for display by ``clientcache version``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    major: str = ""
    minor: str = ""
    git_version: str = Field(default="", alias="gitVersion")
    git_commit: str = Field(default="", alias="gitCommit")
    build_date: str = Field(default="", alias="buildDate")
    platform: str = ""


class APIVersions(BaseModel):
    """The group-versions a server advertises through discovery.

    ``versions`` keeps the server's order.  ``preferred_version`` is the
    server's explicit preference when it reports one.
    """

    versions: list[str] = Field(default_factory=list)
    preferred_version: Optional[str] = None


# --- Connection model ---


class Configuration(BaseModel):
    """How to reach the API server, optionally bound to a negotiated version.

    A loader produces a *base* configuration with ``group_version`` unset.
    :class:`~clientcache.cache.ClientCache` clones it per requested version,
    sets ``group_version`` to the negotiated value, and fills defaults via
    :func:`~clientcache.client.set_defaults`.

    ``transport`` is an optional :class:`httpx.BaseTransport` used instead
    of a network connection (tests, proxies, in-process servers).  It is
    never serialised and is shared, not copied, by :meth:`clone`.

    Configurations returned by the cache are shared with later callers and
    must be treated as read-only; call :meth:`clone` before modifying one.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    host: str = Field(description="Base URL of the API server, e.g. https://10.0.0.1:6443")
    api_path: str = Field(
        default="", description="Path prefix of versioned APIs (/api or /apis when empty)"
    )
    group_version: Optional[GroupVersion] = None
    user_agent: str = ""
    content_type: str = ""
    bearer_token: Optional[str] = Field(default=None, repr=False)
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    timeout: float = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates")
    max_retries: int = Field(default=3, description="Max retry attempts")
    headers: dict[str, str] = Field(default_factory=dict)
    transport: Optional[httpx.BaseTransport] = Field(default=None, exclude=True, repr=False)

    def clone(self) -> Configuration:
        """Return an independent copy of this configuration.

        Every field is either immutable or copied, except ``transport``
        which is deliberately shared.
        """
        return self.model_copy(update={"headers": dict(self.headers)})


# --- Persisted configuration models ---


class RequestConfig(BaseModel):
    """Default HTTP request settings applied to every API call in a profile."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(default=3, description="Max retry attempts")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class Profile(BaseModel):
    """Per-server profile stored as JSON under the ``profiles/`` config directory.

    A profile names one API server and the credentials used to reach it.
    Secrets are never stored inline: ``token_source`` and
    ``password_source`` are credential source descriptors resolved by
    :func:`~clientcache.config.resolve_credential` (``env:VAR``,
    ``file:/path``, or ``prompt``).

    Extra fields are preserved and accessible via ``model_extra``.

    See Also:
        :func:`~clientcache.config.load_profile`: Deserialise a profile by name.
        :func:`~clientcache.config.save_profile`: Persist a profile to disk.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    server: str = Field(description="Base URL of the API server")
    api_path: str = Field(default="", description="Override the versioned API path prefix")
    api_version: str = Field(
        default="", description="Group-version to prefer when none is requested"
    )
    token_source: Optional[str] = Field(
        default=None, description="Credential source for a bearer token"
    )
    username: Optional[str] = None
    password_source: Optional[str] = Field(
        default=None, description="Credential source for the basic-auth password"
    )
    request: RequestConfig = Field(default_factory=RequestConfig)


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/clientcache/config.json``.

    Loaded and saved by :func:`~clientcache.config.load_global_config` and
    :func:`~clientcache.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~clientcache.config.resolve_settings`
    for the full precedence chain.
    """

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True
    match_server_version: bool = Field(
        default=False, description="Refuse to talk to a server whose version differs"
    )
    api_versions: list[str] = Field(
        default_factory=list,
        description="Extra group-versions this client registers for negotiation",
    )
    output: OutputConfig = Field(default_factory=OutputConfig)


class ProjectConfig(BaseModel):
    """Per-directory overrides read from ``./clientcache.json``.

    Unset fields defer to :class:`GlobalConfig`; ``api_versions`` are added
    to, not substituted for, the other sources.
    """

    default_profile: Optional[str] = None
    match_server_version: Optional[bool] = None
    api_versions: list[str] = Field(default_factory=list)


class Settings(BaseModel):
    """What :class:`~clientcache.cache.ClientCache` is built from, after precedence.

    Produced by :func:`~clientcache.config.resolve_settings`.
    """

    match_server_version: bool = False
    output_format: str = Field(
        default="auto", description="Used when neither --json nor --plain is given"
    )
    api_versions: list[str] = Field(
        default_factory=list, description="Registered group-versions, preferred first"
    )
