"""Tests for clientcache.config -- stored settings and how they resolve."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from clientcache.config import (
    delete_profile,
    get_config_dir,
    get_data_dir,
    get_profiles_dir,
    list_profiles,
    load_global_config,
    load_profile,
    load_project_config,
    profile_exists,
    resolve_credential,
    resolve_profile,
    resolve_settings,
    save_global_config,
    save_profile,
)
from clientcache.exceptions import ConfigError
from clientcache.models import GlobalConfig, Profile, ProjectConfig


def _project_file(root: Path, **data) -> None:
    (root / "clientcache.json").write_text(json.dumps(data), encoding="utf-8")


def _profile(name: str, server: str = "https://api.test") -> Profile:
    profile = Profile(name=name, server=server)
    save_profile(profile)
    return profile


# ---------------------------------------------------------------------------
# Directories
# ---------------------------------------------------------------------------


class TestDirectories:
    def test_xdg_locations(self, isolated_config: Path) -> None:
        assert get_config_dir() == isolated_config / "config" / "clientcache"
        assert get_data_dir() == isolated_config / "data" / "clientcache"
        assert get_profiles_dir() == isolated_config / "config" / "clientcache" / "profiles"
        assert get_profiles_dir().is_dir()

    def test_xdg_defaults_under_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("clientcache.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)

        assert get_config_dir() == tmp_path / ".config" / "clientcache"
        assert get_data_dir() == tmp_path / ".local" / "share" / "clientcache"

    def test_dot_directory_elsewhere(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("clientcache.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)

        assert get_config_dir() == tmp_path / ".clientcache"
        assert get_data_dir() == tmp_path / ".clientcache" / "logs"


# ---------------------------------------------------------------------------
# Stored files
# ---------------------------------------------------------------------------


class TestGlobalConfigFile:
    def test_missing_file_gives_defaults(self, isolated_config: Path) -> None:
        assert load_global_config() == GlobalConfig()

    def test_saved_settings_load_back(self, isolated_config: Path) -> None:
        saved = GlobalConfig(default_profile="staging", match_server_version=True, api_versions=["apps/v1"])
        save_global_config(saved)
        assert load_global_config() == saved

    def test_save_leaves_no_temporary_files(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(match_server_version=True))
        save_global_config(GlobalConfig(match_server_version=False))
        assert [p.name for p in get_config_dir().iterdir() if p.is_file()] == ["config.json"]

    def test_failed_write_keeps_previous_file(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        save_global_config(GlobalConfig(default_profile="before"))

        def _boom(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("clientcache.config.os.replace", _boom)
        with pytest.raises(OSError):
            save_global_config(GlobalConfig(default_profile="after"))

        assert load_global_config().default_profile == "before"
        assert [p.name for p in get_config_dir().iterdir() if p.is_file()] == ["config.json"]

    def test_invalid_file(self, isolated_config: Path) -> None:
        (get_config_dir() / "config.json").write_text("{broken", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_wrong_field_type(self, isolated_config: Path) -> None:
        (get_config_dir() / "config.json").write_text('{"api_versions": "v1"}', encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()


class TestProfileFiles:
    def test_save_list_load_delete(self, isolated_config: Path) -> None:
        staging = Profile(
            name="staging", server="https://10.0.0.1:6443", api_version="apps/v1", token_source="env:T"
        )
        save_profile(staging)
        _profile("dev")

        assert list_profiles() == ["dev", "staging"]
        assert load_profile("staging") == staging

        delete_profile("staging")
        assert not profile_exists("staging")
        assert list_profiles() == ["dev"]

    def test_unknown_fields_survive(self, isolated_config: Path) -> None:
        (get_profiles_dir() / "x.json").write_text(
            '{"name": "x", "server": "https://x.test", "note": "lab cluster"}', encoding="utf-8"
        )
        assert load_profile("x").model_extra == {"note": "lab cluster"}

    def test_missing_profile(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_profile("ghost")
        with pytest.raises(ConfigError, match="not found"):
            delete_profile("ghost")

    def test_profile_without_server(self, isolated_config: Path) -> None:
        (get_profiles_dir() / "bad.json").write_text('{"name": "bad"}', encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid profile 'bad'"):
            load_profile("bad")


class TestProjectFile:
    def test_absent_means_no_overrides(self, isolated_config: Path) -> None:
        assert load_project_config() == ProjectConfig()

    def test_read_from_working_directory(self, isolated_config: Path) -> None:
        _project_file(isolated_config, default_profile="dev", api_versions=["batch/v1"])
        project = load_project_config()
        assert project.default_profile == "dev"
        assert project.match_server_version is None
        assert project.api_versions == ["batch/v1"]

    def test_invalid_json(self, isolated_config: Path) -> None:
        (isolated_config / "clientcache.json").write_text("nope", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid project config"):
            load_project_config()


# ---------------------------------------------------------------------------
# Settings resolution
# ---------------------------------------------------------------------------


class TestResolveSettings:
    def test_defaults(self, isolated_config: Path) -> None:
        settings = resolve_settings()
        assert settings.match_server_version is False
        assert settings.api_versions == ["v1"]
        assert settings.output_format == "auto"

    def test_api_versions_accumulate_in_order(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CLIENTCACHE_API_VERSIONS", "v2,v1")
        _project_file(isolated_config, api_versions=["apps/v1", "v1"])
        save_global_config(GlobalConfig(api_versions=["batch/v1", "apps/v1"]))

        assert resolve_settings().api_versions == ["v2", "v1", "apps/v1", "batch/v1"]

    def test_global_enables_matching(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(match_server_version=True))
        assert resolve_settings().match_server_version is True

    def test_project_overrides_global(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(match_server_version=True))
        _project_file(isolated_config, match_server_version=False)
        assert resolve_settings().match_server_version is False

    def test_environment_overrides_project(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _project_file(isolated_config, match_server_version=True)
        monkeypatch.setenv("CLIENTCACHE_MATCH_SERVER_VERSION", "no")
        assert resolve_settings().match_server_version is False

    def test_flag_wins(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLIENTCACHE_MATCH_SERVER_VERSION", "false")
        assert resolve_settings(cli_match_version=True).match_server_version is True

    def test_malformed_environment_flag(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CLIENTCACHE_MATCH_SERVER_VERSION", "sometimes")
        with pytest.raises(ConfigError, match="CLIENTCACHE_MATCH_SERVER_VERSION"):
            resolve_settings()

    def test_does_not_need_a_profile(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(default_profile="ghost"))
        assert resolve_settings().api_versions == ["v1"]


# ---------------------------------------------------------------------------
# Profile resolution
# ---------------------------------------------------------------------------


class TestResolveProfile:
    """Name: flag > CLIENTCACHE_PROFILE > project > global > single profile."""

    def test_nothing_configured(self, isolated_config: Path) -> None:
        assert resolve_profile() is None

    def test_global_default(self, isolated_config: Path) -> None:
        _profile("a")
        _profile("b")
        save_global_config(GlobalConfig(default_profile="b"))
        assert resolve_profile().name == "b"

    def test_project_over_global(self, isolated_config: Path) -> None:
        _profile("a")
        _profile("b")
        save_global_config(GlobalConfig(default_profile="b"))
        _project_file(isolated_config, default_profile="a")
        assert resolve_profile().name == "a"

    def test_environment_over_project(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _profile("a")
        _profile("b")
        _project_file(isolated_config, default_profile="a")
        monkeypatch.setenv("CLIENTCACHE_PROFILE", "b")
        assert resolve_profile().name == "b"

    def test_flag_over_environment(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _profile("a")
        _profile("b")
        monkeypatch.setenv("CLIENTCACHE_PROFILE", "b")
        assert resolve_profile(cli_profile="a").name == "a"

    def test_single_profile_is_picked(self, isolated_config: Path) -> None:
        _profile("only")
        assert resolve_profile().name == "only"

    def test_single_profile_pick_can_be_disabled(self, isolated_config: Path) -> None:
        _profile("only")
        save_global_config(GlobalConfig(auto_select_single_profile=False))
        assert resolve_profile() is None

    def test_server_override_replaces_profile_url(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _profile("a", server="https://stored.test")
        monkeypatch.setenv("CLIENTCACHE_SERVER", "https://env.test")

        assert resolve_profile().server == "https://env.test"
        assert resolve_profile(cli_server="https://flag.test").server == "https://flag.test"
        assert load_profile("a").server == "https://stored.test"

    def test_server_alone_gives_ad_hoc_profile(self, isolated_config: Path) -> None:
        assert resolve_profile(cli_server="https://adhoc.test") == Profile(
            name="default", server="https://adhoc.test"
        )

    def test_named_profile_must_exist(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            resolve_profile(cli_profile="ghost")


# ---------------------------------------------------------------------------
# Credential sources
# ---------------------------------------------------------------------------


class TestResolveCredential:
    def test_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("API_TOKEN", "s3cret")
        assert resolve_credential("env:API_TOKEN") == "s3cret"

    def test_env_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("API_TOKEN", raising=False)
        with pytest.raises(ConfigError, match="'API_TOKEN' is not set"):
            resolve_credential("env:API_TOKEN")

    def test_file_is_stripped(self, tmp_path: Path) -> None:
        secret = tmp_path / "token"
        secret.write_text("  abc.def  \n", encoding="utf-8")
        assert resolve_credential(f"file:{secret}") == "abc.def"

    def test_file_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Credential file not found"):
            resolve_credential(f"file:{tmp_path / 'nope'}")

    def test_file_is_a_directory(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Cannot read credential file"):
            resolve_credential(f"file:{tmp_path}")

    def test_prompt_on_terminal(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: True)
        monkeypatch.setattr("getpass.getpass", lambda prompt: "typed")
        assert resolve_credential("prompt") == "typed"

    def test_prompt_without_terminal(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: False)
        with pytest.raises(ConfigError, match="not a TTY"):
            resolve_credential("prompt")

    @pytest.mark.parametrize("source", ["magic:wand", "env", "TOKEN"])
    def test_unknown_sources(self, source: str) -> None:
        with pytest.raises(ConfigError, match="Unknown credential source"):
            resolve_credential(source)
