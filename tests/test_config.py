"""Tests for authplay.config -- XDG paths, atomic writes, settings, precedence."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from authplay.config import (
    Settings,
    get_config_dir,
    get_data_dir,
    load_settings,
    resolve_settings,
    settings_path,
)
from authplay.exceptions import ConfigError


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_config_dir_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("authplay.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "authplay"
        assert result.is_dir()

    def test_config_dir_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("authplay.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))

        assert get_config_dir() == tmp_path / "xdg" / "authplay"

    def test_data_dir_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("authplay.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

        assert get_data_dir() == tmp_path / "data" / "authplay"

    def test_non_xdg_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("authplay.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".authplay"
        assert get_data_dir() == tmp_path / ".authplay" / "logs"


# ---------------------------------------------------------------------------
# Settings file
# ---------------------------------------------------------------------------


class TestSettingsFile:
    def test_defaults_when_missing(self, isolated_config: Path) -> None:
        settings = load_settings()
        assert settings == Settings()
        assert settings.relay.port == 8787
        assert settings.flow.slow_down_increment == 5
        assert settings.sandbox.max_steps == 100_000

    def test_reads_file_in_config_dir(self, isolated_config: Path) -> None:
        settings_path().write_text(
            json.dumps({"formulas_path": "/srv/formulas", "relay": {"port": 9000}})
        )

        settings = load_settings()
        assert settings_path() == isolated_config / "config" / "authplay" / "config.json"
        assert settings.relay.port == 9000
        assert settings.formulas_path == "/srv/formulas"

    def test_partial_file_keeps_defaults(self, isolated_config: Path) -> None:
        settings_path().write_text(json.dumps({"sandbox": {"timeout": 5}}))

        settings = load_settings()
        assert settings.sandbox.timeout == 5
        assert settings.sandbox.max_output_lines == 1000

    def test_invalid_json(self, isolated_config: Path) -> None:
        settings_path().write_text("{broken")
        with pytest.raises(ConfigError, match="Invalid config"):
            load_settings()

    def test_invalid_values(self, isolated_config: Path) -> None:
        settings_path().write_text(json.dumps({"relay": {"port": "not-a-port"}}))
        with pytest.raises(ConfigError):
            load_settings()


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestResolveSettings:
    def test_env_overrides_file(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        settings_path().write_text(json.dumps({"formulas_path": "/from/file"}))
        monkeypatch.setenv("AUTHPLAY_FORMULAS", "/from/env")
        monkeypatch.setenv("AUTHPLAY_RELAY_HOST", "0.0.0.0")
        monkeypatch.setenv("AUTHPLAY_RELAY_PORT", "9100")

        settings = resolve_settings()
        assert settings.formulas_path == "/from/env"
        assert settings.relay.host == "0.0.0.0"
        assert settings.relay.port == 9100

    def test_cli_overrides_env(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("AUTHPLAY_FORMULAS", "/from/env")
        monkeypatch.setenv("AUTHPLAY_RELAY_PORT", "9100")

        settings = resolve_settings(cli_formulas="/from/cli", cli_port=9200)
        assert settings.formulas_path == "/from/cli"
        assert settings.relay.port == 9200

    def test_bad_port_env(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("AUTHPLAY_RELAY_PORT", "eighty")
        with pytest.raises(ConfigError, match="AUTHPLAY_RELAY_PORT"):
            resolve_settings()
