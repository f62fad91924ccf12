"""Configuration management with XDG paths and precedence resolution.

This module handles all persistent configuration for authplay:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.authplay/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Settings** -- A single :class:`Settings` JSON file storing relay,
  polling, and sandbox defaults, read by :func:`load_settings`.
* **Precedence resolution** -- :func:`resolve_settings` merges CLI flags,
  environment variables, and the settings file into the effective
  configuration.
"""

from __future__ import annotations

import json
import os
import platform
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from authplay.exceptions import ConfigError

_APP_NAME = "authplay"
_CONFIG_FILENAME = "config.json"


# --- Settings models ---


class RelaySettings(BaseModel):
    """Where the relay server listens and how long it waits on providers."""

    host: str = Field(default="127.0.0.1", description="Bind address for `authplay serve`")
    port: int = Field(default=8787, description="Bind port for `authplay serve`")
    timeout: float = Field(default=30.0, description="Upstream request timeout in seconds")


class FlowSettings(BaseModel):
    """Device-flow polling defaults used when the provider omits them."""

    default_interval: int = Field(default=5, description="Seconds between polls")
    default_expires_in: int = Field(default=900, description="Device code lifetime in seconds")
    slow_down_increment: int = Field(
        default=5, description="Seconds added to the interval on each slow_down"
    )
    malformed_warning_threshold: int = Field(
        default=10,
        description="Consecutive unrecognised poll responses before a warning is logged",
    )


class SandboxSettings(BaseModel):
    """Resource limits for the snippet runner."""

    max_steps: int = Field(default=100_000, description="Interpreter step budget per run")
    timeout: float = Field(default=30.0, description="Wall-clock limit per run in seconds")
    max_output_lines: int = Field(default=1000, description="Output lines kept per run")


class Settings(BaseModel):
    """User-wide configuration persisted at ``~/.config/authplay/config.json``.

    Fields here have the lowest precedence and can be overridden by
    environment variables or CLI flags. See :func:`resolve_settings`.
    """

    formulas_path: Optional[str] = Field(
        default=None,
        description="Directory or file of formula documents; built-ins when unset",
    )
    relay: RelaySettings = Field(default_factory=RelaySettings)
    flow: FlowSettings = Field(default_factory=FlowSettings)
    sandbox: SandboxSettings = Field(default_factory=SandboxSettings)


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/authplay/`` (default ``~/.config/authplay/``).
    On macOS/Windows: ``~/.authplay/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/authplay/`` (default ``~/.local/share/authplay/``).
    On macOS/Windows: ``~/.authplay/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Settings file ---


def settings_path() -> Path:
    """Path to the settings file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_settings() -> Settings:
    """Load settings from the XDG config directory.

    Returns:
        The deserialised :class:`Settings`, or defaults when the file does
        not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = settings_path()
    if not path.is_file():
        return Settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Settings.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


# --- Precedence resolution ---


def resolve_settings(
    cli_formulas: Optional[str] = None,
    cli_host: Optional[str] = None,
    cli_port: Optional[int] = None,
) -> Settings:
    """Resolve settings with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_formulas``, ``cli_host``, ``cli_port``)
        2. Environment variables (``AUTHPLAY_FORMULAS``,
           ``AUTHPLAY_RELAY_HOST``, ``AUTHPLAY_RELAY_PORT``)
        3. User config (``~/.config/authplay/config.json``)
        4. Defaults

    Raises:
        ConfigError: If the settings file is invalid or
            ``AUTHPLAY_RELAY_PORT`` is not an integer.
    """
    settings = load_settings()

    env_formulas = os.environ.get("AUTHPLAY_FORMULAS")
    if env_formulas:
        settings.formulas_path = env_formulas
    env_host = os.environ.get("AUTHPLAY_RELAY_HOST")
    if env_host:
        settings.relay.host = env_host
    env_port = os.environ.get("AUTHPLAY_RELAY_PORT")
    if env_port:
        try:
            settings.relay.port = int(env_port)
        except ValueError as exc:
            raise ConfigError(
                f"AUTHPLAY_RELAY_PORT must be an integer, got '{env_port}'"
            ) from exc

    if cli_formulas is not None:
        settings.formulas_path = cli_formulas
    if cli_host is not None:
        settings.relay.host = cli_host
    if cli_port is not None:
        settings.relay.port = cli_port

    return settings
