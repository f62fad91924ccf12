"""Shared test fixtures for authplay.

Provides reusable formula documents, isolated config environments, output
state management, and a CLI runner. These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

import pytest
from rich.logging import RichHandler

from authplay.catalog import FormulaCatalog
from authplay.models import Formula
from authplay.output import OutputFormat, OutputManager, reset_output, set_output


DEVICE_URL = "https://provider.example/device/code"
TOKEN_URL = "https://provider.example/oauth/token"

_DEVICE_FORMULA: dict[str, Any] = {
    "schema": "v1",
    "id": "acme",
    "label": "Acme Cloud",
    "description": "Acme's device-flow enabled API.",
    "methods": {
        "device_code": {
            "label": "Device code",
            "endpoints": {"device": DEVICE_URL, "token": TOKEN_URL},
            "scope": "read write",
        },
        "authorization_code": {
            "label": "Browser login",
            "endpoints": {
                "authorize": "https://provider.example/oauth/authorize",
                "token": TOKEN_URL,
            },
        },
        "api_key": {"label": "API key"},
    },
    "apis": {
        "rest": {
            "base_url": "https://api.provider.example",
            "auth_header": "Authorization: Bearer {token}",
            "methods": ["device_code", "api_key"],
            "example_endpoint": "/me",
        }
    },
    "clients": [
        {"name": "web", "id": "web-client", "methods": ["authorization_code"]},
        {"name": "cli", "id": "cli-client", "methods": ["device_code"]},
    ],
}

_KEY_ONLY_FORMULA: dict[str, Any] = {
    "schema": "v1",
    "id": "keystore",
    "label": "Keystore",
    "methods": {"api_key": {"label": "API key"}},
    "apis": {
        "main": {
            "base_url": "https://keystore.example",
            "auth_header": "X-Api-Key: {token}",
            "methods": ["api_key"],
        }
    },
}


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use.
    """
    yield
    reset_output()
    logger = logging.getLogger("authplay")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)


# ---------------------------------------------------------------------------
# Formula fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def device_formula_raw() -> dict[str, Any]:
    """A playground-capable formula document (deep copy, safe to mutate)."""
    return copy.deepcopy(_DEVICE_FORMULA)


@pytest.fixture
def key_formula_raw() -> dict[str, Any]:
    """A formula with no device flow."""
    return copy.deepcopy(_KEY_ONLY_FORMULA)


@pytest.fixture
def device_formula(device_formula_raw: dict[str, Any]) -> Formula:
    return Formula.model_validate(device_formula_raw)


@pytest.fixture
def key_formula(key_formula_raw: dict[str, Any]) -> Formula:
    return Formula.model_validate(key_formula_raw)


@pytest.fixture
def sample_catalog(device_formula: Formula, key_formula: Formula) -> FormulaCatalog:
    return FormulaCatalog([device_formula, key_formula])


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config, and clears all
    AUTHPLAY_* environment variables.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("authplay.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "AUTHPLAY_FORMULAS",
        "AUTHPLAY_RELAY_HOST",
        "AUTHPLAY_RELAY_PORT",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
