"""Tests for the output layer.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline, including snippet output lines
- Quiet and verbose modes
- JSON and plain renderers for data and tables
- Routing of library log records through RichHandler
- Global instance management
"""

from __future__ import annotations

import json
import logging

import pytest
from rich.logging import RichHandler

from authplay import output as output_module
from authplay.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    configure_logging,
    get_output,
    reset_output,
    set_output,
)


@pytest.fixture()
def non_tty(monkeypatch):
    """Patch stdout.isatty() to return False."""
    monkeypatch.setattr("authplay.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    """Patch stdout.isatty() to return True."""
    monkeypatch.setattr("authplay.output._is_tty", lambda: True)
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("TERM", raising=False)


def _plain(**kwargs) -> OutputManager:
    return OutputManager(format=OutputFormat.PLAIN, no_color=True, **kwargs)


# ------------------------------------------------------------------ #
# Format and colour resolution
# ------------------------------------------------------------------ #


class TestFormatResolution:
    def test_auto_is_plain_when_piped(self, non_tty):
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_is_rich_on_terminal(self, tty):
        assert OutputManager().format == OutputFormat.RICH

    def test_no_color_flag_forces_plain(self, tty):
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_json(self, tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        assert _should_disable_color() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_terminal(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


# ------------------------------------------------------------------ #
# Stream discipline
# ------------------------------------------------------------------ #


class TestStreams:
    def test_data_to_stdout(self, capfd, non_tty):
        _plain().print_data("payload")
        captured = capfd.readouterr()
        assert captured.out == "payload\n"
        assert captured.err == ""

    @pytest.mark.parametrize("method", ["info", "success", "warning", "error", "suggest"])
    def test_diagnostics_to_stderr(self, capfd, non_tty, method):
        getattr(_plain(), method)("diagnostic")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "diagnostic" in captured.err

    def test_snippet_log_line_is_data(self, capfd, non_tty):
        _plain().snippet_line("200 octocat")
        captured = capfd.readouterr()
        assert captured.out == "200 octocat\n"

    def test_snippet_error_line_is_diagnostic(self, capfd, non_tty):
        _plain().snippet_line("ZeroDivisionError: division by zero", is_error=True)
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "ZeroDivisionError" in captured.err


class TestQuietAndVerbose:
    def test_quiet_hides_info_but_not_errors(self, capfd, non_tty):
        mgr = _plain(quiet=True)
        mgr.info("chatty")
        mgr.error("broken")
        captured = capfd.readouterr()
        assert "chatty" not in captured.err
        assert "Error: broken" in captured.err

    def test_quiet_keeps_data(self, capfd, non_tty):
        _plain(quiet=True).print_data("still here")
        assert "still here" in capfd.readouterr().out

    def test_debug_only_when_verbose(self, capfd, non_tty):
        _plain().debug("hidden")
        _plain(verbose=True).debug("shown")
        err = capfd.readouterr().err
        assert "hidden" not in err
        assert "[debug] shown" in err


# ------------------------------------------------------------------ #
# Renderers
# ------------------------------------------------------------------ #


class TestRenderers:
    def test_json_response(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).format_response({"id": "github"})
        assert json.loads(capfd.readouterr().out) == {"id": "github"}

    def test_plain_response_nests_json(self, capfd, non_tty):
        _plain().format_response({"id": "github", "methods": {"device_code": {}}})
        lines = capfd.readouterr().out.splitlines()
        assert lines == ["id\tgithub", 'methods\t{"device_code": {}}']

    def test_json_table(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).print_table(
            ["ID", "LABEL"], [["github", "GitHub"]]
        )
        assert json.loads(capfd.readouterr().out) == [{"ID": "github", "LABEL": "GitHub"}]

    def test_plain_table(self, capfd, non_tty):
        _plain().print_table(["ID", "LABEL"], [["github", "GitHub"]])
        assert capfd.readouterr().out == "ID\tLABEL\ngithub\tGitHub\n"


# ------------------------------------------------------------------ #
# Logging and the global instance
# ------------------------------------------------------------------ #


class TestConfigureLogging:
    def test_installs_single_rich_handler(self, non_tty):
        mgr = _plain()
        configure_logging(mgr)
        configure_logging(mgr)
        handlers = [
            h for h in logging.getLogger("authplay").handlers if isinstance(h, RichHandler)
        ]
        assert len(handlers) == 1

    def test_level_follows_verbose(self, non_tty):
        configure_logging(_plain(verbose=True))
        assert logging.getLogger("authplay").level == logging.DEBUG
        configure_logging(_plain())
        assert logging.getLogger("authplay").level == logging.WARNING


class TestGlobalInstance:
    def test_lazy_default(self):
        reset_output()
        assert isinstance(get_output(), OutputManager)

    def test_set_and_convenience_functions(self, capfd, non_tty):
        set_output(_plain())
        output_module.print_data("via global")
        output_module.info("note")
        captured = capfd.readouterr()
        assert captured.out == "via global\n"
        assert "note" in captured.err
