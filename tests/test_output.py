"""Tests for terminal output helpers."""

import io

from jenkins_ctl.output import error_line


class Terminal(io.StringIO):
    def isatty(self):
        return True


def test_error_line_is_plain_when_stderr_is_redirected(monkeypatch):
    monkeypatch.setattr("sys.stderr", io.StringIO())

    assert error_line("QueueTimeout", "no build started") == "error[QueueTimeout]: no build started"


def test_error_line_is_colored_on_a_terminal(monkeypatch):
    monkeypatch.setattr("sys.stderr", Terminal())

    line = error_line("QueueTimeout", "no build started")

    assert line.startswith("\033[")
    assert "error[QueueTimeout]" in line
    assert line.endswith(": no build started")
