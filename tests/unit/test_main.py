"""
todo-origin — unit tests for the process entrypoint

File: tests/unit/test_main.py

Purpose
- Validate exception-to-exit-code routing at the CLI boundary.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from todo_origin import main as main_module
from todo_origin.config import ConfigLoadError
from todo_origin.history.base import HistoryError
from todo_origin.lexer.boundaries import ConfigError
from todo_origin.lexer.parser import ParseError
from todo_origin.main import ExitCode, cli_entrypoint
from todo_origin.ui import cli as cli_module

if TYPE_CHECKING:
    from collections.abc import Callable

pytestmark = pytest.mark.unit


def _raise(exc: BaseException) -> Callable[..., int]:
    def run_cli(argv: object = None) -> int:
        raise exc

    return run_cli


def _chained(outer: Exception, cause: Exception) -> Exception:
    try:
        try:
            raise cause
        except Exception as inner:
            raise outer from inner
    except Exception as caught:
        return caught


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ParseError("unable to read a.go"), ExitCode.PARSE_ERROR),
        (ConfigError("boundary start must not be empty"), ExitCode.CONFIG_ERROR),
        (ConfigLoadError("config file not found: x.toml"), ExitCode.CONFIG_ERROR),
        (HistoryError("not inside a git work tree"), ExitCode.HISTORY_ERROR),
        (_chained(RuntimeError("scan failed"), ParseError("bad stream")), ExitCode.PARSE_ERROR),
        (RuntimeError("boom"), ExitCode.INTERNAL_ERROR),
    ],
)
def test_exceptions_map_to_exit_codes(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    exc: Exception,
    expected: ExitCode,
) -> None:
    monkeypatch.setattr(cli_module, "run_cli", _raise(exc))

    assert cli_entrypoint([]) == int(expected)

    stderr = capsys.readouterr().err
    if expected is ExitCode.INTERNAL_ERROR:
        assert "Traceback" in stderr
    else:
        assert stderr == f"error: {exc}\n"


def test_keyboard_interrupt_is_an_internal_error(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(cli_module, "run_cli", _raise(KeyboardInterrupt()))

    assert cli_entrypoint([]) == int(ExitCode.INTERNAL_ERROR)
    assert capsys.readouterr().err == "interrupted\n"


def test_argparse_usage_errors_exit_with_config_code(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["todos", "--format", "xml"]) == int(ExitCode.CONFIG_ERROR)
    assert "invalid choice" in capsys.readouterr().err


def test_version_flag_succeeds(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["--version"]) == int(ExitCode.SUCCESS)
    assert capsys.readouterr().out.startswith("todo-origin ")


def test_unknown_exit_codes_are_normalized(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli_module, "run_cli", lambda argv=None: 17)

    assert main_module.cli_entrypoint([]) == int(ExitCode.INTERNAL_ERROR)
