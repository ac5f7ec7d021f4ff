from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from tether_mcp.runner import TIMEOUT_RETURNCODE, CommandResult, CommandRunner, FakeCommandRunner
from tether_mcp.runner.utils import default_working_directory, sanitize_environment


def test_command_runner_captures_stdout() -> None:
    runner = CommandRunner()
    result = asyncio.run(runner.run("echo 'hello world'"))

    assert result.ok
    assert result.stdout == "hello world"
    assert result.stderr == ""


def test_command_runner_reports_exit_code_and_stderr() -> None:
    runner = CommandRunner()
    result = asyncio.run(runner.run("echo oops >&2; exit 3"))

    assert not result.ok
    assert result.returncode == 3
    assert result.stderr == "oops"


def test_command_runner_uses_working_directory(tmp_path: Path) -> None:
    runner = CommandRunner()
    result = asyncio.run(runner.run("pwd", cwd=str(tmp_path)))

    assert Path(result.stdout).resolve() == tmp_path.resolve()


def test_command_runner_defaults_to_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    runner = CommandRunner()
    result = asyncio.run(runner.run("pwd"))

    assert default_working_directory() == str(tmp_path)
    assert Path(result.stdout).resolve() == tmp_path.resolve()


def test_command_runner_times_out() -> None:
    runner = CommandRunner(timeout=0.3)
    result = asyncio.run(runner.run("sleep 5; echo never"))

    assert result.returncode == TIMEOUT_RETURNCODE
    assert "timed out" in result.stderr
    assert result.stdout == ""


def test_command_runner_bounds_output() -> None:
    runner = CommandRunner(max_output_bytes=1024)
    result = asyncio.run(runner.run("head -c 100000 /dev/zero | tr '\\0' 'a'"))

    assert not result.ok
    assert "exceeded 1024 bytes" in result.stderr


def test_command_runner_missing_shell_becomes_result() -> None:
    runner = CommandRunner(shell="/nonexistent/shell")
    result = asyncio.run(runner.run("echo hi"))

    assert result.returncode == 127
    assert result.stderr


def test_fake_command_runner_records_invocations() -> None:
    fake = FakeCommandRunner(
        [CommandResult(command="tmux -V", returncode=0, stdout="tmux 3.4", stderr="")]
    )

    first = asyncio.run(fake.run("tmux -V"))
    second = asyncio.run(fake.run("ls", cwd="/srv"))

    assert first.stdout == "tmux 3.4"
    assert second.ok and second.stdout == ""
    assert fake.invocations == [("tmux -V", None), ("ls", "/srv")]


def test_fake_command_runner_handler_takes_precedence() -> None:
    fake = FakeCommandRunner(
        handler=lambda command: CommandResult(command, 1, "", "nope") if "kill" in command else None
    )

    assert asyncio.run(fake.run("tmux kill-session -t x")).stderr == "nope"
    assert asyncio.run(fake.run("tmux has-session -t x")).ok
    assert fake.commands == ["tmux kill-session -t x", "tmux has-session -t x"]


def test_sanitize_environment_strips_virtualenv_and_tmux(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PYTHONPATH", "value")
    monkeypatch.setenv("TMUX", "/tmp/tmux-0/default,1,0")
    monkeypatch.delenv("TERM", raising=False)
    env = sanitize_environment({"EXTRA": "1"})

    assert "PYTHONPATH" not in env
    assert "TMUX" not in env
    assert env["TERM"] == "xterm-256color"
    assert env["EXTRA"] == "1"
