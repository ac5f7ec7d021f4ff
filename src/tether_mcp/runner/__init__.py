"""One-shot shell command execution."""

from .runner import TIMEOUT_RETURNCODE, CommandResult, CommandRunner, FakeCommandRunner

__all__ = [
    "CommandRunner",
    "CommandResult",
    "FakeCommandRunner",
    "TIMEOUT_RETURNCODE",
]
