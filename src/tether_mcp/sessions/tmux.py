"""tmux-backed detached sessions driven through the command runner."""

from __future__ import annotations

import logging
import shlex

from ..runner import CommandResult, CommandRunner
from .base import SessionError

logger = logging.getLogger(__name__)

# has-session exits 1 both for "can't find session" and "no server running".
_MISSING_SESSION_RETURNCODE = 1
_NO_SERVER_MARKERS = ("no server running", "error connecting to")


class TmuxSessionBackend:
    """Implements the session capability by shelling out to tmux."""

    def __init__(
        self,
        runner: CommandRunner,
        *,
        tmux: str = "tmux",
        width: int = 200,
        height: int = 50,
    ) -> None:
        self._runner = runner
        self._tmux = tmux
        self._width = width
        self._height = height

    @property
    def tmux(self) -> str:
        return self._tmux

    def _command(self, *args: str) -> str:
        return " ".join([shlex.quote(self._tmux), *(shlex.quote(arg) for arg in args)])

    @staticmethod
    def _failure(action: str, name: str | None, result: CommandResult) -> SessionError:
        detail = result.stderr or result.stdout or f"exit code {result.returncode}"
        return SessionError(f"tmux {action} failed: {detail}", session_name=name)

    async def version(self) -> CommandResult:
        return await self._runner.run(self._command("-V"))

    async def create_session(self, name: str, command: str) -> None:
        result = await self._runner.run(
            self._command(
                "new-session",
                "-d",
                "-s",
                name,
                "-x",
                str(self._width),
                "-y",
                str(self._height),
                command,
            )
        )
        if not result.ok:
            raise self._failure("new-session", name, result)
        logger.debug("Created tmux session", extra={"session_name": name})

    async def session_exists(self, name: str) -> bool:
        result = await self._runner.run(self._command("has-session", "-t", name))
        if result.ok:
            return True
        if result.returncode == _MISSING_SESSION_RETURNCODE:
            return False
        raise self._failure("has-session", name, result)

    async def capture_output(self, name: str, max_lines: int) -> str:
        result = await self._runner.run(
            self._command("capture-pane", "-t", name, "-p", "-S", f"-{max_lines}")
        )
        if not result.ok:
            raise self._failure("capture-pane", name, result)
        return result.stdout

    async def send_keys(self, name: str, text: str) -> None:
        typed = await self._runner.run(self._command("send-keys", "-t", name, "-l", "--", text))
        if not typed.ok:
            raise self._failure("send-keys", name, typed)
        submitted = await self._runner.run(self._command("send-keys", "-t", name, "Enter"))
        if not submitted.ok:
            raise self._failure("send-keys", name, submitted)

    async def kill_session(self, name: str) -> None:
        result = await self._runner.run(self._command("kill-session", "-t", name))
        if not result.ok:
            raise self._failure("kill-session", name, result)

    async def list_sessions(self, prefix: str | None = None) -> list[str]:
        """Return live session names, optionally restricted to a name prefix."""

        result = await self._runner.run(self._command("list-sessions", "-F", "#{session_name}"))
        if not result.ok:
            if any(marker in result.stderr for marker in _NO_SERVER_MARKERS):
                return []
            raise self._failure("list-sessions", None, result)
        names = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if prefix:
            names = [name for name in names if name.startswith(prefix)]
        return names


__all__ = ["TmuxSessionBackend"]
