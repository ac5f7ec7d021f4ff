"""Async runner for one-shot shell commands."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
from dataclasses import dataclass
from typing import Callable, Iterable

from .utils import default_working_directory, sanitize_environment

logger = logging.getLogger(__name__)

TIMEOUT_RETURNCODE = 124
_READ_CHUNK = 64 * 1024


class _OutputLimitExceeded(Exception):
    def __init__(self, limit: int) -> None:
        super().__init__(f"Command output exceeded {limit} bytes")
        self.limit = limit


@dataclass(slots=True)
class CommandResult:
    """Holds the outcome of a shell command invocation."""

    command: str
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Execute shell command strings asynchronously with time and output bounds.

    Process failures never escape :meth:`run`; spawn errors, timeouts and
    output overflow are all folded into a non-zero :class:`CommandResult`.
    """

    def __init__(
        self,
        *,
        shell: str = "/bin/bash",
        timeout: float = 60.0,
        max_output_bytes: int = 1024 * 1024,
    ) -> None:
        self._shell = shell
        self._timeout = timeout
        self._max_output_bytes = max_output_bytes

    @property
    def shell(self) -> str:
        return self._shell

    async def run(
        self,
        command: str,
        *,
        cwd: str | None = None,
        timeout: float | None = None,
        max_output_bytes: int | None = None,
    ) -> CommandResult:
        limit = max_output_bytes or self._max_output_bytes
        deadline = timeout or self._timeout
        workdir = cwd or default_working_directory()

        try:
            process = await asyncio.create_subprocess_exec(
                self._shell,
                "-c",
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=workdir,
                env=sanitize_environment(),
                start_new_session=True,
            )
        except OSError as exc:
            logger.warning("Command failed to start", extra={"command": command, "error": str(exc)})
            return CommandResult(command=command, returncode=127, stdout="", stderr=str(exc))

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                self._collect(process, limit), timeout=deadline
            )
        except asyncio.TimeoutError:
            await self._terminate(process)
            logger.warning("Command timed out", extra={"command": command, "timeout": deadline})
            return CommandResult(
                command=command,
                returncode=TIMEOUT_RETURNCODE,
                stdout="",
                stderr=f"Command timed out after {deadline:g} seconds",
            )
        except _OutputLimitExceeded as exc:
            await self._terminate(process)
            logger.warning("Command output limit exceeded", extra={"command": command, "limit": limit})
            return CommandResult(command=command, returncode=1, stdout="", stderr=str(exc))

        returncode = process.returncode if process.returncode is not None else 1
        return CommandResult(
            command=command,
            returncode=returncode,
            stdout=stdout_bytes.decode("utf-8", errors="replace").strip(),
            stderr=stderr_bytes.decode("utf-8", errors="replace").strip(),
        )

    @staticmethod
    async def _read_capped(stream: asyncio.StreamReader | None, limit: int) -> bytes:
        if stream is None:
            return b""
        chunks: list[bytes] = []
        total = 0
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                break
            total += len(chunk)
            if total > limit:
                raise _OutputLimitExceeded(limit)
            chunks.append(chunk)
        return b"".join(chunks)

    async def _collect(self, process: asyncio.subprocess.Process, limit: int) -> tuple[bytes, bytes]:
        stdout, stderr = await asyncio.gather(
            self._read_capped(process.stdout, limit),
            self._read_capped(process.stderr, limit),
        )
        await process.wait()
        return stdout, stderr

    @staticmethod
    async def _terminate(process: asyncio.subprocess.Process) -> None:
        # The shell runs in its own process group so its children die with it.
        with contextlib.suppress(ProcessLookupError):
            os.killpg(process.pid, signal.SIGKILL)
        await process.wait()


class FakeCommandRunner(CommandRunner):
    """Test double that records commands and replays canned results."""

    def __init__(
        self,
        responses: Iterable[CommandResult] | None = None,
        *,
        handler: Callable[[str], CommandResult | None] | None = None,
    ) -> None:  # type: ignore[override]
        super().__init__(shell="/bin/sh")
        self._responses = list(responses or [])
        self._handler = handler
        self._invocations: list[tuple[str, str | None]] = []

    async def run(  # type: ignore[override]
        self,
        command: str,
        *,
        cwd: str | None = None,
        timeout: float | None = None,
        max_output_bytes: int | None = None,
    ) -> CommandResult:
        self._invocations.append((command, cwd))
        if self._handler is not None:
            result = self._handler(command)
            if result is not None:
                return result
        if self._responses:
            return self._responses.pop(0)
        return CommandResult(command=command, returncode=0, stdout="", stderr="")

    @property
    def invocations(self) -> list[tuple[str, str | None]]:
        return self._invocations

    @property
    def commands(self) -> list[str]:
        return [command for command, _ in self._invocations]
