"""Helpers for naming tasks and building the agent launch command."""

from __future__ import annotations

import base64
import shlex
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence
from uuid import uuid4

DEFAULT_AGENT_NAME = "claude"


class AgentNotFoundError(RuntimeError):
    """Raised when the agent executable cannot be located."""


def resolve_agent_executable(explicit: str | Path | None = None, name: str = DEFAULT_AGENT_NAME) -> Path:
    """Locate the agent binary, preferring an explicitly configured path."""

    if explicit is not None:
        candidate = Path(explicit).expanduser()
        if candidate.exists() and candidate.is_file():
            return candidate
        raise AgentNotFoundError(f"Agent executable not found at {candidate}")

    binary = shutil.which(name)
    if binary is None:
        raise AgentNotFoundError(f"Agent executable '{name}' not found on PATH")
    return Path(binary)


def new_task_id(now: datetime | None = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d%H%M%S")
    return f"task-{stamp}-{uuid4().hex[:6]}"


def session_name_for(task_id: str, prefix: str) -> str:
    return f"{prefix}{task_id}"


def build_launch_command(
    prompt: str,
    working_directory: str,
    executable: str,
    args: Sequence[str] = (),
) -> str:
    """Return a shell command that feeds ``prompt`` to the agent on stdin.

    The prompt travels base64-encoded so quotes, newlines and shell
    metacharacters reach the agent byte-for-byte.
    """

    encoded = base64.b64encode(prompt.encode("utf-8")).decode("ascii")
    agent = " ".join(shlex.quote(part) for part in (executable, *args, "-p", "-"))
    return f"cd {shlex.quote(working_directory)} && echo {encoded} | base64 -d | {agent}"


__all__ = [
    "AgentNotFoundError",
    "DEFAULT_AGENT_NAME",
    "build_launch_command",
    "new_task_id",
    "resolve_agent_executable",
    "session_name_for",
]
