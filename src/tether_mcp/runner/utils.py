"""Environment helpers for the command runner."""

from __future__ import annotations

import os
from typing import Mapping

_SANITIZED_VARS = {
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
    "PIP_RESPECT_VIRTUALENV",
    # tmux client commands must reach the default server, not the one the
    # MCP process happens to be running under.
    "TMUX",
    "TMUX_PANE",
}


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a sanitized environment for shell commands and tmux sessions."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    env.setdefault("TERM", "xterm-256color")
    if additional:
        env.update(additional)
    return env


def default_working_directory() -> str:
    """Directory used when a command does not name one."""

    return os.environ.get("HOME") or os.path.expanduser("~")
