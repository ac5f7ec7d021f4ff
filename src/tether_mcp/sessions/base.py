"""Session capability contract shared by tmux and in-memory backends."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


class SessionError(RuntimeError):
    """Raised when a detached session operation fails."""

    def __init__(self, message: str, *, session_name: str | None = None) -> None:
        super().__init__(message)
        self.session_name = session_name


@runtime_checkable
class SessionBackend(Protocol):
    """Detached, named execution contexts that outlive a single request."""

    async def create_session(self, name: str, command: str) -> None:
        ...

    async def session_exists(self, name: str) -> bool:
        ...

    async def capture_output(self, name: str, max_lines: int) -> str:
        ...

    async def send_keys(self, name: str, text: str) -> None:
        ...

    async def kill_session(self, name: str) -> None:
        ...


__all__ = ["SessionBackend", "SessionError"]
