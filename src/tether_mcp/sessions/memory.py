"""In-memory session backend used by tests and dry runs."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable

from .base import SessionError


@dataclass(slots=True)
class FakeSession:
    name: str
    command: str
    created_at: float
    ends_at: float | None = None
    lines: list[str] = field(default_factory=list)
    inputs: list[str] = field(default_factory=list)


class InMemorySessionBackend:
    """Session registry keyed by name that never spawns a process.

    Sessions created with a ``lifetime`` end on their own once the injected
    clock passes ``created_at + lifetime``; :meth:`end_session` simulates an
    external kill.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] | None = None,
        lifetime: float | None = None,
    ) -> None:
        self._clock = clock or time.time
        self._lifetime = lifetime
        self.sessions: dict[str, FakeSession] = {}
        self.killed: list[str] = []
        self.fail_create: str | None = None
        self.fail_capture: str | None = None
        self.fail_send: str | None = None
        self.fail_kill: str | None = None

    def _expire(self, name: str) -> FakeSession | None:
        session = self.sessions.get(name)
        if session is None:
            return None
        if session.ends_at is not None and self._clock() >= session.ends_at:
            del self.sessions[name]
            return None
        return session

    def _require(self, name: str) -> FakeSession:
        session = self._expire(name)
        if session is None:
            raise SessionError(f"can't find session: {name}", session_name=name)
        return session

    async def create_session(self, name: str, command: str) -> None:
        if self.fail_create is not None:
            raise SessionError(self.fail_create, session_name=name)
        if self._expire(name) is not None:
            raise SessionError(f"duplicate session: {name}", session_name=name)
        now = self._clock()
        self.sessions[name] = FakeSession(
            name=name,
            command=command,
            created_at=now,
            ends_at=now + self._lifetime if self._lifetime is not None else None,
        )

    async def session_exists(self, name: str) -> bool:
        return self._expire(name) is not None

    async def capture_output(self, name: str, max_lines: int) -> str:
        if self.fail_capture is not None:
            raise SessionError(self.fail_capture, session_name=name)
        session = self._require(name)
        return "\n".join(session.lines[-max_lines:])

    async def send_keys(self, name: str, text: str) -> None:
        if self.fail_send is not None:
            raise SessionError(self.fail_send, session_name=name)
        session = self._require(name)
        session.inputs.append(text)
        session.lines.append(text)

    async def kill_session(self, name: str) -> None:
        if self.fail_kill is not None:
            raise SessionError(self.fail_kill, session_name=name)
        self._require(name)
        del self.sessions[name]
        self.killed.append(name)

    async def list_sessions(self, prefix: str | None = None) -> list[str]:
        names = [name for name in list(self.sessions) if self._expire(name) is not None]
        if prefix:
            names = [name for name in names if name.startswith(prefix)]
        return names

    def write(self, name: str, *lines: str) -> None:
        self._require(name).lines.extend(lines)

    def end_session(self, name: str) -> None:
        """Make a session disappear as if its process exited or was killed externally."""

        self.sessions.pop(name, None)


__all__ = ["FakeSession", "InMemorySessionBackend"]
