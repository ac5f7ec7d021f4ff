"""Detached session backends."""

from .base import SessionBackend, SessionError
from .memory import InMemorySessionBackend
from .tmux import TmuxSessionBackend

__all__ = [
    "InMemorySessionBackend",
    "SessionBackend",
    "SessionError",
    "TmuxSessionBackend",
]
