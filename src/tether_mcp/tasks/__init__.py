"""Task registry and lifecycle controller."""

from .controller import NO_OUTPUT, SESSION_ENDED, WAIT_TIMEOUT_NOTE, TaskController
from .launch import AgentNotFoundError, build_launch_command, resolve_agent_executable
from .models import (
    InvalidTaskStateError,
    Task,
    TaskError,
    TaskNotFoundError,
    TaskRequest,
    TaskStatus,
)
from .registry import TaskRegistry

__all__ = [
    "AgentNotFoundError",
    "InvalidTaskStateError",
    "NO_OUTPUT",
    "SESSION_ENDED",
    "Task",
    "TaskController",
    "TaskError",
    "TaskNotFoundError",
    "TaskRegistry",
    "TaskRequest",
    "TaskStatus",
    "WAIT_TIMEOUT_NOTE",
    "build_launch_command",
    "resolve_agent_executable",
]
