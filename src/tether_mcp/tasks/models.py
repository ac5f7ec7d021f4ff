"""Task records and the errors raised while operating on them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TaskStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"

    @property
    def terminal(self) -> bool:
        return self is not TaskStatus.RUNNING


class TaskError(RuntimeError):
    """Base class for task operation errors."""

    error_type = "task_error"


class TaskNotFoundError(TaskError):
    """Raised when an operation names an unknown task id."""

    error_type = "not_found"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class InvalidTaskStateError(TaskError):
    """Raised when an operation needs a running task but the task is terminal."""

    error_type = "invalid_state"

    def __init__(self, task_id: str, status: TaskStatus, message: str | None = None) -> None:
        super().__init__(message or f"Task is not running (status: {status.value})")
        self.task_id = task_id
        self.status = status


@dataclass(frozen=True, slots=True)
class TaskRequest:
    """What the caller asked for; never changes after creation."""

    prompt: str
    working_directory: str


@dataclass(slots=True)
class Task:
    """One tracked unit of work backed by a detached session.

    ``ended_at`` is stamped by :meth:`finish` exactly once, when the task
    leaves ``RUNNING``. Terminal statuses never change again.
    """

    task_id: str
    request: TaskRequest
    session_name: str
    started_at: float
    status: TaskStatus = TaskStatus.RUNNING
    ended_at: float | None = None
    failure_reason: str | None = None

    @property
    def prompt(self) -> str:
        return self.request.prompt

    @property
    def working_directory(self) -> str:
        return self.request.working_directory

    @property
    def is_running(self) -> bool:
        return self.status is TaskStatus.RUNNING

    def finish(self, status: TaskStatus, ended_at: float, *, reason: str | None = None) -> bool:
        """Move a running task into a terminal status. Returns False if already terminal."""

        if not status.terminal:
            raise ValueError("finish() requires a terminal status")
        if self.status.terminal:
            return False
        self.status = status
        self.ended_at = ended_at
        if reason is not None:
            self.failure_reason = reason
        return True

    def runtime_seconds(self, now: float) -> int:
        end = self.ended_at if self.ended_at is not None else now
        return max(0, int(end - self.started_at))

    def prompt_summary(self, limit: int) -> str:
        if len(self.prompt) <= limit:
            return self.prompt
        return self.prompt[:limit] + "..."


__all__ = [
    "InvalidTaskStateError",
    "Task",
    "TaskError",
    "TaskNotFoundError",
    "TaskRequest",
    "TaskStatus",
]
