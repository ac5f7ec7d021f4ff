"""Lifecycle operations for detached agent tasks."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Sequence

from ..runner.utils import default_working_directory
from ..sessions import SessionBackend, SessionError
from .launch import DEFAULT_AGENT_NAME, build_launch_command, new_task_id, session_name_for
from .models import InvalidTaskStateError, Task, TaskError, TaskRequest, TaskStatus
from .registry import TaskRegistry

logger = logging.getLogger(__name__)

SESSION_ENDED = "(session ended)"
NO_OUTPUT = "(no output)"
WAIT_TIMEOUT_NOTE = "Task still running after timeout"


def _error_payload(exc: TaskError, **fields: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {**fields, "error": str(exc), "error_type": exc.error_type}
    status = getattr(exc, "status", None)
    if status is not None:
        payload["status"] = status.value
    return payload


class TaskController:
    """Starts, observes, steers and stops tasks running in detached sessions.

    Every read goes through :meth:`_reconcile`, which compares a running
    task against its live session and records completion under the task's
    lock. The wait loop in :meth:`start` uses the same path, so a concurrent
    :meth:`stop` is observed there too. No method raises to its caller:
    unknown ids and terminal-state misuse come back as error payloads, and
    session failures become sentinel values.
    """

    def __init__(
        self,
        sessions: SessionBackend,
        *,
        registry: TaskRegistry | None = None,
        agent_command: str = DEFAULT_AGENT_NAME,
        agent_args: Sequence[str] = (),
        session_prefix: str = "claude-",
        poll_interval: float = 1.0,
        default_wait_timeout: float = 300.0,
        status_tail_lines: int = 30,
        output_tail_lines: int = 500,
        prompt_summary_chars: int = 100,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._sessions = sessions
        self._registry = registry if registry is not None else TaskRegistry()
        self._agent_command = agent_command
        self._agent_args = tuple(agent_args)
        self._session_prefix = session_prefix
        self._poll_interval = poll_interval
        self._default_wait_timeout = default_wait_timeout
        self._status_tail_lines = status_tail_lines
        self._output_tail_lines = output_tail_lines
        self._prompt_summary_chars = prompt_summary_chars
        self._clock = clock
        self._sleep = sleep

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    @property
    def sessions(self) -> SessionBackend:
        return self._sessions

    def _allocate_id(self) -> str:
        task_id = new_task_id()
        while task_id in self._registry:
            task_id = new_task_id()
        return task_id

    async def start(
        self,
        prompt: str,
        working_directory: str | None = None,
        wait_for_completion: bool = False,
        timeout_seconds: float | None = None,
    ) -> dict[str, Any]:
        task_id = self._allocate_id()
        request = TaskRequest(
            prompt=prompt,
            working_directory=working_directory or default_working_directory(),
        )
        task = Task(
            task_id=task_id,
            request=request,
            session_name=session_name_for(task_id, self._session_prefix),
            started_at=self._clock(),
        )
        self._registry.add(task)
        command = build_launch_command(
            prompt,
            request.working_directory,
            self._agent_command,
            self._agent_args,
        )

        # Held through creation so no reconciliation can see the session missing
        # before it has been created.
        async with self._registry.lock(task_id):
            try:
                await self._sessions.create_session(task.session_name, command)
            except SessionError as exc:
                reason = f"Failed to start session: {exc}"
                task.finish(TaskStatus.FAILED, self._clock(), reason=reason)
                logger.warning(
                    "Task session creation failed",
                    extra={"task_id": task_id, "session_name": task.session_name, "error": str(exc)},
                )
                return {"task_id": task_id, "status": task.status.value, "output": reason}

        logger.info(
            "Started task",
            extra={
                "task_id": task_id,
                "session_name": task.session_name,
                "working_directory": request.working_directory,
                "wait": wait_for_completion,
            },
        )

        if not wait_for_completion:
            return {"task_id": task_id, "status": task.status.value}

        timeout = self._default_wait_timeout if timeout_seconds is None else timeout_seconds
        return await self._wait_for_completion(task, timeout)

    async def _wait_for_completion(self, task: Task, timeout: float) -> dict[str, Any]:
        deadline = self._clock() + max(0.0, timeout)
        while True:
            status = await self._reconcile(task)
            if status.terminal:
                output = await self._capture(task, self._output_tail_lines)
                return {"task_id": task.task_id, "status": status.value, "output": output}

            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.info(
                    "Wait timed out; task keeps running",
                    extra={"task_id": task.task_id, "timeout": timeout},
                )
                return {"task_id": task.task_id, "status": status.value, "output": WAIT_TIMEOUT_NOTE}
            await self._sleep(min(self._poll_interval, remaining))

    async def _reconcile(self, task: Task) -> TaskStatus:
        async with self._registry.lock(task.task_id):
            return await self._reconcile_locked(task)

    async def _reconcile_locked(self, task: Task) -> TaskStatus:
        if not task.is_running:
            return task.status
        try:
            alive = await self._sessions.session_exists(task.session_name)
        except SessionError as exc:
            logger.debug(
                "Liveness check failed; keeping status",
                extra={"task_id": task.task_id, "error": str(exc)},
            )
            return task.status
        if not alive and task.finish(TaskStatus.COMPLETED, self._clock()):
            logger.info(
                "Task completed",
                extra={"task_id": task.task_id, "runtime_seconds": task.runtime_seconds(self._clock())},
            )
        return task.status

    async def _capture(self, task: Task, lines: int) -> str:
        if task.status is TaskStatus.FAILED and task.failure_reason:
            return task.failure_reason
        try:
            output = await self._sessions.capture_output(task.session_name, lines)
        except SessionError as exc:
            logger.debug("Capture failed", extra={"task_id": task.task_id, "error": str(exc)})
            return SESSION_ENDED
        return output or NO_OUTPUT

    async def get_status(self, task_id: str) -> dict[str, Any]:
        try:
            task = self._registry.get(task_id)
        except TaskError as exc:
            return _error_payload(exc)

        status = await self._reconcile(task)
        runtime_seconds = task.runtime_seconds(self._clock())
        last_output = await self._capture(task, self._status_tail_lines)
        return {
            "task_id": task_id,
            "status": status.value,
            "runtime_seconds": runtime_seconds,
            "last_output": last_output,
        }

    async def get_output(self, task_id: str, lines: int | None = None) -> dict[str, Any]:
        try:
            task = self._registry.get(task_id)
        except TaskError as exc:
            return _error_payload(exc)

        status = await self._reconcile(task)
        line_count = lines if lines and lines > 0 else self._output_tail_lines
        output = await self._capture(task, line_count)
        return {"task_id": task_id, "output": output, "status": status.value}

    async def send(self, task_id: str, message: str) -> dict[str, Any]:
        try:
            task = self._registry.get(task_id)
        except TaskError as exc:
            return _error_payload(exc, sent=False)

        async with self._registry.lock(task_id):
            if not task.is_running:
                return _error_payload(InvalidTaskStateError(task_id, task.status), sent=False)

            status = await self._reconcile_locked(task)
            if status.terminal:
                return _error_payload(
                    InvalidTaskStateError(task_id, status, "Task has already completed"),
                    sent=False,
                )

            try:
                await self._sessions.send_keys(task.session_name, message)
            except SessionError as exc:
                logger.warning(
                    "Message delivery failed",
                    extra={"task_id": task_id, "error": str(exc)},
                )
                return {
                    "sent": False,
                    "error": f"Failed to send: {exc}",
                    "error_type": "delivery_failed",
                    "status": task.status.value,
                }

        logger.info("Sent message to task", extra={"task_id": task_id, "length": len(message)})
        return {"sent": True, "task_id": task_id, "status": task.status.value}

    async def list_tasks(self) -> dict[str, Any]:
        running = self._registry.running()
        if running:
            await asyncio.gather(*(self._reconcile(task) for task in running))

        now = self._clock()
        sessions = [
            {
                "task_id": task.task_id,
                "prompt": task.prompt_summary(self._prompt_summary_chars),
                "status": task.status.value,
                "runtime_seconds": task.runtime_seconds(now),
                "working_directory": task.working_directory,
            }
            for task in self._registry.all()
        ]
        return {"sessions": sessions}

    async def stop(self, task_id: str) -> dict[str, Any]:
        try:
            task = self._registry.get(task_id)
        except TaskError as exc:
            return _error_payload(exc, stopped=False)

        async with self._registry.lock(task_id):
            if not task.is_running:
                return _error_payload(InvalidTaskStateError(task_id, task.status), stopped=False)

            try:
                await self._sessions.kill_session(task.session_name)
            except SessionError as exc:
                logger.warning(
                    "Session teardown failed; marking task stopped anyway",
                    extra={"task_id": task_id, "error": str(exc)},
                )
            task.finish(TaskStatus.STOPPED, self._clock())

        logger.info("Stopped task", extra={"task_id": task_id})
        return {"stopped": True, "task_id": task_id, "status": task.status.value}


__all__ = ["NO_OUTPUT", "SESSION_ENDED", "TaskController", "WAIT_TIMEOUT_NOTE"]
