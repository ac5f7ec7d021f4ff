from __future__ import annotations

import re

import pytest

from tether_mcp.tasks import (
    InvalidTaskStateError,
    Task,
    TaskNotFoundError,
    TaskRegistry,
    TaskRequest,
    TaskStatus,
)
from tether_mcp.tasks.launch import new_task_id, session_name_for


def _task(task_id: str, prompt: str = "do it") -> Task:
    return Task(
        task_id=task_id,
        request=TaskRequest(prompt=prompt, working_directory="/srv/repo"),
        session_name=session_name_for(task_id, "claude-"),
        started_at=100.0,
    )


def test_registry_lookup_and_creation_order() -> None:
    registry = TaskRegistry()
    for task_id in ("task-b", "task-a", "task-c"):
        registry.add(_task(task_id))

    assert [task.task_id for task in registry.all()] == ["task-b", "task-a", "task-c"]
    assert registry.get("task-a").session_name == "claude-task-a"
    assert "task-c" in registry
    assert len(registry) == 3


def test_registry_unknown_id_raises_not_found() -> None:
    registry = TaskRegistry()

    with pytest.raises(TaskNotFoundError) as excinfo:
        registry.get("task-nope")
    assert excinfo.value.error_type == "not_found"
    with pytest.raises(TaskNotFoundError):
        registry.lock("task-nope")


def test_registry_rejects_duplicate_ids() -> None:
    registry = TaskRegistry()
    registry.add(_task("task-1"))

    with pytest.raises(ValueError):
        registry.add(_task("task-1"))


def test_registry_locks_are_per_task() -> None:
    registry = TaskRegistry()
    registry.add(_task("task-1"))
    registry.add(_task("task-2"))

    assert registry.lock("task-1") is registry.lock("task-1")
    assert registry.lock("task-1") is not registry.lock("task-2")


def test_registry_running_and_status_counts() -> None:
    registry = TaskRegistry()
    for task_id in ("task-1", "task-2", "task-3"):
        registry.add(_task(task_id))
    registry.get("task-2").finish(TaskStatus.STOPPED, 105.0)

    assert [task.task_id for task in registry.running()] == ["task-1", "task-3"]
    assert registry.status_counts() == {"running": 2, "stopped": 1}


def test_task_finish_is_one_way() -> None:
    task = _task("task-1")

    assert task.finish(TaskStatus.COMPLETED, 130.0) is True
    assert task.finish(TaskStatus.STOPPED, 200.0) is False
    assert task.status is TaskStatus.COMPLETED
    assert task.ended_at == 130.0
    with pytest.raises(ValueError):
        _task("task-2").finish(TaskStatus.RUNNING, 1.0)


def test_task_runtime_uses_end_time_when_finished() -> None:
    task = _task("task-1")

    assert task.runtime_seconds(112.9) == 12
    task.finish(TaskStatus.FAILED, 101.5, reason="boom")
    assert task.runtime_seconds(5000.0) == 1
    assert task.failure_reason == "boom"


def test_prompt_summary_truncates_at_limit() -> None:
    assert _task("t", "a" * 100).prompt_summary(100) == "a" * 100
    assert _task("t", "a" * 101).prompt_summary(100) == "a" * 100 + "..."


def test_invalid_state_error_message() -> None:
    error = InvalidTaskStateError("task-1", TaskStatus.COMPLETED)

    assert str(error) == "Task is not running (status: completed)"
    assert error.error_type == "invalid_state"


def test_new_task_ids_are_unique_and_shaped() -> None:
    ids = {new_task_id() for _ in range(200)}

    assert len(ids) == 200
    assert all(re.fullmatch(r"task-\d{14}-[0-9a-f]{6}", task_id) for task_id in ids)
