"""In-memory task registry with one lock per task."""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import Iterator

from .models import Task, TaskNotFoundError


class TaskRegistry:
    """Maps task ids to task records.

    Enumeration follows creation order. Each task owns an :class:`asyncio.Lock`
    that serializes writes to its status; there is no registry-wide lock, so a
    slow session call on one task never blocks another.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def add(self, task: Task) -> None:
        if task.task_id in self._tasks:
            raise ValueError(f"Task id '{task.task_id}' is already registered")
        self._tasks[task.task_id] = task
        self._locks[task.task_id] = asyncio.Lock()

    def get(self, task_id: str) -> Task:
        try:
            return self._tasks[task_id]
        except KeyError as exc:
            raise TaskNotFoundError(task_id) from exc

    def lock(self, task_id: str) -> asyncio.Lock:
        try:
            return self._locks[task_id]
        except KeyError as exc:
            raise TaskNotFoundError(task_id) from exc

    def all(self) -> list[Task]:
        return list(self._tasks.values())

    def running(self) -> list[Task]:
        return [task for task in self._tasks.values() if task.is_running]

    def status_counts(self) -> dict[str, int]:
        return dict(Counter(task.status.value for task in self._tasks.values()))

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(self.all())


__all__ = ["TaskRegistry"]
