"""
Board presentation logic: status columns derived from the task list, and the user
gestures (drop, title edit, priority pick, point buttons) turned into TaskStore calls.

Nothing here touches the task list directly; every change goes through the store.
"""

import asyncio
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from task_models import (
    DEFAULT_TITLE,
    MAX_POINTS,
    MIN_POINTS,
    STATUS_ORDER,
    STATUS_TITLES,
    Priority,
    Status,
    TaskCreate,
    TaskRecord,
    clamp_points,
    parse_priority,
    parse_status,
)
from task_store import TaskStore


@dataclass(frozen=True)
class Column:
    status: Status
    tasks: Tuple[TaskRecord, ...]

    @property
    def title(self) -> str:
        return STATUS_TITLES[self.status]

    @property
    def total_points(self) -> int:
        return sum(task.points or 0 for task in self.tasks)


def derive_columns(tasks: Iterable[TaskRecord], statuses: Sequence[Status] = STATUS_ORDER) -> List[Column]:
    """
    Group tasks into one column per status, in the given status order.
    Args:
        tasks: Current task list.
        statuses: Column order.
    Returns:
        list[Column]: Columns holding exactly the tasks with their status.
    """
    tasks = tuple(tasks)
    return [Column(status=status, tasks=tuple(t for t in tasks if t.status == status)) for status in statuses]


def can_increment(task: TaskRecord) -> bool:
    return (task.points or 0) < MAX_POINTS


def can_decrement(task: TaskRecord) -> bool:
    return (task.points or 0) > MIN_POINTS


class Board:
    """Kanban board view over a TaskStore."""

    def __init__(self, store: TaskStore):
        self.store = store

    @property
    def columns(self) -> List[Column]:
        return derive_columns(self.store.tasks)

    @property
    def error_message(self) -> Optional[str]:
        return str(self.store.error) if self.store.error else None

    @property
    def show_retry(self) -> bool:
        return self.store.load_failed and self.store.error is not None

    def dismiss_error(self):
        self.store.clear_error()

    async def load(self) -> bool:
        return await self.store.load()

    async def add_task(self, title: str = "") -> Optional[TaskRecord]:
        """Create a task, using the placeholder title when none was typed."""
        title = (title or "").strip() or DEFAULT_TITLE
        return await self.store.create(TaskCreate(title=title))

    def drop(self, task_id: str, status: Union[str, Status]) -> Optional[asyncio.Task]:
        """Move a dropped task to the column's status. Unknown ids are ignored."""
        target = parse_status(status)
        task = self.store.get(task_id)
        if task is None:
            return None
        return self.store.update(task.model_copy(update={"status": target}))

    def edit_title(self, task_id: str, title: str) -> Optional[asyncio.Task]:
        """Commit an edited title. Blank titles are discarded."""
        task = self.store.get(task_id)
        title = (title or "").strip()
        if task is None or not title:
            return None
        return self.store.update(task.model_copy(update={"title": title}))

    def change_priority(self, task_id: str, priority: Union[str, Priority]) -> Optional[asyncio.Task]:
        selected = parse_priority(priority)
        task = self.store.get(task_id)
        if task is None:
            return None
        return self.store.update(task.model_copy(update={"priority": selected}))

    def increment_points(self, task_id: str) -> Optional[asyncio.Task]:
        return self._adjust_points(task_id, 1)

    def decrement_points(self, task_id: str) -> Optional[asyncio.Task]:
        return self._adjust_points(task_id, -1)

    def delete_task(self, task_id: str) -> Optional[asyncio.Task]:
        if self.store.get(task_id) is None:
            return None
        return self.store.remove(task_id)

    def _adjust_points(self, task_id: str, delta: int) -> Optional[asyncio.Task]:
        task = self.store.get(task_id)
        if task is None:
            return None
        # No call at the bounds; the buttons render disabled there
        if (delta > 0 and not can_increment(task)) or (delta < 0 and not can_decrement(task)):
            return None
        points = clamp_points((task.points or 0) + delta)
        return self.store.update(task.model_copy(update={"points": points}))
