"""Shared fixtures: a throwaway SQLite database for the API and an in-memory fake API for the store."""

import asyncio
import os
import sys
import tempfile
from typing import Dict, Optional

import pytest
from sqlmodel import SQLModel, create_engine

# Make the top-level modules importable without installing the project
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from api_client import KanbanAPIError, NotFound  # noqa: E402
from task_models import DEFAULT_TITLE, Priority, Status, TaskCreate, TaskRecord  # noqa: E402


class FakeTasksAPI:
    """
    In-memory stand-in for api_client.TasksAPI.

    ``fail(method)`` makes the next call to that method raise. Setting ``gate`` to an
    asyncio.Event holds every call until the event is set.
    """

    def __init__(self, tasks=()):
        self.tasks: Dict[str, TaskRecord] = {t.id: t for t in tasks}
        self.calls = []
        self.failures: Dict[str, Exception] = {}
        self.next_id = 100
        self.gate: Optional[asyncio.Event] = None

    def fail(self, method: str, error: Optional[Exception] = None):
        self.failures[method] = error or KanbanAPIError("network down")

    async def _call(self, method: str, *args):
        self.calls.append((method,) + args)
        if self.gate is not None:
            await self.gate.wait()
        error = self.failures.pop(method, None)
        if error is not None:
            raise error

    async def get_tasks(self):
        await self._call("get_tasks")
        return list(self.tasks.values())

    async def add_task(self, draft: TaskCreate):
        await self._call("add_task", draft)
        task = TaskRecord(
            id=str(self.next_id),
            title=draft.title or DEFAULT_TITLE,
            status=draft.status or Status.TODO,
            priority=draft.priority or Priority.MEDIUM,
            points=draft.points or 0,
        )
        self.next_id += 1
        self.tasks[task.id] = task
        return task

    async def update_task(self, task: TaskRecord):
        await self._call("update_task", task)
        if task.id not in self.tasks:
            raise NotFound("Task not found", status_code=404)
        self.tasks[task.id] = task.model_copy()
        return self.tasks[task.id]

    async def delete_task(self, task_id: str):
        await self._call("delete_task", task_id)
        if task_id not in self.tasks:
            raise NotFound("Task not found", status_code=404)
        del self.tasks[task_id]


@pytest.fixture
def sample_tasks():
    return [
        TaskRecord(id="1", title="Write docs", status=Status.TODO, priority=Priority.HIGH, points=3),
        TaskRecord(id="2", title="Review PR", status=Status.IN_PROGRESS, priority=Priority.MEDIUM, points=5),
        TaskRecord(id="3", title="Ship release", status=Status.DONE, priority=Priority.LOW, points=8),
        TaskRecord(id="4", title="Fix flaky test", status=Status.TODO, priority=Priority.MEDIUM, points=0),
    ]


@pytest.fixture
def fake_api(sample_tasks):
    return FakeTasksAPI(sample_tasks)


@pytest.fixture(scope="function")
def temp_db(monkeypatch):
    """Point kanban_api at a temporary SQLite database"""
    import kanban_api

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as temp_file:
        temp_db_path = temp_file.name

    test_engine = create_engine(f"sqlite:///{temp_db_path}", connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(kanban_api, "engine", test_engine)
    try:
        yield test_engine
    finally:
        test_engine.dispose()
        try:
            os.unlink(temp_db_path)
        except OSError:
            pass
