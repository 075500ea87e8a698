"""
In-memory task list kept in step with the Kanban Task API.

TaskStore owns the local list and is the only thing that calls the API. Updates and
removals are applied locally before the remote call (optimistically) and rolled back
to a snapshot of the whole list if the call fails. Creates wait for the server so
the list only ever holds server-assigned ids.

Failures never propagate to callers: they are logged, recorded in ``TaskStore.error``
and announced to subscribers.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set, Tuple

from api_client import KanbanAPIError, NotFound
from task_models import TaskCreate, TaskRecord

logger = logging.getLogger(__name__)

__all__ = [
    "TaskStore",
    "TaskStoreError",
    "FetchError",
    "CreateError",
    "UpdateError",
    "DeleteError",
    "NotFound",
]


class TaskStoreError(Exception):
    """A remote call made by the store failed. ``cause`` holds the API error."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
        self.__cause__ = cause


class FetchError(TaskStoreError):
    """Loading the task list failed."""


class CreateError(TaskStoreError):
    """Creating a task failed."""


class UpdateError(TaskStoreError):
    """Updating a task failed; the local list was rolled back."""


class DeleteError(TaskStoreError):
    """Deleting a task failed; the local list was rolled back."""


Listener = Callable[["TaskStore"], None]


class TaskStore:
    """
    Local copy of the task collection.
    Args:
        api: Object with async get_tasks, add_task, update_task and delete_task
            (see api_client.TasksAPI).
        refetch_on_failure (bool): After rolling back a failed update or delete, reload
            the whole list from the server as well.
    """

    def __init__(self, api, refetch_on_failure: bool = False):
        self.api = api
        self.refetch_on_failure = refetch_on_failure
        self.error: Optional[TaskStoreError] = None
        self.load_failed = False
        self._tasks: List[TaskRecord] = []
        self._listeners: List[Listener] = []
        self._pending: Set[asyncio.Task] = set()

    @property
    def tasks(self) -> Tuple[TaskRecord, ...]:
        return tuple(self._tasks)

    def get(self, task_id: str) -> Optional[TaskRecord]:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(store)`` after every change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear_error(self):
        if self.error is not None:
            self.error = None
            self._notify()

    async def load(self) -> bool:
        """Replace the local list with the server's. Returns False if the fetch failed."""
        try:
            tasks = await self.api.get_tasks()
        except KanbanAPIError as e:
            self.load_failed = True
            self._fail(FetchError(f"Could not load tasks: {e}", cause=e))
            return False

        self._tasks = list(tasks)
        self.load_failed = False
        if isinstance(self.error, FetchError):
            self.error = None
        self._notify()
        return True

    async def create(self, draft: TaskCreate) -> Optional[TaskRecord]:
        """Create a task and append the server's copy once it exists."""
        try:
            created = await self.api.add_task(draft)
        except KanbanAPIError as e:
            self._fail(CreateError(f"Could not create task: {e}", cause=e))
            return None

        self._tasks.append(created)
        self._notify()
        return created

    def update(self, task: TaskRecord) -> asyncio.Task:
        """
        Replace the local entry with ``task`` now and send it to the server.
        Returns the background asyncio.Task, which resolves to True on success.
        """

        def replace(tasks: List[TaskRecord]) -> List[TaskRecord]:
            return [task if t.id == task.id else t for t in tasks]

        return self._optimistic(
            replace,
            lambda: self.api.update_task(task),
            UpdateError,
            f"Could not update task {task.id}",
            on_success=self._reconcile,
        )

    def remove(self, task_id: str) -> asyncio.Task:
        """Drop the local entry now and delete it on the server."""

        def drop(tasks: List[TaskRecord]) -> List[TaskRecord]:
            return [t for t in tasks if t.id != task_id]

        return self._optimistic(
            drop,
            lambda: self.api.delete_task(task_id),
            DeleteError,
            f"Could not delete task {task_id}",
        )

    async def wait_idle(self):
        """Wait for every background update and removal to finish."""
        while self._pending:
            await asyncio.gather(*self._pending)

    def _optimistic(
        self,
        mutate: Callable[[List[TaskRecord]], List[TaskRecord]],
        remote_call: Callable[[], Awaitable],
        error_cls: type,
        message: str,
        on_success: Optional[Callable] = None,
    ) -> asyncio.Task:
        loop = asyncio.get_running_loop()

        # Snapshot before mutating; a failure restores exactly this list.
        snapshot = [t.model_copy() for t in self._tasks]
        self._tasks = mutate(list(self._tasks))
        try:
            self._notify()
        except BaseException:
            # No remote call goes out, so the list must not keep the change
            self._tasks = snapshot
            raise

        pending = loop.create_task(
            self._settle(snapshot, remote_call, error_cls, message, on_success)
        )
        self._pending.add(pending)
        pending.add_done_callback(self._pending.discard)
        return pending

    async def _settle(self, snapshot, remote_call, error_cls, message, on_success) -> bool:
        try:
            result = await remote_call()
        except KanbanAPIError as e:
            self._tasks = snapshot
            self._fail(error_cls(f"{message}: {e}", cause=e))
            if self.refetch_on_failure:
                await self.load()
            return False
        except BaseException:
            # Cancelled or crashed before the server answered
            logger.warning("%s: call did not complete, change rolled back", message)
            self._tasks = snapshot
            self._notify()
            raise

        if on_success is not None:
            on_success(result)
        self._notify()
        return True

    def _reconcile(self, server_task: TaskRecord):
        self._tasks = [server_task if t.id == server_task.id else t for t in self._tasks]

    def _fail(self, error: TaskStoreError):
        logger.warning("%s", error)
        self.error = error
        self._notify()

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)
