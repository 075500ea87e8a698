"""
Async HTTP client for the Kanban Task API.

Every failure surfaces as a KanbanAPIError: HTTP error statuses, transport errors
and payloads that do not parse as tasks.
"""

import logging
import os
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from task_models import TaskCreate, TaskRecord

logger = logging.getLogger(__name__)

DEFAULT_API_URL = os.environ.get("KANBAN_API_URL", "http://127.0.0.1:3001")
DEFAULT_TIMEOUT = 5.0


class KanbanAPIError(Exception):
    """A call to the Kanban Task API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFound(KanbanAPIError):
    """The API reports that the task id does not exist."""


class ValidationFailed(KanbanAPIError):
    """The API rejected the payload or the task id."""


class TasksAPI:
    """
    Client for the /tasks endpoints.
    Args:
        base_url (str): Root URL of the API server.
        client (httpx.AsyncClient, optional): Client to reuse. Created (and owned) when omitted.
        timeout (float): Request timeout in seconds for an owned client.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def get_tasks(self) -> List[TaskRecord]:
        data = await self._request("GET", "/tasks")
        if not isinstance(data, list):
            raise KanbanAPIError("Expected a list of tasks")
        return [self._parse_task(item) for item in data]

    async def add_task(self, draft: TaskCreate) -> TaskRecord:
        data = await self._request("POST", "/tasks", json=draft.model_dump(mode="json", exclude_none=True))
        return self._parse_task(data)

    async def update_task(self, task: TaskRecord) -> TaskRecord:
        payload = task.model_dump(mode="json", exclude={"id"})
        data = await self._request("PUT", f"/tasks/{task.id}", json=payload)
        return self._parse_task(data)

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/tasks/{task_id}")

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise KanbanAPIError(f"{method} {path} failed: {e}") from e

        if response.status_code == 404:
            raise NotFound(self._error_detail(response, "Task not found"), status_code=404)
        if response.status_code in (400, 422):
            raise ValidationFailed(self._error_detail(response, "Invalid request"), status_code=response.status_code)
        if response.is_error:
            raise KanbanAPIError(
                self._error_detail(response, f"{method} {path} returned {response.status_code}"),
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise KanbanAPIError(f"{method} {path} returned invalid JSON") from e

    @staticmethod
    def _parse_task(data: Any) -> TaskRecord:
        try:
            return TaskRecord.model_validate(data)
        except ValidationError as e:
            raise KanbanAPIError(f"Malformed task payload: {e.error_count()} error(s)") from e

    @staticmethod
    def _error_detail(response: httpx.Response, fallback: str) -> str:
        try:
            detail = response.json().get("detail")
        except (ValueError, AttributeError):
            return fallback
        if isinstance(detail, str):
            return detail
        if isinstance(detail, list) and detail:
            # FastAPI validation errors
            return "; ".join(str(err.get("msg", err)) for err in detail if isinstance(err, dict)) or fallback
        return fallback
