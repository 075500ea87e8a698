"""
Tests for the Kanban Task API: CRUD routes, defaults, validation and database setup.
"""

import pathlib
import tempfile

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

import kanban_api
from kanban_api import Task, app, setup_database
from task_models import DEFAULT_TITLE, Priority, Status


@pytest.fixture(scope="function")
def test_client(temp_db):
    client = TestClient(app)
    yield client, temp_db


@pytest.fixture(scope="function")
def sample_tasks(test_client):
    """Create sample tasks for testing"""
    client, engine = test_client

    sample_data = [
        {"title": "Set up CI", "status": Status.TODO, "priority": Priority.HIGH, "points": 3},
        {"title": "Design schema", "status": Status.IN_PROGRESS, "priority": Priority.MEDIUM, "points": 5},
        {"title": "Write README", "status": Status.DONE, "priority": Priority.LOW, "points": 1},
    ]

    tasks = []
    with Session(engine) as session:
        for data in sample_data:
            task = Task(**data)
            session.add(task)
            tasks.append(task)
        session.commit()
        for task in tasks:
            session.refresh(task)
        ids = [task.id for task in tasks]

    return ids


class TestReadEndpoints:
    def test_health_check(self, test_client):
        client, _ = test_client
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"message": "Kanban API is running"}

    def test_list_tasks_empty(self, test_client):
        client, _ = test_client
        response = client.get("/tasks")
        assert response.status_code == 200
        assert response.json() == []

    def test_list_tasks(self, test_client, sample_tasks):
        client, _ = test_client
        response = client.get("/tasks")
        assert response.status_code == 200

        items = response.json()
        assert len(items) == 3
        assert {item["id"] for item in items} == set(sample_tasks)
        by_title = {item["title"]: item for item in items}
        assert by_title["Design schema"]["status"] == "in-progress"
        assert by_title["Set up CI"]["priority"] == "high"
        assert by_title["Write README"]["points"] == 1

    def test_cors_allows_other_origins(self, test_client):
        client, _ = test_client
        response = client.get("/tasks", headers={"Origin": "http://localhost:8000"})
        assert response.headers["access-control-allow-origin"] == "*"


class TestCreateTask:
    def test_create_task(self, test_client):
        client, engine = test_client
        response = client.post(
            "/tasks", json={"title": "Write docs", "status": "in-progress", "priority": "high", "points": 8}
        )
        assert response.status_code == 201

        body = response.json()
        assert len(body["id"]) == 32
        assert body["title"] == "Write docs"
        assert body["status"] == "in-progress"
        assert body["priority"] == "high"
        assert body["points"] == 8

        with Session(engine) as session:
            stored = session.get(Task, body["id"])
            assert stored is not None
            assert stored.status == Status.IN_PROGRESS

    def test_create_task_defaults(self, test_client):
        client, _ = test_client
        response = client.post("/tasks", json={"title": "Minimal"})
        assert response.status_code == 201

        body = response.json()
        assert body["status"] == "todo"
        assert body["priority"] == "medium"
        assert body["points"] == 0

    @pytest.mark.parametrize("payload", [{}, {"title": ""}, {"title": "   "}])
    def test_create_task_untitled(self, test_client, payload):
        client, _ = test_client
        response = client.post("/tasks", json=payload)
        assert response.status_code == 201
        assert response.json()["title"] == DEFAULT_TITLE

    def test_create_task_ignores_client_id(self, test_client):
        client, _ = test_client
        response = client.post("/tasks", json={"id": "TASK-1", "title": "Client id"})
        assert response.status_code == 201
        assert response.json()["id"] != "TASK-1"

    def test_create_task_ids_are_unique(self, test_client):
        client, _ = test_client
        ids = {client.post("/tasks", json={"title": f"Task {i}"}).json()["id"] for i in range(5)}
        assert len(ids) == 5

    @pytest.mark.parametrize(
        "payload",
        [
            {"title": "Bad status", "status": "blocked"},
            {"title": "Bad priority", "priority": "urgent"},
            {"title": "Too many points", "points": 21},
            {"title": "Negative points", "points": -1},
        ],
    )
    def test_create_task_validation(self, test_client, payload):
        client, engine = test_client
        response = client.post("/tasks", json=payload)
        assert response.status_code == 422

        with Session(engine) as session:
            assert session.exec(select(Task)).all() == []


class TestUpdateTask:
    def test_full_update(self, test_client, sample_tasks):
        client, engine = test_client
        task_id = sample_tasks[0]

        payload = {"title": "Set up CI pipeline", "status": "done", "priority": "low", "points": 20}
        response = client.put(f"/tasks/{task_id}", json=payload)
        assert response.status_code == 200
        assert response.json() == {"id": task_id, **payload}

        with Session(engine) as session:
            stored = session.get(Task, task_id)
            assert stored.status == Status.DONE
            assert stored.points == 20

    def test_partial_update_keeps_other_fields(self, test_client, sample_tasks):
        client, _ = test_client
        task_id = sample_tasks[1]

        response = client.put(f"/tasks/{task_id}", json={"status": "done"})
        assert response.status_code == 200

        body = response.json()
        assert body["status"] == "done"
        assert body["title"] == "Design schema"
        assert body["priority"] == "medium"
        assert body["points"] == 5

    def test_update_ignores_id_in_body(self, test_client, sample_tasks):
        client, _ = test_client
        task_id = sample_tasks[0]
        response = client.put(f"/tasks/{task_id}", json={"id": "something-else", "points": 4})
        assert response.status_code == 200
        assert response.json()["id"] == task_id

    def test_update_not_found(self, test_client):
        client, _ = test_client
        response = client.put(f"/tasks/{'0' * 32}", json={"status": "done"})
        assert response.status_code == 404
        assert response.json()["detail"] == "Task not found"

    def test_update_invalid_id(self, test_client):
        client, _ = test_client
        response = client.put("/tasks/TASK-1", json={"status": "done"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid task ID"

    @pytest.mark.parametrize(
        "payload",
        [{"status": "archived"}, {"priority": "critical"}, {"points": 21}, {"points": -1}, {"title": ""}],
    )
    def test_update_validation(self, test_client, sample_tasks, payload):
        client, engine = test_client
        task_id = sample_tasks[0]

        response = client.put(f"/tasks/{task_id}", json=payload)
        assert response.status_code == 422

        with Session(engine) as session:
            stored = session.get(Task, task_id)
            assert stored.title == "Set up CI"
            assert stored.status == Status.TODO
            assert stored.points == 3


class TestDeleteTask:
    def test_delete_task(self, test_client, sample_tasks):
        client, engine = test_client
        task_id = sample_tasks[2]

        response = client.delete(f"/tasks/{task_id}")
        assert response.status_code == 200
        assert response.json() == {"message": "Task deleted successfully"}

        with Session(engine) as session:
            assert session.get(Task, task_id) is None
            assert len(session.exec(select(Task)).all()) == 2

    def test_delete_not_found(self, test_client):
        client, _ = test_client
        response = client.delete(f"/tasks/{'f' * 32}")
        assert response.status_code == 404

    def test_delete_invalid_id(self, test_client):
        client, _ = test_client
        response = client.delete("/tasks/not-an-id")
        assert response.status_code == 400


class TestDatabaseSetup:
    def test_setup_database_in_project_dir(self, monkeypatch):
        monkeypatch.setattr(kanban_api, "engine", None)
        with tempfile.TemporaryDirectory() as temp_dir:
            database_url = setup_database(temp_dir)
            assert database_url.startswith("sqlite:///")
            assert database_url.endswith("kanban.db")
            assert (pathlib.Path(temp_dir) / "kanban.db").exists()
            kanban_api.engine.dispose()

    def test_setup_database_missing_dir_exits(self, monkeypatch):
        monkeypatch.setattr(kanban_api, "engine", None)
        with pytest.raises(SystemExit):
            setup_database("/nonexistent/kanban/project")


class TestLifecycle:
    def test_create_move_complete_delete(self, test_client):
        client, _ = test_client

        task_id = client.post("/tasks", json={"title": "Lifecycle"}).json()["id"]

        for status in ("in-progress", "done"):
            response = client.put(f"/tasks/{task_id}", json={"status": status})
            assert response.status_code == 200
            assert response.json()["status"] == status

        assert client.delete(f"/tasks/{task_id}").status_code == 200
        assert client.get("/tasks").json() == []
