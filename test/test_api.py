import importlib

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_backend, get_repository


def _import_app():
    # Import lazily so environment variables (if any) can be set before import.
    return importlib.import_module("api.main")


@pytest.fixture
def client(backend, repository):
    mod = _import_app()
    mod.app.dependency_overrides[get_backend] = lambda: backend
    mod.app.dependency_overrides[get_repository] = lambda: repository
    yield TestClient(mod.app)
    mod.app.dependency_overrides.clear()


def test_process_executes_confident_command(client, repository):
    r = client.post(
        "/nl/process",
        json={"text": "add task Call mom tomorrow at 5pm"},
        headers={"X-User-Id": "alice"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["data"]["executed"] is True
    assert body["data"]["parsed"]["intent"] == "add_task"
    assert body["data"]["result"]["success"] is True

    (task,) = repository.tasks.values()
    assert task.user_id == "alice"
    assert task.scheduled_time == "17:00"


def test_process_reports_engine_failure_in_result(client):
    r = client.post("/nl/process", json={"text": "delete the dentist appointment"})
    assert r.status_code == 200
    result = r.json()["data"]["result"]
    assert result["success"] is False
    assert result["error"] == "reference_not_found at resolve"


def test_process_holds_back_low_confidence(client, repository):
    r = client.post("/nl/process", json={"text": "remind me to call mom"})
    data = r.json()["data"]
    assert data["executed"] is False
    assert data["result"]["error"] == "classification_ambiguous at classify"
    assert repository.tasks == {}

    r = client.post("/nl/process", json={"text": "remind me to call mom", "confirmed": True})
    assert r.json()["data"]["executed"] is True
    assert len(repository.tasks) == 1


def test_process_ignores_structured_entity_values(client, repository):
    r = client.post(
        "/nl/process",
        json={"text": "add task call mom", "entities": {"goal": {"x": 1}, "title": ["a", "b"]}},
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["executed"] is True
    assert data["result"]["success"] is True
    (task,) = repository.tasks.values()
    assert task.title == "call mom"
    assert task.goal_id is None


def test_process_rejects_blank_text(client):
    assert client.post("/nl/process", json={"text": ""}).status_code == 422
    assert client.post("/nl/process", json={"text": "   "}).status_code == 422


def test_parse_does_not_execute(client, repository):
    r = client.post("/nl/parse", json={"text": "change team sync priority to critical"})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["parsed"]["intent"] == "modify_task"
    assert data["parsed"]["entities"]["target"] == "team sync"
    assert data["auto_executable"] is True
    assert repository.update_calls == []


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


def test_metrics_endpoint_exposes_prometheus_text(client):
    client.post("/nl/process", json={"text": "what's my next task?"})
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "text/plain" in r.headers.get("content-type", "")
    body = r.text
    assert "planner_requests_total" in body
    assert "planner_commands_total" in body
    assert "planner_command_confidence" in body
