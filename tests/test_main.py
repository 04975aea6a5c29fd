"""
tests/test_main.py
Unit tests for src/main.py: FastAPI endpoints.
"""

import hashlib
import hmac
import json
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from src.config import AppSettings
from src.shared import AgentRunResult

SECRET = "s3cret"


def _headers(body: bytes, event: str = "workflow_run", secret: str = SECRET) -> dict[str, str]:
    signature = "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return {
        "X-Hub-Signature-256": signature,
        "X-GitHub-Event": event,
        "X-GitHub-Delivery": "delivery-1",
        "Content-Type": "application/json",
    }


@pytest.fixture
def dispatcher():
    mock = MagicMock()
    mock.handle_failure.return_value = AgentRunResult(raw="Created issue #21", model="gemini/gemini-2.5-flash")
    return mock


@pytest.fixture
def components(tmp_path, dispatcher):
    from src.handlers.workflow_run import WorkflowRunHandler
    from src.main import AppComponents
    from src.stores.notes import NoteStore
    from src.stores.tracker import WorkflowTracker

    settings = AppSettings(github_token="ghp_test", webhook_secret=SECRET, environment="test", data_dir=tmp_path)
    tracker = WorkflowTracker(settings.tracker_path)
    return AppComponents(
        settings=settings,
        handler=WorkflowRunHandler(dispatcher=dispatcher, tracker=tracker),
        notes=NoteStore(settings.notes_path),
        tracker=tracker,
    )


@pytest.fixture
def client(components):
    from src.main import create_app

    with TestClient(create_app(components)) as test_client:
        yield test_client


def test_failure_event_is_processed(client, dispatcher, payload_factory):
    body = json.dumps(payload_factory()).encode()

    response = client.post("/webhook", content=body, headers=_headers(body))

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "processed": True,
        "message": "Workflow run processed by SRE agent",
    }
    dispatcher.handle_failure.assert_called_once()


def test_invalid_signature_is_rejected_without_side_effects(client, components, dispatcher, payload_factory):
    body = json.dumps(payload_factory()).encode()

    response = client.post("/webhook", content=body, headers=_headers(body, secret="wrong"))

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid signature"}
    dispatcher.handle_failure.assert_not_called()
    assert not components.tracker.path.exists()
    assert not components.notes.path.exists()


def test_missing_signature_is_rejected(client):
    response = client.post("/webhook", content=b"{}", headers={"X-GitHub-Event": "ping"})
    assert response.status_code == 401


def test_invalid_json(client):
    body = b"{not json"
    response = client.post("/webhook", content=body, headers=_headers(body))

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON"}


def test_invalid_payload_lists_details(client, payload_factory):
    payload = payload_factory()
    del payload["workflow_run"]["workflow_id"]
    body = json.dumps(payload).encode()

    response = client.post("/webhook", content=body, headers=_headers(body))

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "Invalid payload"
    assert {"path": "workflow_run.workflow_id", "message": "Field required"} in data["details"]


def test_ignored_event_is_acknowledged(client, dispatcher, payload_factory):
    body = json.dumps(payload_factory(conclusion="cancelled")).encode()

    response = client.post("/webhook", content=body, headers=_headers(body))

    assert response.status_code == 200
    assert response.json()["processed"] is False
    assert response.json()["message"] == "Workflow run acknowledged (no action needed)"
    dispatcher.handle_failure.assert_not_called()


def test_processing_failure_returns_500(client, dispatcher, payload_factory):
    dispatcher.handle_failure.side_effect = RuntimeError("Agent session timed out")
    body = json.dumps(payload_factory()).encode()

    response = client.post("/webhook", content=body, headers=_headers(body))

    assert response.status_code == 500
    assert response.json() == {"error": "Processing failed", "message": "Agent session timed out"}


def test_ping(client):
    body = b'{"zen": "Design for failure."}'
    response = client.post("/webhook", content=body, headers=_headers(body, event="ping"))

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Pong!"}


def test_other_events_are_acknowledged(client):
    body = b'{"action": "opened"}'
    response = client.post("/webhook", content=body, headers=_headers(body, event="issues"))

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Event 'issues' acknowledged but not processed"}


def test_health(client):
    data = client.get("/health").json()
    assert data["status"] == "healthy"
    assert data["version"] == "0.1.0"
    assert data["timestamp"]


def test_status(client):
    data = client.get("/status").json()
    assert data["status"] == "running"
    assert data["environment"] == "test"
    assert data["model"] == "gemini/gemini-2.5-flash"


def test_index(client):
    assert client.get("/").json()["endpoints"]["webhook"] == "POST /webhook"


def test_startup_exits_on_invalid_configuration():
    from src.main import _settings_or_exit

    with pytest.raises(SystemExit) as exc_info:
        _settings_or_exit()
    assert exc_info.value.code == 1


def test_build_components_wires_stores(tmp_path):
    from src.main import build_components

    settings = AppSettings(github_token="ghp_test", webhook_secret=SECRET, data_dir=tmp_path, repo_config_enabled=False)
    built = build_components(settings)

    assert built.notes.path == tmp_path / "notes.json"
    assert built.tracker.path == tmp_path / "tracked-workflows.json"
    assert built.handler._config_reader is None
