"""Shared pytest fixtures for the SRE agent test suite."""

import pytest

_ENV_VARS = (
    "GITHUB_TOKEN",
    "GITHUB_WEBHOOK_SECRET",
    "GITHUB_API_URL",
    "PORT",
    "SRE_AGENT_ENV",
    "SRE_AGENT_MODEL",
    "SRE_AGENT_DATA_DIR",
    "SRE_AGENT_TIMEOUT_SECONDS",
    "SRE_AGENT_REPO_CONFIG_ENABLED",
    "SRE_AGENT_COMPOSIO_ENABLED",
    "LOG_LEVEL",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "COMPOSIO_API_KEY",
    "COMPOSIO_USER_ID",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Clear service env vars so a developer .env never leaks into tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def workflow_run_payload(**run_overrides) -> dict:
    """Minimal valid `workflow_run` webhook body."""
    run = {
        "id": 1001,
        "name": "CI",
        "head_branch": "main",
        "head_sha": "abc123",
        "run_number": 42,
        "run_attempt": 1,
        "status": "completed",
        "conclusion": "failure",
        "workflow_id": 77,
        "html_url": "https://github.com/acme/widgets/actions/runs/1001",
        "created_at": "2026-01-01T00:00:00Z",
        "updated_at": "2026-01-01T00:05:00Z",
        "actor": {"login": "dev"},
        "triggering_actor": {"login": "dev"},
    }
    run.update(run_overrides)
    return {
        "action": "completed",
        "workflow_run": run,
        "repository": {"id": 5, "name": "widgets", "full_name": "acme/widgets", "owner": {"login": "acme"}},
        "sender": {"login": "dev"},
    }


@pytest.fixture
def payload_factory():
    return workflow_run_payload
