"""
tests/test_dispatcher.py
Unit tests for src/agent/dispatcher.py and src/agent/prompts.py.
"""

import json
import threading
from unittest.mock import MagicMock, patch

import pytest

from src.schemas import RepoConfig, WorkflowRunEvent
from src.stores.tracker import TrackedWorkflow


@pytest.fixture
def event(payload_factory):
    return WorkflowRunEvent.model_validate(payload_factory())


@pytest.fixture
def tracked():
    return TrackedWorkflow("acme/widgets/77", "acme", "widgets", 77, "CI", 21, 900, "2026-01-01T00:00:00+00:00")


def _dispatcher(timeout_seconds=5, external_tools=None, tracker=None):
    from src.agent.dispatcher import SREAgentDispatcher
    from src.tools.sre_toolbox import SREToolbox

    def toolbox_factory(config):
        return SREToolbox(MagicMock(), MagicMock(), MagicMock(), tracker or MagicMock(), config)

    return SREAgentDispatcher(
        model="gemini/gemini-2.5-flash",
        timeout_seconds=timeout_seconds,
        toolbox_factory=toolbox_factory,
        external_tools=external_tools,
    )


@patch("src.agent.dispatcher.Task")
@patch("src.agent.dispatcher.Agent")
@patch("src.agent.dispatcher.Crew")
def test_handle_failure_runs_single_agent_crew(mock_crew_cls, mock_agent_cls, mock_task_cls, event, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "key")
    mock_crew_cls.return_value.kickoff.return_value = MagicMock(raw="Retried failed jobs.")
    external = MagicMock(name="composio-tool")

    result = _dispatcher(external_tools=lambda: [external]).handle_failure(event, RepoConfig())

    assert result.raw == "Retried failed jobs."
    assert result.model == "gemini/gemini-2.5-flash"
    agent_kwargs = mock_agent_cls.call_args.kwargs
    tool_names = [tool.name for tool in agent_kwargs["tools"][:-1]]
    assert tool_names == [
        "check_github_status",
        "get_workflow_logs",
        "retry_workflow",
        "create_issue",
        "comment_on_issue",
        "manage_notes",
        "track_workflow",
    ]
    assert agent_kwargs["tools"][-1] is external
    assert "Max retry attempts: 3" in agent_kwargs["backstory"]
    description = mock_task_cls.call_args.kwargs["description"]
    assert "**Run ID:** 1001" in description
    assert "track workflow 77" in description
    crew_kwargs = mock_crew_cls.call_args.kwargs
    assert callable(crew_kwargs["step_callback"])
    assert callable(crew_kwargs["task_callback"])


@patch("src.agent.dispatcher.Task")
@patch("src.agent.dispatcher.Agent")
@patch("src.agent.dispatcher.Crew")
def test_handle_success_prompts_to_close_issue(mock_crew_cls, mock_agent_cls, mock_task_cls, payload_factory, tracked, monkeypatch):
    monkeypatch.setenv("GOOGLE_API_KEY", "key")
    mock_crew_cls.return_value.kickoff.return_value = MagicMock(raw="Closed #21.")
    success = WorkflowRunEvent.model_validate(payload_factory(conclusion="success", id=1002))

    result = _dispatcher().handle_success(success, RepoConfig(), tracked)

    assert result.raw == "Closed #21."
    description = mock_task_cls.call_args.kwargs["description"]
    assert "Comment on issue #21 in acme/widgets" in description
    assert "Untrack workflow 77" in description


@patch("src.agent.dispatcher.Task")
@patch("src.agent.dispatcher.Agent")
@patch("src.agent.dispatcher.Crew")
def test_kickoff_failure_propagates_as_session_error(mock_crew_cls, mock_agent_cls, mock_task_cls, event, monkeypatch):
    from src.agent.session import AgentSessionError

    monkeypatch.setenv("GEMINI_API_KEY", "key")
    mock_crew_cls.return_value.kickoff.side_effect = Exception("quota exceeded")

    with pytest.raises(AgentSessionError, match="quota exceeded"):
        _dispatcher().handle_failure(event, RepoConfig())


@patch("src.agent.dispatcher.Task")
@patch("src.agent.dispatcher.Agent")
@patch("src.agent.dispatcher.Crew")
def test_kickoff_timeout_propagates(mock_crew_cls, mock_agent_cls, mock_task_cls, event, monkeypatch):
    from src.agent.session import AgentTimeoutError

    monkeypatch.setenv("GEMINI_API_KEY", "key")
    gate = threading.Event()
    mock_crew_cls.return_value.kickoff.side_effect = lambda: gate.wait(5)

    with pytest.raises(AgentTimeoutError):
        _dispatcher(timeout_seconds=0.05).handle_failure(event, RepoConfig())
    gate.set()


@patch("src.agent.dispatcher.Task")
@patch("src.agent.dispatcher.Agent")
@patch("src.agent.dispatcher.Crew")
def test_tools_refuse_to_act_after_timeout(mock_crew_cls, mock_agent_cls, mock_task_cls, event, monkeypatch, tmp_path):
    from src.agent.session import AgentTimeoutError
    from src.stores.tracker import WorkflowTracker

    monkeypatch.setenv("GEMINI_API_KEY", "key")
    tracker = WorkflowTracker(tmp_path / "tracked.json")
    gate = threading.Event()
    finished = threading.Event()
    late_results = []

    def kickoff():
        gate.wait(5)
        tools = {tool.name: tool for tool in mock_agent_cls.call_args.kwargs["tools"][:7]}
        late_results.append(
            tools["track_workflow"]._run(
                action="track",
                owner="acme",
                repo="widgets",
                workflow_id=77,
                workflow_name="CI",
                issue_number=99,
                failed_run_id=1,
            )
        )
        finished.set()

    mock_crew_cls.return_value.kickoff.side_effect = kickoff

    with pytest.raises(AgentTimeoutError):
        _dispatcher(timeout_seconds=0.05, tracker=tracker).handle_failure(event, RepoConfig())
    gate.set()
    assert finished.wait(5)

    assert json.loads(late_results[0]) == {"success": False, "error": "Agent session released"}
    assert tracker.get("acme", "widgets", 77) is None
    assert not (tmp_path / "tracked.json").exists()


def test_missing_gemini_key_fails_before_kickoff(event):
    with pytest.raises(RuntimeError, match="GEMINI_API_KEY"):
        _dispatcher().handle_failure(event, RepoConfig())


def test_system_message_reflects_policy():
    from src.agent.prompts import build_system_message

    config = RepoConfig.model_validate(
        {
            "instructions": "Never retry deploy workflows.",
            "actions": {"retry": {"enabled": False, "maxAttempts": 5}, "createIssue": {"labels": ["ci"]}},
        }
    )
    message = build_system_message(config)

    assert "Max retry attempts: 3" in message
    assert "Auto-retry enabled: false" in message
    assert "Issue labels: ci" in message
    assert "## Repository-Specific Instructions\nNever retry deploy workflows." in message


def test_failure_prompt_respects_disabled_actions(event):
    from src.agent.prompts import build_failure_prompt

    config = RepoConfig.model_validate({"actions": {"retry": {"enabled": False}, "createIssue": {"enabled": False}}})
    prompt = build_failure_prompt(event, config)

    assert "do not call retry_workflow" in prompt
    assert "Issue creation is disabled" in prompt
    assert "**Triggered by:** dev" in prompt
    assert "**Branch:** main" in prompt
