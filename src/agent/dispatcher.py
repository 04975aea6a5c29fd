"""
src/agent/dispatcher.py
Single-agent SRE crew: failure triage and recovery follow-up for workflow runs.
Exports: SREAgentDispatcher, ToolboxFactory
"""

import logging
from typing import Any, Callable

from crewai import Agent, Crew, Process, Task

from src.agent.model_retry import kickoff_with_model_fallback
from src.agent.prompts import build_failure_prompt, build_success_prompt, build_system_message
from src.agent.session import AgentSession
from src.config import Config
from src.schemas import RepoConfig, WorkflowRunEvent
from src.shared import AgentRunResult
from src.stores.tracker import TrackedWorkflow
from src.tools.crew_tools import build_sre_tools
from src.tools.sre_toolbox import SREToolbox

logger = logging.getLogger(__name__)

ToolboxFactory = Callable[[RepoConfig], SREToolbox]


class SREAgentDispatcher:
    """
    Runs one bounded-time agent invocation per event.

    Each call gets a fresh session, a toolbox bound to the event's repository
    policy and the shared stores, and whatever external tools are available.
    """

    def __init__(
        self,
        *,
        model: str,
        timeout_seconds: float,
        toolbox_factory: ToolboxFactory,
        external_tools: Callable[[], list[Any]] | None = None,
        verbose: bool = False,
    ) -> None:
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._toolbox_factory = toolbox_factory
        self._external_tools = external_tools or (lambda: [])
        self._verbose = verbose

    def handle_failure(self, event: WorkflowRunEvent, config: RepoConfig) -> AgentRunResult:
        """
        Diagnose a failed run and let the agent retry, escalate or take notes.

        Raises:
            RuntimeError: Gemini API key missing.
            AgentSessionError: Timeout or agent runtime failure.
        """
        run = event.workflow_run
        logger.info(
            "Processing failed workflow run: repo=%s workflow=%s run_id=%s conclusion=%s",
            event.repository.full_name,
            run.name,
            run.id,
            run.conclusion,
        )
        return self._run(
            label=f"failure-{event.repository.full_name}-{run.id}",
            config=config,
            description=build_failure_prompt(event, config),
            expected_output="Short summary of the analysis and the actions taken.",
        )

    def handle_success(
        self, event: WorkflowRunEvent, config: RepoConfig, tracked: TrackedWorkflow
    ) -> AgentRunResult:
        """Close the tracked issue for a recovered workflow."""
        logger.info(
            "Processing recovered workflow: key=%s issue=#%s run_id=%s",
            tracked.key,
            tracked.issue_number,
            event.workflow_run.id,
        )
        return self._run(
            label=f"success-{event.repository.full_name}-{event.workflow_run.id}",
            config=config,
            description=build_success_prompt(event, tracked),
            expected_output=f"Confirmation that issue #{tracked.issue_number} was closed and the workflow untracked.",
        )

    def _run(self, *, label: str, config: RepoConfig, description: str, expected_output: str) -> AgentRunResult:
        Config.require_gemini_api_key()

        with AgentSession(label, timeout_seconds=self.timeout_seconds) as session:
            # Write tools go dead with the session; an abandoned kickoff cannot act.
            sre_tools = build_sre_tools(self._toolbox_factory(config), is_live=lambda: session.active)
            tools = [*sre_tools, *self._external_tools()]
            sre_agent = Agent(
                role="GitHub Actions SRE",
                goal="Triage workflow runs and take the safest effective remediation.",
                backstory=build_system_message(config),
                verbose=self._verbose,
                tools=tools,
                llm=self.model,
            )
            task = Task(description=description, expected_output=expected_output, agent=sre_agent)
            crew = Crew(
                agents=[sre_agent],
                tasks=[task],
                process=Process.sequential,
                verbose=self._verbose,
                **session.crew_callbacks(),
            )

            def _set_model(name: str) -> None:
                sre_agent.llm = name

            result, used_model = session.send_and_wait(
                lambda: kickoff_with_model_fallback(
                    kickoff=crew.kickoff,
                    model=self.model,
                    set_model=_set_model,
                    logger=logger,
                    label=label,
                )
            )

        raw = str(getattr(result, "raw", result) or "")
        logger.info("Agent completed %s with model %s.", label, used_model)
        return AgentRunResult(raw=raw, model=used_model)
