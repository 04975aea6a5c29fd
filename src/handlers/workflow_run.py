"""
src/handlers/workflow_run.py
Route a validated workflow_run event through the filter to the agent dispatcher.
Exports: WorkflowRunHandler, HandleResult
"""

import logging
from dataclasses import dataclass
from typing import Protocol, assert_never

from src.event_filter import Decision, Ignore, ProcessFailure, ProcessSuccess, TrackerLookup, decide
from src.schemas import RepoConfig, WorkflowRunEvent
from src.services.repo_config import RepoFileReader, default_repo_config, load_repo_config
from src.shared import AgentRunResult
from src.stores.tracker import TrackedWorkflow

logger = logging.getLogger(__name__)


class Dispatcher(Protocol):
    def handle_failure(self, event: WorkflowRunEvent, config: RepoConfig) -> AgentRunResult: ...

    def handle_success(
        self, event: WorkflowRunEvent, config: RepoConfig, tracked: TrackedWorkflow
    ) -> AgentRunResult: ...


@dataclass(frozen=True)
class HandleResult:
    processed: bool
    decision: Decision
    response: str | None = None


class WorkflowRunHandler:
    """Blocking per-event handler; dispatcher errors propagate to the caller."""

    def __init__(
        self,
        *,
        dispatcher: Dispatcher,
        tracker: TrackerLookup,
        config_reader: RepoFileReader | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._tracker = tracker
        self._config_reader = config_reader

    def _repo_config(self, event: WorkflowRunEvent) -> RepoConfig:
        if event.action != "completed":
            return default_repo_config()
        return load_repo_config(self._config_reader, event.owner, event.repo)

    def handle(self, event: WorkflowRunEvent) -> HandleResult:
        run = event.workflow_run
        config = self._repo_config(event)
        decision = decide(event, config, self._tracker)

        if isinstance(decision, Ignore):
            logger.debug(
                "Ignoring workflow run %s in %s: %s", run.id, event.repository.full_name, decision.reason
            )
            return HandleResult(processed=False, decision=decision)
        if isinstance(decision, ProcessSuccess):
            logger.info(
                "Tracked workflow %s succeeded in %s; closing issue #%s.",
                run.name,
                event.repository.full_name,
                decision.tracked.issue_number,
            )
            try:
                result = self._dispatcher.handle_success(event, config, decision.tracked)
            except Exception:
                logger.exception("Failed to process workflow success for run %s.", run.id)
                raise
        elif isinstance(decision, ProcessFailure):
            try:
                result = self._dispatcher.handle_failure(event, config)
            except Exception:
                logger.exception(
                    "Failed to process workflow run %s in %s.", run.id, event.repository.full_name
                )
                raise
        else:
            assert_never(decision)

        logger.info(
            "Workflow run processed: repo=%s run_id=%s conclusion=%s model=%s",
            event.repository.full_name,
            run.id,
            run.conclusion,
            result.model,
        )
        return HandleResult(processed=True, decision=decision, response=result.raw)
