"""
src/event_filter.py
Decide whether a workflow_run event needs the agent, and which handler it goes to.
Exports: Ignore, ProcessFailure, ProcessSuccess, Decision, decide, match_glob
"""

import re
from dataclasses import dataclass
from typing import Protocol

from src.schemas import PROCESSABLE_CONCLUSIONS, RepoConfig, WorkflowRunEvent
from src.stores.tracker import TrackedWorkflow


class TrackerLookup(Protocol):
    def get(self, owner: str, repo: str, workflow_id: int) -> TrackedWorkflow | None: ...


@dataclass(frozen=True)
class Ignore:
    reason: str


@dataclass(frozen=True)
class ProcessFailure:
    pass


@dataclass(frozen=True)
class ProcessSuccess:
    tracked: TrackedWorkflow


Decision = Ignore | ProcessFailure | ProcessSuccess


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a branch glob: `*` is any run, `?` one character, the rest literal."""
    parts: list[str] = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL)


def match_glob(value: str, pattern: str) -> bool:
    """Full-string, case-sensitive glob match."""
    return glob_to_regex(pattern).fullmatch(value) is not None


def _ignore_reason(event: WorkflowRunEvent, config: RepoConfig) -> str | None:
    run = event.workflow_run
    if run.conclusion is not None and run.conclusion in config.ignore.conclusions:
        return f"conclusion '{run.conclusion}' is ignored by configuration"
    if run.head_branch is not None:
        for pattern in config.ignore.branches:
            if match_glob(run.head_branch, pattern):
                return f"branch '{run.head_branch}' matches ignored pattern '{pattern}'"
    if config.workflows:
        workflow_name = (run.name or "").lower()
        if workflow_name not in {name.lower() for name in config.workflows}:
            return f"workflow '{run.name}' is not in the configured workflow list"
    return None


def decide(event: WorkflowRunEvent, config: RepoConfig, tracker: TrackerLookup) -> Decision:
    """
    Route one webhook event.

    Ignore rules (conclusions, branches, workflow allow-list) apply to the
    failure path only: a success for a tracked workflow always reaches the
    success handler so its issue can be closed.

    Args:
        event: Validated workflow_run payload.
        config: Repository policy for this event.
        tracker: Lookup for workflows with an open issue.
    Returns:
        Ignore, ProcessFailure or ProcessSuccess(tracked entry).
    """
    if event.action != "completed":
        return Ignore(f"action '{event.action}' is not 'completed'")
    if not config.enabled:
        return Ignore("agent disabled for repository")

    run = event.workflow_run
    if run.conclusion == "success":
        tracked = tracker.get(event.owner, event.repo, run.workflow_id)
        if tracked is None:
            return Ignore("success for an untracked workflow")
        return ProcessSuccess(tracked)

    reason = _ignore_reason(event, config)
    if reason is not None:
        return Ignore(reason)
    if run.conclusion not in PROCESSABLE_CONCLUSIONS:
        return Ignore(f"conclusion '{run.conclusion}' requires no action")
    return ProcessFailure()
