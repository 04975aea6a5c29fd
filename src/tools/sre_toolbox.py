"""
src/tools/sre_toolbox.py
Handlers behind the agent's tools. Each returns a `{"success": ...}` dict and never raises,
so one failing collaborator call does not abort the agent session.
Exports: SREToolbox, MAX_RETRY_ATTEMPTS
"""

import logging
from dataclasses import dataclass
from typing import Any, assert_never

from pydantic import ValidationError

from src.common.tool_response import tool_failure, tool_success
from src.schemas import RepoConfig
from src.services.github_client import GitHubAPIError, GitHubClient
from src.services.status import StatusCache, actions_health, summarize_status
from src.stores.notes import NoteQuery, NoteStore
from src.stores.tracker import WorkflowTracker
from src.tools.actions import (
    CreateNote,
    DeleteNote,
    GetTrackedWorkflow,
    ListTrackedWorkflows,
    NoteSummary,
    QueryNotes,
    ResolveNote,
    TrackWorkflow,
    UntrackWorkflow,
    UpdateNote,
    parse_note_action,
    parse_tracker_action,
)

logger = logging.getLogger(__name__)

MAX_RETRY_ATTEMPTS = 3
DUPLICATE_TITLE_CHARS = 50
ISSUE_FOOTER = "_This issue was automatically created by the SRE Agent_"


def _merge_unique(*groups: list[str]) -> list[str]:
    merged: list[str] = []
    for group in groups:
        for item in group:
            if item and item not in merged:
                merged.append(item)
    return merged


def _validation_message(exc: ValidationError) -> str:
    issues = [f"{'.'.join(str(part) for part in err['loc']) or 'input'}: {err['msg']}" for err in exc.errors()]
    return "Invalid arguments: " + "; ".join(issues)


@dataclass
class SREToolbox:
    """Tool handlers bound to the shared stores and one event's repository policy."""

    github: GitHubClient
    status: StatusCache
    notes: NoteStore
    tracker: WorkflowTracker
    policy: RepoConfig

    def retry_workflow(self, owner: str, repo: str, run_id: int, failed_only: bool = True) -> dict[str, Any]:
        retry_policy = self.policy.actions.retry
        if not retry_policy.enabled:
            return tool_failure("Retries are disabled by the repository configuration.")
        limit = min(MAX_RETRY_ATTEMPTS, retry_policy.max_attempts)
        try:
            attempts = self.github.get_workflow_run_attempts(owner, repo, run_id)
            if attempts >= limit:
                return tool_failure(
                    f"Workflow has already run {attempts} times (limit {limit}). "
                    "Investigate further instead of retrying."
                )
            if failed_only:
                self.github.rerun_failed_jobs(owner, repo, run_id)
                message = f"Triggered re-run of failed jobs for workflow run {run_id}"
            else:
                self.github.rerun_workflow(owner, repo, run_id)
                message = f"Triggered full re-run of workflow run {run_id}"
        except GitHubAPIError as exc:
            logger.warning("retry_workflow failed for %s/%s run %s: %s", owner, repo, run_id, exc)
            return tool_failure(f"Failed to retry workflow: {exc}")
        logger.info("%s (%s/%s).", message, owner, repo)
        return tool_success(message=message, run_id=run_id, attempt=attempts + 1)

    def create_issue(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        labels: list[str] | None = None,
        assignees: list[str] | None = None,
        related_run_id: int | None = None,
    ) -> dict[str, Any]:
        issue_policy = self.policy.actions.create_issue
        if not issue_policy.enabled:
            return tool_failure("Issue creation is disabled by the repository configuration.")
        try:
            existing = self.github.search_issues(owner, repo, title[:DUPLICATE_TITLE_CHARS])
            open_duplicate = next((issue for issue in existing if issue.state == "open"), None)
            if open_duplicate is not None:
                self.github.add_issue_comment(
                    owner, repo, open_duplicate.number, f"## New occurrence detected\n\n{body}"
                )
                return tool_success(
                    issue_number=open_duplicate.number,
                    issue_url=f"https://github.com/{owner}/{repo}/issues/{open_duplicate.number}",
                    duplicate=True,
                    message=f"Added comment to existing issue #{open_duplicate.number} instead of creating a duplicate",
                )
            full_body = body
            if related_run_id:
                full_body += (
                    f"\n\n---\n**Related Workflow Run:** "
                    f"https://github.com/{owner}/{repo}/actions/runs/{related_run_id}"
                )
            full_body += f"\n\n---\n{ISSUE_FOOTER}"
            number = self.github.create_issue(
                owner,
                repo,
                title,
                full_body,
                _merge_unique(issue_policy.labels, labels or []),
                _merge_unique(issue_policy.assignees, assignees or []),
            )
        except GitHubAPIError as exc:
            logger.warning("create_issue failed for %s/%s: %s", owner, repo, exc)
            return tool_failure(f"Failed to create issue: {exc}")
        return tool_success(
            issue_number=number,
            issue_url=f"https://github.com/{owner}/{repo}/issues/{number}",
            duplicate=False,
            message=f"Created issue #{number}: {title}",
        )

    def comment_on_issue(
        self, owner: str, repo: str, issue_number: int, body: str, close: bool = False
    ) -> dict[str, Any]:
        try:
            self.github.add_issue_comment(owner, repo, issue_number, body)
            if close:
                self.github.close_issue(owner, repo, issue_number)
        except GitHubAPIError as exc:
            logger.warning("comment_on_issue failed for %s/%s#%s: %s", owner, repo, issue_number, exc)
            return tool_failure(f"Failed to update issue #{issue_number}: {exc}")
        action = "Commented on and closed" if close else "Commented on"
        return tool_success(issue_number=issue_number, closed=close, message=f"{action} issue #{issue_number}")

    def get_workflow_logs(self, owner: str, repo: str, run_id: int) -> dict[str, Any]:
        try:
            logs = self.github.get_failed_job_logs(owner, repo, run_id)
        except GitHubAPIError as exc:
            logger.warning("get_workflow_logs failed for %s/%s run %s: %s", owner, repo, run_id, exc)
            return tool_failure(f"Failed to get workflow logs: {exc}")
        return tool_success(run_id=run_id, logs=logs)

    def check_github_status(self, check_actions_only: bool = False) -> dict[str, Any]:
        if check_actions_only:
            actions = self.status.is_actions_healthy()
            return tool_success(actions_healthy=actions.healthy, summary=actions.details, has_incidents=False)
        status = self.status.get_status()
        return tool_success(
            actions_healthy=actions_health(status).healthy,
            summary=summarize_status(status),
            has_incidents=bool(status.incidents),
        )

    def manage_notes(self, **arguments: Any) -> dict[str, Any]:
        try:
            action = parse_note_action(arguments)
        except ValidationError as exc:
            return tool_failure(_validation_message(exc))

        if isinstance(action, CreateNote):
            note = self.notes.create(
                action.repo_full_name,
                action.title,
                action.content,
                action.tags,
                workflow_id=action.workflow_id,
                run_id=action.run_id,
            )
            logger.info("Created SRE note %s: %s", note.id, note.title)
            return tool_success(message=f"Created note: {note.title}", note=note.as_dict())
        if isinstance(action, UpdateNote):
            note = self.notes.update(
                action.note_id,
                title=action.title,
                content=action.content,
                tags=action.tags,
                resolved=action.resolved,
            )
            if note is None:
                return tool_failure(f"Note not found: {action.note_id}")
            return tool_success(message=f"Updated note: {note.title}", note=note.as_dict())
        if isinstance(action, QueryNotes):
            found = self.notes.query(
                NoteQuery(
                    repo_full_name=action.repo_full_name,
                    workflow_id=action.workflow_id,
                    run_id=action.run_id,
                    resolved=action.resolved,
                    tags=action.tags,
                    limit=action.limit,
                )
            )
            return tool_success(message=f"Found {len(found)} notes", notes=[note.as_dict() for note in found])
        if isinstance(action, NoteSummary):
            return tool_success(message="Retrieved summary", summary=self.notes.get_repo_summary(action.repo_full_name))
        if isinstance(action, ResolveNote):
            note = self.notes.resolve(action.note_id)
            if note is None:
                return tool_failure(f"Note not found: {action.note_id}")
            return tool_success(message=f"Resolved note: {note.title}", note=note.as_dict())
        if isinstance(action, DeleteNote):
            if not self.notes.delete(action.note_id):
                return tool_failure(f"Note not found: {action.note_id}")
            return tool_success(message=f"Deleted note: {action.note_id}")
        assert_never(action)

    def track_workflow(self, **arguments: Any) -> dict[str, Any]:
        try:
            action = parse_tracker_action(arguments)
        except ValidationError as exc:
            return tool_failure(_validation_message(exc))

        if isinstance(action, TrackWorkflow):
            tracked = self.tracker.track(
                action.owner,
                action.repo,
                action.workflow_id,
                action.workflow_name,
                action.issue_number,
                action.failed_run_id,
            )
            return tool_success(
                message=f"Tracking {tracked.key}; issue #{tracked.issue_number} closes on next success",
                tracked=tracked.as_dict(),
            )
        if isinstance(action, UntrackWorkflow):
            removed = self.tracker.untrack(action.owner, action.repo, action.workflow_id)
            if not removed:
                return tool_failure(f"Workflow {action.owner}/{action.repo}/{action.workflow_id} is not tracked")
            return tool_success(message=f"Stopped tracking {action.owner}/{action.repo}/{action.workflow_id}")
        if isinstance(action, GetTrackedWorkflow):
            tracked = self.tracker.get(action.owner, action.repo, action.workflow_id)
            return tool_success(tracked=tracked.as_dict() if tracked else None)
        if isinstance(action, ListTrackedWorkflows):
            if action.owner and action.repo:
                items = self.tracker.get_for_repo(action.owner, action.repo)
            else:
                items = self.tracker.get_all()
            return tool_success(message=f"Found {len(items)} tracked workflows", tracked=[item.as_dict() for item in items])
        assert_never(action)
