"""
src/tools/crew_tools.py
CrewAI tool wrappers around SREToolbox handlers.
Exports: SREHandlerTool, build_sre_tools
"""

import logging
from typing import Any, Callable, Literal

from crewai.tools import BaseTool
from pydantic import BaseModel, Field

from src.common.tool_response import (
    render_tool_response,
    response_indicates_failure,
    summarize_tool_response,
    tool_failure,
)
from src.tools.sre_toolbox import SREToolbox

logger = logging.getLogger(__name__)


class RetryWorkflowInput(BaseModel):
    owner: str = Field(description="Repository owner")
    repo: str = Field(description="Repository name")
    run_id: int = Field(description="Workflow run ID to retry")
    failed_only: bool = Field(default=True, description="Only retry failed jobs")


class CreateIssueInput(BaseModel):
    owner: str = Field(description="Repository owner")
    repo: str = Field(description="Repository name")
    title: str = Field(description="Issue title")
    body: str = Field(description="Issue body in markdown")
    labels: list[str] = Field(default_factory=list, description="Extra labels to apply")
    assignees: list[str] = Field(default_factory=list, description="Extra GitHub usernames to assign")
    related_run_id: int | None = Field(default=None, description="Related workflow run ID for linking")


class CommentOnIssueInput(BaseModel):
    owner: str = Field(description="Repository owner")
    repo: str = Field(description="Repository name")
    issue_number: int = Field(description="Issue number")
    body: str = Field(description="Comment body in markdown")
    close: bool = Field(default=False, description="Close the issue after commenting")


class WorkflowLogsInput(BaseModel):
    owner: str = Field(description="Repository owner")
    repo: str = Field(description="Repository name")
    run_id: int = Field(description="Workflow run ID")


class GitHubStatusInput(BaseModel):
    check_actions_only: bool = Field(default=False, description="Only check GitHub Actions status")


class ManageNotesInput(BaseModel):
    action: Literal["create", "update", "query", "get_summary", "resolve", "delete"] = Field(
        description="Action to perform"
    )
    repo_full_name: str | None = Field(default=None, description="Repository full name (owner/repo)")
    note_id: str | None = Field(default=None, description="Note ID (update, resolve, delete)")
    title: str | None = Field(default=None, description="Note title (create, update)")
    content: str | None = Field(default=None, description="Note content (create, update)")
    tags: list[str] | None = Field(default=None, description="Tags for categorization or filtering")
    workflow_id: int | None = Field(default=None, description="Related workflow ID")
    run_id: int | None = Field(default=None, description="Related run ID")
    resolved: bool | None = Field(default=None, description="Resolved flag (update) or filter (query)")
    limit: int | None = Field(default=None, description="Max notes to return (query, default 10)")


class TrackWorkflowInput(BaseModel):
    action: Literal["track", "untrack", "get", "list"] = Field(description="Action to perform")
    owner: str | None = Field(default=None, description="Repository owner")
    repo: str | None = Field(default=None, description="Repository name")
    workflow_id: int | None = Field(default=None, description="Workflow ID (not the run ID)")
    workflow_name: str | None = Field(default=None, description="Workflow name (track)")
    issue_number: int | None = Field(default=None, description="Open issue number (track)")
    failed_run_id: int | None = Field(default=None, description="Run ID that failed (track)")


class SREHandlerTool(BaseTool):
    """Expose one toolbox handler to the agent; results are JSON text."""

    handler: Callable[..., dict[str, Any]] = Field(exclude=True)
    is_live: Callable[[], bool] | None = Field(default=None, exclude=True)

    def _run(self, **kwargs: Any) -> str:
        logger.debug("Tool %s invoked.", self.name)
        if self.is_live is not None and not self.is_live():
            logger.warning("Tool %s called after its agent session ended; refusing.", self.name)
            return render_tool_response(tool_failure("Agent session released"))
        try:
            result = self.handler(**kwargs)
        except Exception as exc:
            logger.exception("Tool %s raised unexpectedly.", self.name)
            result = tool_failure(f"Tool '{self.name}' failed: {exc}")
        if response_indicates_failure(result):
            logger.info("Tool %s returned failure: %s", self.name, summarize_tool_response(result))
        return render_tool_response(result)


def build_sre_tools(
    toolbox: SREToolbox, *, is_live: Callable[[], bool] | None = None
) -> list[SREHandlerTool]:
    """Build the agent tool set bound to one event's toolbox, optionally gated on a live session."""
    return [
        SREHandlerTool(
            name="check_github_status",
            description=(
                "Check GitHub system status for outages or incidents. Use before retrying "
                "workflows to tell GitHub-side problems from code problems."
            ),
            args_schema=GitHubStatusInput,
            handler=toolbox.check_github_status,
            is_live=is_live,
        ),
        SREHandlerTool(
            name="get_workflow_logs",
            description=(
                "Fetch logs from failed jobs in a workflow run. Returns the last 200 lines "
                "of up to 3 failed jobs."
            ),
            args_schema=WorkflowLogsInput,
            handler=toolbox.get_workflow_logs,
            is_live=is_live,
        ),
        SREHandlerTool(
            name="retry_workflow",
            description=(
                "Retry a failed workflow run. By default only failed jobs are re-run; set "
                "failed_only to false to re-run everything. Refused after 3 attempts. Use "
                "only when the failure looks transient."
            ),
            args_schema=RetryWorkflowInput,
            handler=toolbox.retry_workflow,
            is_live=is_live,
        ),
        SREHandlerTool(
            name="create_issue",
            description=(
                "Create a GitHub issue for a workflow problem that needs a human. If an open "
                "issue with the same title exists, a comment is added to it instead. Include "
                "run links, error excerpts and your analysis."
            ),
            args_schema=CreateIssueInput,
            handler=toolbox.create_issue,
            is_live=is_live,
        ),
        SREHandlerTool(
            name="comment_on_issue",
            description="Comment on an existing issue, optionally closing it.",
            args_schema=CommentOnIssueInput,
            handler=toolbox.comment_on_issue,
            is_live=is_live,
        ),
        SREHandlerTool(
            name="manage_notes",
            description=(
                "Manage SRE notes that keep debugging context between workflow runs.\n"
                "Actions: create (repo_full_name, title, content, tags), update (note_id + "
                "fields), query (filters, limit), get_summary (repo_full_name), resolve "
                "(note_id), delete (note_id)."
            ),
            args_schema=ManageNotesInput,
            handler=toolbox.manage_notes,
            is_live=is_live,
        ),
        SREHandlerTool(
            name="track_workflow",
            description=(
                "Track a workflow that has an open issue so its next success closes the issue.\n"
                "Actions: track (owner, repo, workflow_id, workflow_name, issue_number, "
                "failed_run_id), untrack (owner, repo, workflow_id), get, list."
            ),
            args_schema=TrackWorkflowInput,
            handler=toolbox.track_workflow,
            is_live=is_live,
        ),
    ]
