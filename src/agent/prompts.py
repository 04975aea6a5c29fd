"""
src/agent/prompts.py
Prompt text for the SRE agent: system message, failure context and success follow-up.
Exports: build_system_message, build_failure_prompt, build_success_prompt
"""

from src.schemas import RepoConfig, WorkflowRunEvent
from src.stores.tracker import TrackedWorkflow
from src.tools.sre_toolbox import MAX_RETRY_ATTEMPTS


def build_system_message(config: RepoConfig) -> str:
    """
    Build the agent backstory from the repository policy.

    Args:
        config: Effective repository configuration.
    Returns:
        Markdown system message including policy limits and custom instructions.
    """
    retry = config.actions.retry
    create_issue = config.actions.create_issue
    custom_instructions = (
        f"\n\n## Repository-Specific Instructions\n{config.instructions}" if config.instructions else ""
    )
    labels = ", ".join(create_issue.labels) or "none"
    assignees = ", ".join(create_issue.assignees) or "none"
    return (
        "You are an expert Site Reliability Engineer (SRE) agent for GitHub Actions.\n\n"
        "## Your Role\n"
        "You analyze GitHub Actions workflow failures and take appropriate actions to resolve "
        "issues or escalate them properly.\n\n"
        "## Your Capabilities\n"
        "- Retry failed workflows (when appropriate)\n"
        "- Create GitHub issues for tracking problems\n"
        "- Fetch and analyze workflow logs\n"
        "- Check GitHub's status for outages\n"
        "- Maintain notes for tracking ongoing issues\n"
        "- Track workflows with open issues so they can be closed on recovery\n\n"
        "## Decision Guidelines\n"
        "1. **First, check GitHub status** - If there's an outage, note it and avoid unnecessary retries\n"
        "2. **Analyze logs** - Understand the root cause before taking action\n"
        "3. **Check for patterns** - Use notes to find out whether this is a recurring issue\n"
        "4. **Be conservative with retries** - Never exceed the configured max attempts\n"
        "5. **Create issues thoughtfully** - Include relevant context, avoid duplicates\n"
        "6. **Track what you escalate** - After creating an issue, track the workflow with its issue number\n"
        "7. **Document your reasoning** - Keep notes for future reference\n\n"
        "## Configuration Limits\n"
        f"- Max retry attempts: {min(retry.max_attempts, MAX_RETRY_ATTEMPTS)}\n"
        f"- Auto-retry enabled: {str(retry.enabled).lower()}\n"
        f"- Auto-issue creation enabled: {str(create_issue.enabled).lower()}\n"
        f"- Issue labels: {labels}\n"
        f"- Issue assignees: {assignees}"
        f"{custom_instructions}\n\n"
        "## Response Format\n"
        "Provide a brief summary of your analysis and actions taken. Be concise but informative."
    )


def _event_block(event: WorkflowRunEvent) -> str:
    run = event.workflow_run
    return (
        "## Workflow Run Event\n\n"
        f"**Repository:** {event.repository.full_name}\n"
        f"**Workflow:** {run.name or 'Unknown'}\n"
        f"**Workflow ID:** {run.workflow_id}\n"
        f"**Run ID:** {run.id}\n"
        f"**Run Number:** {run.run_number}\n"
        f"**Attempt:** {run.run_attempt}\n"
        f"**Branch:** {run.head_branch or 'Unknown'}\n"
        f"**Conclusion:** {run.conclusion}\n"
        f"**Triggered by:** {event.triggered_by}\n"
        f"**URL:** {run.html_url}\n"
    )


def build_failure_prompt(event: WorkflowRunEvent, config: RepoConfig) -> str:
    """Context prompt for a failed, timed-out or startup-failed run."""
    run = event.workflow_run
    issue_step = (
        "3. If this appears to be a legitimate code issue, create an issue with your analysis, "
        f"then track workflow {run.workflow_id} with the returned issue number and failed_run_id {run.id}\n"
        if config.actions.create_issue.enabled
        else "3. Issue creation is disabled for this repository; record your analysis in a note instead\n"
    )
    retry_step = (
        "2. If this appears to be a transient failure (infrastructure, flaky test, etc.), consider retrying\n"
        if config.actions.retry.enabled
        else "2. Retries are disabled for this repository; do not call retry_workflow\n"
    )
    return (
        f"{_event_block(event)}\n"
        "## Task\n"
        "Analyze this workflow run and determine the appropriate action:\n"
        f"1. The conclusion is \"{run.conclusion}\"; investigate and decide whether to retry or escalate\n"
        f"{retry_step}"
        f"{issue_step}"
        f"4. Check for any existing notes about this workflow or similar failures in {event.repository.full_name}\n"
        "5. Update or create notes to track your findings\n\n"
        "Begin your analysis."
    )


def build_success_prompt(event: WorkflowRunEvent, tracked: TrackedWorkflow) -> str:
    """Follow-up prompt for a tracked workflow that has recovered."""
    run = event.workflow_run
    return (
        f"{_event_block(event)}\n"
        "## Task\n"
        f"This workflow previously failed (run {tracked.failed_run_id}) and issue "
        f"#{tracked.issue_number} was opened for it. It has now succeeded.\n"
        f"1. Comment on issue #{tracked.issue_number} in {tracked.owner}/{tracked.repo} noting that "
        f"run {run.id} succeeded ({run.html_url}), and close the issue\n"
        f"2. Untrack workflow {tracked.workflow_id} for {tracked.owner}/{tracked.repo}\n"
        "3. Resolve any open notes about this failure\n\n"
        "Confirm what you did in a short summary."
    )
