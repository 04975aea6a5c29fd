"""
src/schemas.py
Structured records for the inbound webhook payload and per-repository policy.
Exports: Conclusion, WorkflowRunEvent, RepoConfig, PROCESSABLE_CONCLUSIONS
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Conclusion = Literal[
    "success",
    "failure",
    "cancelled",
    "skipped",
    "timed_out",
    "action_required",
    "stale",
    "neutral",
    "startup_failure",
]

WorkflowRunAction = Literal["completed", "requested", "in_progress", "queued", "pending", "waiting"]

PROCESSABLE_CONCLUSIONS: frozenset[str] = frozenset({"failure", "timed_out", "startup_failure"})


class _Payload(BaseModel):
    """Base for webhook sub-objects; unknown GitHub fields are dropped."""

    model_config = ConfigDict(extra="ignore", frozen=True)


class Account(_Payload):
    login: str


class RepositoryRef(_Payload):
    id: int
    name: str
    full_name: str
    owner: Account


class WorkflowRun(_Payload):
    id: int
    name: str | None = None
    head_branch: str | None = None
    head_sha: str
    run_number: int
    run_attempt: int
    status: str | None = None
    conclusion: Conclusion | None = None
    workflow_id: int
    html_url: str
    created_at: str
    updated_at: str
    actor: Account | None = None
    triggering_actor: Account | None = None


class WorkflowRunEvent(_Payload):
    """`workflow_run` webhook body, validated at the HTTP boundary."""

    action: WorkflowRunAction
    workflow_run: WorkflowRun
    repository: RepositoryRef
    sender: Account

    @property
    def owner(self) -> str:
        return self.repository.owner.login

    @property
    def repo(self) -> str:
        return self.repository.name

    @property
    def triggered_by(self) -> str:
        run = self.workflow_run
        if run.triggering_actor is not None:
            return run.triggering_actor.login
        if run.actor is not None:
            return run.actor.login
        return "Unknown"


class _Policy(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class RetryPolicy(_Policy):
    enabled: bool = True
    max_attempts: int = Field(default=3, ge=1, le=10, alias="maxAttempts")


class CreateIssuePolicy(_Policy):
    enabled: bool = True
    labels: list[str] = Field(default_factory=lambda: ["sre-agent", "automated"])
    assignees: list[str] = Field(default_factory=list)


class ActionsPolicy(_Policy):
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    create_issue: CreateIssuePolicy = Field(default_factory=CreateIssuePolicy, alias="createIssue")


class IgnoreRules(_Policy):
    conclusions: list[Conclusion] = Field(default_factory=list)
    branches: list[str] = Field(default_factory=list)


class RepoConfig(_Policy):
    """
    Per-repository agent policy (`.github/sre-agent.yml`).

    Every nested section has defaults, so `RepoConfig.model_validate({})`
    yields a fully usable configuration.
    """

    version: int = 1
    enabled: bool = True
    instructions: str | None = None
    actions: ActionsPolicy = Field(default_factory=ActionsPolicy)
    workflows: list[str] = Field(default_factory=list)
    ignore: IgnoreRules = Field(default_factory=IgnoreRules)
