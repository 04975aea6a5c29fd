"""
src/tools/actions.py
Typed action variants for the multi-action note and tracker tools.
Exports: NoteAction, TrackerAction, parse_note_action, parse_tracker_action
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Action(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class CreateNote(_Action):
    action: Literal["create"]
    repo_full_name: str
    title: str
    content: str
    tags: list[str] = Field(default_factory=list)
    workflow_id: int | None = None
    run_id: int | None = None


class UpdateNote(_Action):
    action: Literal["update"]
    note_id: str
    title: str | None = None
    content: str | None = None
    tags: list[str] | None = None
    resolved: bool | None = None


class QueryNotes(_Action):
    action: Literal["query"]
    repo_full_name: str | None = None
    workflow_id: int | None = None
    run_id: int | None = None
    resolved: bool | None = None
    tags: list[str] | None = None
    limit: int = Field(default=10, ge=1, le=100)


class NoteSummary(_Action):
    action: Literal["get_summary"]
    repo_full_name: str


class ResolveNote(_Action):
    action: Literal["resolve"]
    note_id: str


class DeleteNote(_Action):
    action: Literal["delete"]
    note_id: str


NoteAction = Annotated[
    CreateNote | UpdateNote | QueryNotes | NoteSummary | ResolveNote | DeleteNote,
    Field(discriminator="action"),
]


class TrackWorkflow(_Action):
    action: Literal["track"]
    owner: str
    repo: str
    workflow_id: int
    workflow_name: str
    issue_number: int
    failed_run_id: int


class UntrackWorkflow(_Action):
    action: Literal["untrack"]
    owner: str
    repo: str
    workflow_id: int


class GetTrackedWorkflow(_Action):
    action: Literal["get"]
    owner: str
    repo: str
    workflow_id: int


class ListTrackedWorkflows(_Action):
    action: Literal["list"]
    owner: str | None = None
    repo: str | None = None


TrackerAction = Annotated[
    TrackWorkflow | UntrackWorkflow | GetTrackedWorkflow | ListTrackedWorkflows,
    Field(discriminator="action"),
]

_NOTE_ADAPTER: TypeAdapter[Any] = TypeAdapter(NoteAction)
_TRACKER_ADAPTER: TypeAdapter[Any] = TypeAdapter(TrackerAction)


def _without_nulls(raw: dict[str, Any]) -> dict[str, Any]:
    # LLM tool calls send explicit nulls for omitted optional arguments.
    return {key: value for key, value in raw.items() if value is not None}


def parse_note_action(raw: dict[str, Any]) -> CreateNote | UpdateNote | QueryNotes | NoteSummary | ResolveNote | DeleteNote:
    """Raises pydantic.ValidationError for unknown actions or missing fields."""
    return _NOTE_ADAPTER.validate_python(_without_nulls(raw))


def parse_tracker_action(raw: dict[str, Any]) -> TrackWorkflow | UntrackWorkflow | GetTrackedWorkflow | ListTrackedWorkflows:
    """Raises pydantic.ValidationError for unknown actions or missing fields."""
    return _TRACKER_ADAPTER.validate_python(_without_nulls(raw))
