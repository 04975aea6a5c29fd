"""
src/stores/notes.py
Durable collection of free-text SRE debugging notes, keyed by opaque id.
Exports: SRENote, NoteQuery, NoteStore
"""

import logging
import threading
import uuid
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Iterable

from src.stores.json_file import read_records, utc_now_iso, write_records

logger = logging.getLogger(__name__)

NOTES_FILENAME = "notes.json"
DEFAULT_QUERY_LIMIT = 10
SUMMARY_NOTE_COUNT = 5
EXCERPT_CHARS = 100


def _unique_tags(tags: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for tag in tags:
        if tag not in seen:
            seen.append(tag)
    return seen


@dataclass(frozen=True)
class SRENote:
    """One debugging note. Persisted with camelCase keys."""

    id: str
    repo_full_name: str
    title: str
    content: str
    created_at: str
    updated_at: str
    tags: list[str] = field(default_factory=list)
    resolved: bool = False
    workflow_id: int | None = None
    run_id: int | None = None

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": self.id,
            "repoFullName": self.repo_full_name,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "resolved": self.resolved,
        }
        if self.workflow_id is not None:
            record["workflowId"] = self.workflow_id
        if self.run_id is not None:
            record["runId"] = self.run_id
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "SRENote":
        workflow_id = record.get("workflowId")
        run_id = record.get("runId")
        return cls(
            id=str(record["id"]),
            repo_full_name=str(record["repoFullName"]),
            title=str(record.get("title", "")),
            content=str(record.get("content", "")),
            created_at=str(record["createdAt"]),
            updated_at=str(record.get("updatedAt", record["createdAt"])),
            tags=_unique_tags(str(tag) for tag in record.get("tags", []) or []),
            resolved=bool(record.get("resolved", False)),
            workflow_id=int(workflow_id) if workflow_id is not None else None,
            run_id=int(run_id) if run_id is not None else None,
        )

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NoteQuery:
    """Conjunctive filter; `tags` matches notes carrying ANY of the given tags."""

    repo_full_name: str | None = None
    workflow_id: int | None = None
    run_id: int | None = None
    resolved: bool | None = None
    tags: list[str] | None = None
    limit: int | None = DEFAULT_QUERY_LIMIT

    def matches(self, note: SRENote) -> bool:
        if self.repo_full_name is not None and note.repo_full_name != self.repo_full_name:
            return False
        if self.workflow_id is not None and note.workflow_id != self.workflow_id:
            return False
        if self.run_id is not None and note.run_id != self.run_id:
            return False
        if self.resolved is not None and note.resolved != self.resolved:
            return False
        if self.tags and not set(self.tags).intersection(note.tags):
            return False
        return True


class NoteStore:
    """
    In-memory note map mirrored to a single JSON file.

    Every mutating call rewrites the whole collection. That is fine for the
    dozens-to-hundreds of notes this service accumulates; an append log
    would be needed beyond that.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        now: Callable[[], str] = utc_now_iso,
        new_id: Callable[[], str] = lambda: uuid.uuid4().hex,
    ) -> None:
        self._path = Path(path)
        self._now = now
        self._new_id = new_id
        self._notes: dict[str, SRENote] = {}
        self._loaded = False
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        try:
            for record in read_records(self._path):
                try:
                    note = SRENote.from_record(record)
                except (KeyError, TypeError, ValueError):
                    logger.warning("Skipping malformed note record: %s", record.get("id"))
                    continue
                self._notes[note.id] = note
            logger.info("Loaded %d notes from %s", len(self._notes), self._path)
        except (OSError, ValueError):
            logger.exception("Failed to load notes from %s; starting empty.", self._path)
        self._loaded = True

    def _persist(self) -> None:
        try:
            write_records(self._path, [note.to_record() for note in self._notes.values()])
        except OSError:
            logger.exception("Failed to persist notes to %s.", self._path)

    def load(self) -> int:
        """Load persisted notes now instead of on first use; returns the count."""
        with self._lock:
            self._ensure_loaded()
            return len(self._notes)

    def create(
        self,
        repo_full_name: str,
        title: str,
        content: str,
        tags: Iterable[str] = (),
        *,
        workflow_id: int | None = None,
        run_id: int | None = None,
        resolved: bool = False,
    ) -> SRENote:
        now = self._now()
        note = SRENote(
            id=self._new_id(),
            repo_full_name=repo_full_name,
            title=title,
            content=content,
            created_at=now,
            updated_at=now,
            tags=_unique_tags(tags),
            resolved=resolved,
            workflow_id=workflow_id,
            run_id=run_id,
        )
        with self._lock:
            self._ensure_loaded()
            self._notes[note.id] = note
            self._persist()
        logger.debug("Created note %s for %s.", note.id, repo_full_name)
        return note

    def update(
        self,
        note_id: str,
        *,
        title: str | None = None,
        content: str | None = None,
        tags: Iterable[str] | None = None,
        resolved: bool | None = None,
    ) -> SRENote | None:
        """Merge the provided (non-None) fields and bump `updated_at`."""
        changes: dict[str, Any] = {}
        if title is not None:
            changes["title"] = title
        if content is not None:
            changes["content"] = content
        if tags is not None:
            changes["tags"] = _unique_tags(tags)
        if resolved is not None:
            changes["resolved"] = resolved
        with self._lock:
            self._ensure_loaded()
            existing = self._notes.get(note_id)
            if existing is None:
                return None
            updated = replace(existing, updated_at=self._now(), **changes)
            # Re-insert so insertion order breaks updated_at ties in favour of this note.
            del self._notes[note_id]
            self._notes[note_id] = updated
            self._persist()
        logger.debug("Updated note %s.", note_id)
        return updated

    def resolve(self, note_id: str) -> SRENote | None:
        return self.update(note_id, resolved=True)

    def get(self, note_id: str) -> SRENote | None:
        with self._lock:
            self._ensure_loaded()
            return self._notes.get(note_id)

    def delete(self, note_id: str) -> bool:
        with self._lock:
            self._ensure_loaded()
            if self._notes.pop(note_id, None) is None:
                return False
            self._persist()
        logger.debug("Deleted note %s.", note_id)
        return True

    def query(self, query: NoteQuery | None = None, **filters: Any) -> list[SRENote]:
        """
        Return matching notes, most recently updated first.

        Args:
            query: Prepared NoteQuery; keyword filters build one when omitted.
        Returns:
            Notes truncated to `query.limit` after sorting (`None` means all).
        """
        if query is None:
            query = NoteQuery(**filters)
        with self._lock:
            self._ensure_loaded()
            indexed = [
                (position, note)
                for position, note in enumerate(self._notes.values())
                if query.matches(note)
            ]
        indexed.sort(key=lambda pair: (pair[1].updated_at, pair[0]), reverse=True)
        results = [note for _, note in indexed]
        if query.limit is not None:
            results = results[: max(query.limit, 0)]
        return results

    def get_repo_summary(self, repo_full_name: str) -> str:
        notes = self.query(NoteQuery(repo_full_name=repo_full_name, limit=None))
        if not notes:
            return f"No SRE notes for {repo_full_name}."
        unresolved = sum(1 for note in notes if not note.resolved)
        lines = [
            f"## SRE Notes for {repo_full_name}",
            f"Total: {len(notes)} | Unresolved: {unresolved}",
            "",
        ]
        for note in notes[:SUMMARY_NOTE_COUNT]:
            marker = "✅" if note.resolved else "🔴"
            excerpt = note.content[:EXCERPT_CHARS]
            if len(note.content) > EXCERPT_CHARS:
                excerpt += "..."
            lines.append(f"{marker} **{note.title}** ({note.updated_at})")
            lines.append(f"   {excerpt}")
        return "\n".join(lines)
