"""
src/stores/tracker.py
Durable map of workflows with an open issue, awaiting their next success.
Exports: TrackedWorkflow, WorkflowTracker, make_key
"""

import logging
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable

from src.stores.json_file import read_records, utc_now_iso, write_records

logger = logging.getLogger(__name__)

TRACKER_FILENAME = "tracked-workflows.json"


def make_key(owner: str, repo: str, workflow_id: int) -> str:
    return f"{owner}/{repo}/{workflow_id}"


@dataclass(frozen=True)
class TrackedWorkflow:
    """A workflow whose failure produced issue `issue_number`."""

    key: str
    owner: str
    repo: str
    workflow_id: int
    workflow_name: str
    issue_number: int
    failed_run_id: int
    created_at: str

    def to_record(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "owner": self.owner,
            "repo": self.repo,
            "workflowId": self.workflow_id,
            "workflowName": self.workflow_name,
            "issueNumber": self.issue_number,
            "failedRunId": self.failed_run_id,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "TrackedWorkflow":
        owner = str(record["owner"])
        repo = str(record["repo"])
        workflow_id = int(record["workflowId"])
        return cls(
            key=make_key(owner, repo, workflow_id),
            owner=owner,
            repo=repo,
            workflow_id=workflow_id,
            workflow_name=str(record.get("workflowName", "")),
            issue_number=int(record["issueNumber"]),
            failed_run_id=int(record.get("failedRunId", 0)),
            created_at=str(record.get("createdAt", "")),
        )

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class WorkflowTracker:
    """
    At most one entry per (owner, repo, workflow_id); `track` overwrites.

    The file is loaded once on first access. Each mutation rewrites the full
    collection under the store lock before returning. A failed write is
    logged and the in-memory state stays authoritative until the next
    successful write.
    """

    def __init__(self, path: str | Path, *, now: Callable[[], str] = utc_now_iso) -> None:
        self._path = Path(path)
        self._now = now
        self._tracked: dict[str, TrackedWorkflow] = {}
        self._loaded = False
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        try:
            for record in read_records(self._path):
                try:
                    item = TrackedWorkflow.from_record(record)
                except (KeyError, TypeError, ValueError):
                    logger.warning("Skipping malformed tracked workflow record: %s", record)
                    continue
                self._tracked[item.key] = item
            logger.info("Loaded %d tracked workflows from %s", len(self._tracked), self._path)
        except (OSError, ValueError):
            logger.exception("Failed to load tracked workflows from %s; starting empty.", self._path)
        self._loaded = True

    def _persist(self) -> None:
        try:
            write_records(self._path, [item.to_record() for item in self._tracked.values()])
        except OSError:
            logger.exception("Failed to persist tracked workflows to %s.", self._path)

    def load(self) -> int:
        """Load persisted entries now instead of on first use; returns the count."""
        with self._lock:
            self._ensure_loaded()
            return len(self._tracked)

    def track(
        self,
        owner: str,
        repo: str,
        workflow_id: int,
        workflow_name: str,
        issue_number: int,
        failed_run_id: int,
    ) -> TrackedWorkflow:
        key = make_key(owner, repo, workflow_id)
        item = TrackedWorkflow(
            key=key,
            owner=owner,
            repo=repo,
            workflow_id=workflow_id,
            workflow_name=workflow_name,
            issue_number=issue_number,
            failed_run_id=failed_run_id,
            created_at=self._now(),
        )
        with self._lock:
            self._ensure_loaded()
            self._tracked[key] = item
            self._persist()
        logger.info("Now tracking workflow %s (issue #%d).", key, issue_number)
        return item

    def untrack(self, owner: str, repo: str, workflow_id: int) -> bool:
        key = make_key(owner, repo, workflow_id)
        with self._lock:
            self._ensure_loaded()
            if self._tracked.pop(key, None) is None:
                return False
            self._persist()
        logger.info("Stopped tracking workflow %s.", key)
        return True

    def get(self, owner: str, repo: str, workflow_id: int) -> TrackedWorkflow | None:
        with self._lock:
            self._ensure_loaded()
            return self._tracked.get(make_key(owner, repo, workflow_id))

    def get_for_repo(self, owner: str, repo: str) -> list[TrackedWorkflow]:
        with self._lock:
            self._ensure_loaded()
            return [
                item for item in self._tracked.values() if item.owner == owner and item.repo == repo
            ]

    def get_all(self) -> list[TrackedWorkflow]:
        with self._lock:
            self._ensure_loaded()
            return list(self._tracked.values())
