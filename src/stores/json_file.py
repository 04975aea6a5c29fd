"""Whole-collection JSON persistence shared by the note store and workflow tracker."""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def prepare_data_path(path: str | Path) -> Path:
    """Create parent directories for a store file and return it as a Path."""
    store_path = Path(path)
    store_path.parent.mkdir(parents=True, exist_ok=True)
    return store_path


def read_records(path: str | Path) -> list[dict[str, Any]]:
    """
    Read a JSON array of objects.

    Args:
        path: Store file path.
    Returns:
        Parsed records; empty list when the file does not exist yet.
    Raises:
        OSError: File exists but cannot be read.
        ValueError: Content is not a JSON array of objects.
    """
    store_path = Path(path)
    if not store_path.exists():
        return []
    raw = json.loads(store_path.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"Expected a JSON array in {store_path}")
    return [item for item in raw if isinstance(item, dict)]


def write_records(path: str | Path, records: list[dict[str, Any]]) -> None:
    """Rewrite the full collection, replacing the file atomically."""
    store_path = prepare_data_path(path)
    tmp_path = store_path.with_name(f"{store_path.name}.tmp")
    tmp_path.write_text(json.dumps(records, indent=2, ensure_ascii=False), encoding="utf-8")
    os.replace(tmp_path, store_path)
