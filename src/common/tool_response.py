"""Shared helpers for building and summarizing agent tool results."""

import json
from typing import Any


def tool_success(**data: Any) -> dict[str, Any]:
    """Return a successful tool result carrying `data` fields."""
    return {"success": True, **data}


def tool_failure(error: str) -> dict[str, Any]:
    """Return a failed tool result; the agent decides how to proceed."""
    return {"success": False, "error": error}


def response_indicates_failure(response: Any) -> bool:
    """Return whether a tool result payload represents failure."""
    if response is None:
        return True
    if isinstance(response, dict):
        if response.get("success") is False:
            return True
        if response.get("error"):
            return True
    return False


def render_tool_response(response: dict[str, Any]) -> str:
    """Serialize a tool result for the LLM."""
    return json.dumps(response, ensure_ascii=False, default=str)


def summarize_tool_response(response: Any, max_chars: int = 280) -> str:
    """Return a compact, readable summary for logs and error messages."""
    text = render_tool_response(response) if isinstance(response, dict) else str(response)
    return text if len(text) <= max_chars else f"{text[: max_chars - 3]}..."
