import logging
import os
from typing import Any

from src.config import Config
from src.tools.tool_registry import SRE_GITHUB_TOOLS

logger = logging.getLogger(__name__)


def get_composio_tools(
    user_id: str, tools: list[str] | None = None, toolkits: list[str] | None = None
) -> list[Any]:
    Config.require_env("COMPOSIO_API_KEY")
    os.environ.setdefault("COMPOSIO_CACHE_DIR", ".composio-cache")
    from composio import Composio
    from composio_crewai import CrewAIProvider

    composio = Composio(provider=CrewAIProvider())
    kwargs: dict[str, Any] = {"user_id": user_id}
    if tools:
        kwargs["tools"] = tools
    if toolkits:
        kwargs["toolkits"] = toolkits
    return composio.tools.get(**kwargs)


def get_external_github_tools(enabled: bool) -> list[Any]:
    """Return read-only Composio GitHub tools, or [] when disabled or unavailable."""
    if not enabled:
        return []
    try:
        return get_composio_tools(user_id=Config.get_composio_user_id(), tools=SRE_GITHUB_TOOLS)
    except Exception:
        logger.exception("Failed to load Composio GitHub tools; continuing without them.")
        return []
