"""
src/shared.py
Shared constants and result types used across the agent, handler and API layers.
Exports: SERVICE_NAME, SERVICE_VERSION, AgentRunResult
"""

from dataclasses import dataclass

SERVICE_NAME = "GitHub SRE Agent"
SERVICE_VERSION = "0.1.0"


@dataclass
class AgentRunResult:
    """Return type for every agent dispatch."""

    raw: str
    model: str
