"""
src/tools/tool_registry.py
Explicit Composio tool names the SRE agent may receive from the external tool provider.

Only read-only repository tools are requested: all writes (issues, retries) go
through the agent's own policy-checked tools.
"""

SRE_GITHUB_TOOLS: list[str] = [
    "GITHUB_GET_REPOSITORY_CONTENT",
    "GITHUB_GET_RAW_REPOSITORY_CONTENT",
    "GITHUB_LIST_COMMITS",
    "GITHUB_GET_A_COMMIT",
    "GITHUB_GET_A_WORKFLOW_RUN",
    "GITHUB_LIST_JOBS_FOR_A_WORKFLOW_RUN",
]
