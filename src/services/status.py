"""
src/services/status.py
Cached view of githubstatus.com: overall indicator, components and open incidents.
Exports: GitHubStatus, StatusComponent, StatusIncident, ActionsHealth, StatusCache,
    actions_health, summarize_status
"""

import json
import logging
import threading
import time
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)

GITHUB_STATUS_API = "https://www.githubstatus.com/api/v2"
DEFAULT_TTL_SECONDS = 60.0
FETCH_TIMEOUT_SECONDS = 10


@dataclass(frozen=True)
class StatusComponent:
    id: str
    name: str
    status: str
    description: str | None = None


@dataclass(frozen=True)
class StatusIncident:
    id: str
    name: str
    status: str
    impact: str
    created_at: str = ""
    updated_at: str = ""
    shortlink: str = ""


@dataclass(frozen=True)
class GitHubStatus:
    indicator: str
    description: str
    components: list[StatusComponent] = field(default_factory=list)
    incidents: list[StatusIncident] = field(default_factory=list)


@dataclass(frozen=True)
class ActionsHealth:
    healthy: bool
    details: str


def fallback_status() -> GitHubStatus:
    return GitHubStatus(indicator="none", description="Unable to fetch status")


def actions_health(status: GitHubStatus) -> ActionsHealth:
    """Derive Actions health from one status snapshot."""
    component = next((item for item in status.components if "actions" in item.name.lower()), None)
    if component is None:
        return ActionsHealth(healthy=True, details="GitHub Actions status unknown")
    if component.status == "operational":
        return ActionsHealth(healthy=True, details="GitHub Actions is operational")
    return ActionsHealth(healthy=False, details=f"GitHub Actions status: {component.status}")


def summarize_status(status: GitHubStatus) -> str:
    """Render one status snapshot as markdown for the agent."""
    lines = [
        "## GitHub Status Summary",
        f"Overall: {status.description}",
        f"Actions: {actions_health(status).details}",
    ]
    if status.incidents:
        lines.append(f"\n### Active Incidents ({len(status.incidents)})")
        for incident in status.incidents:
            lines.append(f"- **{incident.name}** [{incident.impact}]: {incident.status}")
    degraded = [item for item in status.components if item.status != "operational"]
    if degraded:
        lines.append("\n### Degraded Components")
        for item in degraded:
            lines.append(f"- {item.name}: {item.status}")
    return "\n".join(lines)


def fetch_status_json(url: str) -> dict[str, Any]:
    request = urllib.request.Request(url, headers={"Accept": "application/json"})
    with urllib.request.urlopen(request, timeout=FETCH_TIMEOUT_SECONDS) as response:  # noqa: S310 - fixed status host
        return json.loads(response.read().decode("utf-8"))


def _parse_components(payload: dict[str, Any]) -> list[StatusComponent]:
    return [
        StatusComponent(
            id=str(item.get("id", "")),
            name=str(item.get("name", "")),
            status=str(item.get("status", "")),
            description=item.get("description"),
        )
        for item in payload.get("components", [])
        if isinstance(item, dict)
    ]


def _parse_incidents(payload: dict[str, Any]) -> list[StatusIncident]:
    return [
        StatusIncident(
            id=str(item.get("id", "")),
            name=str(item.get("name", "")),
            status=str(item.get("status", "")),
            impact=str(item.get("impact", "")),
            created_at=str(item.get("created_at", "")),
            updated_at=str(item.get("updated_at", "")),
            shortlink=str(item.get("shortlink", "")),
        )
        for item in payload.get("incidents", [])
        if isinstance(item, dict)
    ]


class StatusCache:
    """
    Time-based cache over the three status endpoints.

    A miss fetches summary, components and unresolved incidents concurrently.
    Any failure yields the neutral fallback status, which is not cached, so
    the next call retries.
    """

    def __init__(
        self,
        *,
        fetch_json: Callable[[str], dict[str, Any]] = fetch_status_json,
        base_url: str = GITHUB_STATUS_API,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch_json = fetch_json
        self._base_url = base_url.rstrip("/")
        self._ttl = ttl_seconds
        self._clock = clock
        self._cached: GitHubStatus | None = None
        self._fetched_at = 0.0
        self._lock = threading.Lock()

    def _fetch(self) -> GitHubStatus:
        urls = [
            f"{self._base_url}/status.json",
            f"{self._base_url}/components.json",
            f"{self._base_url}/incidents/unresolved.json",
        ]
        with ThreadPoolExecutor(max_workers=len(urls)) as pool:
            summary, components, incidents = pool.map(self._fetch_json, urls)
        overall = summary.get("status", {}) if isinstance(summary, dict) else {}
        return GitHubStatus(
            indicator=str(overall.get("indicator", "none")),
            description=str(overall.get("description", "")),
            components=_parse_components(components),
            incidents=_parse_incidents(incidents),
        )

    def get_status(self) -> GitHubStatus:
        with self._lock:
            now = self._clock()
            if self._cached is not None and now - self._fetched_at < self._ttl:
                return self._cached
            try:
                status = self._fetch()
            except Exception:
                logger.exception("Failed to fetch GitHub status.")
                return fallback_status()
            self._cached = status
            self._fetched_at = now
            logger.debug("GitHub status fetched: %s", status.indicator)
            return status

    def is_actions_healthy(self) -> ActionsHealth:
        return actions_health(self.get_status())

    def get_relevant_incidents(self) -> str:
        status = self.get_status()
        if not status.incidents:
            return "No ongoing GitHub incidents."
        lines = ["Current GitHub Incidents:"]
        for incident in status.incidents:
            lines.append(f"- [{incident.impact.upper()}] {incident.name} ({incident.status})")
            lines.append(f"  Link: {incident.shortlink}")
        return "\n".join(lines)

    def get_status_summary(self) -> str:
        return summarize_status(self.get_status())
