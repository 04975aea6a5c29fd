"""
src/services/github_client.py
Minimal GitHub REST client for issues, workflow runs and job logs.
Exports: GitHubAPIError, GitHubClient, IssueRef
"""

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT_SECONDS = 20
MAX_LOG_JOBS = 3
MAX_LOG_LINES = 200


class GitHubAPIError(RuntimeError):
    """Non-2xx response or transport failure from the GitHub API."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"GitHub API error {status}: {message}" if status else message)
        self.status = status
        self.message = message


@dataclass(frozen=True)
class IssueRef:
    number: int
    title: str
    state: str


def _error_message(exc: urllib.error.HTTPError) -> str:
    try:
        body = exc.read().decode("utf-8", errors="replace")
    except Exception:
        return str(exc.reason)
    try:
        parsed = json.loads(body)
    except ValueError:
        return body[:280] or str(exc.reason)
    if isinstance(parsed, dict) and parsed.get("message"):
        return str(parsed["message"])
    return str(exc.reason)


class GitHubClient:
    """
    Thin wrapper over the REST endpoints the agent tools need.

    `urlopen` is injectable so tests can stub the transport.
    """

    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_API_URL,
        *,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
        urlopen: Callable[..., Any] = urllib.request.urlopen,
    ) -> None:
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._urlopen = urlopen

    def _request(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
        accept: str = "application/vnd.github+json",
    ) -> bytes:
        url = f"{self._api_url}{path}"
        if query:
            url = f"{url}?{urllib.parse.urlencode(query)}"
        data = json.dumps(body).encode("utf-8") if body is not None else None
        request = urllib.request.Request(url, data=data, method=method)
        request.add_header("Accept", accept)
        request.add_header("X-GitHub-Api-Version", "2022-11-28")
        if data is not None:
            request.add_header("Content-Type", "application/json")
        if self._token:
            # Log downloads redirect to pre-signed storage URLs that reject extra auth.
            request.add_unredirected_header("Authorization", f"Bearer {self._token}")
        try:
            with self._urlopen(request, timeout=self._timeout) as response:  # noqa: S310 - fixed API host
                return response.read()
        except urllib.error.HTTPError as exc:
            raise GitHubAPIError(exc.code, _error_message(exc)) from exc
        except urllib.error.URLError as exc:
            raise GitHubAPIError(0, f"GitHub API unreachable: {exc.reason}") from exc

    def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        raw = self._request(method, path, **kwargs)
        if not raw:
            return {}
        return json.loads(raw.decode("utf-8"))

    def get_repo_file(self, owner: str, repo: str, path: str) -> str | None:
        """Return raw file text from the default branch, or None when absent."""
        try:
            raw = self._request(
                "GET",
                f"/repos/{owner}/{repo}/contents/{urllib.parse.quote(path)}",
                accept="application/vnd.github.raw+json",
            )
        except GitHubAPIError as exc:
            if exc.status == 404:
                return None
            raise
        return raw.decode("utf-8", errors="replace")

    def get_workflow_run(self, owner: str, repo: str, run_id: int) -> dict[str, Any]:
        return self._json("GET", f"/repos/{owner}/{repo}/actions/runs/{run_id}")

    def get_workflow_run_attempts(self, owner: str, repo: str, run_id: int) -> int:
        run = self.get_workflow_run(owner, repo, run_id)
        return int(run.get("run_attempt") or 1)

    def get_failed_job_logs(self, owner: str, repo: str, run_id: int) -> str:
        """
        Collect the tail of logs for failed jobs of the latest attempt.

        Args:
            owner: Repository owner.
            repo: Repository name.
            run_id: Workflow run id.
        Returns:
            Up to MAX_LOG_JOBS sections of the last MAX_LOG_LINES lines each.
        Raises:
            GitHubAPIError: Listing jobs failed.
        """
        jobs_payload = self._json(
            "GET",
            f"/repos/{owner}/{repo}/actions/runs/{run_id}/jobs",
            query={"filter": "latest", "per_page": 100},
        )
        jobs = jobs_payload.get("jobs", []) if isinstance(jobs_payload, dict) else []
        failed = [job for job in jobs if isinstance(job, dict) and job.get("conclusion") == "failure"]
        if not failed:
            return "No failed jobs found."
        sections: list[str] = []
        for job in failed[:MAX_LOG_JOBS]:
            name = job.get("name", job.get("id"))
            try:
                raw = self._request(
                    "GET",
                    f"/repos/{owner}/{repo}/actions/jobs/{job['id']}/logs",
                    accept="application/vnd.github+json",
                )
                lines = raw.decode("utf-8", errors="replace").splitlines()
                sections.append(f"=== Job: {name} ===\n" + "\n".join(lines[-MAX_LOG_LINES:]))
            except GitHubAPIError:
                logger.warning("Failed to fetch logs for job %s of run %s.", name, run_id)
                sections.append(f"=== Job: {name} ===\n[Failed to fetch logs]")
        return "\n\n".join(sections)

    def rerun_workflow(self, owner: str, repo: str, run_id: int) -> None:
        self._request("POST", f"/repos/{owner}/{repo}/actions/runs/{run_id}/rerun", body={})
        logger.info("Workflow re-run triggered for %s/%s run %s.", owner, repo, run_id)

    def rerun_failed_jobs(self, owner: str, repo: str, run_id: int) -> None:
        self._request(
            "POST", f"/repos/{owner}/{repo}/actions/runs/{run_id}/rerun-failed-jobs", body={}
        )
        logger.info("Failed jobs re-run triggered for %s/%s run %s.", owner, repo, run_id)

    def create_issue(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        labels: list[str] | None = None,
        assignees: list[str] | None = None,
    ) -> int:
        data = self._json(
            "POST",
            f"/repos/{owner}/{repo}/issues",
            body={
                "title": title,
                "body": body,
                "labels": labels or [],
                "assignees": assignees or [],
            },
        )
        number = int(data["number"])
        logger.info("Issue #%d created in %s/%s.", number, owner, repo)
        return number

    def search_issues(self, owner: str, repo: str, title_fragment: str) -> list[IssueRef]:
        """Search issues in the repository whose title contains `title_fragment`."""
        escaped = title_fragment.replace('"', "")
        data = self._json(
            "GET",
            "/search/issues",
            query={"q": f'repo:{owner}/{repo} is:issue "{escaped}" in:title', "per_page": 10},
        )
        items = data.get("items", []) if isinstance(data, dict) else []
        return [
            IssueRef(number=int(item["number"]), title=str(item.get("title", "")), state=str(item.get("state", "")))
            for item in items
            if isinstance(item, dict) and "number" in item
        ]

    def add_issue_comment(self, owner: str, repo: str, issue_number: int, body: str) -> None:
        self._request(
            "POST", f"/repos/{owner}/{repo}/issues/{issue_number}/comments", body={"body": body}
        )
        logger.info("Comment added to %s/%s#%d.", owner, repo, issue_number)

    def close_issue(self, owner: str, repo: str, issue_number: int) -> None:
        self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/issues/{issue_number}",
            body={"state": "closed", "state_reason": "completed"},
        )
        logger.info("Issue %s/%s#%d closed.", owner, repo, issue_number)
