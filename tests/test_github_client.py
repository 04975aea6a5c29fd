"""
tests/test_github_client.py
Unit tests for src/services/github_client.py with a stubbed transport.
"""

import io
import json
import urllib.error

import pytest

from src.services.github_client import GitHubAPIError, GitHubClient, IssueRef


class _Response:
    def __init__(self, body: bytes):
        self._body = body

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class _Transport:
    """Routes (method, path-prefix) to canned bodies or HTTP errors."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request, timeout=None):
        self.requests.append(request)
        path = request.full_url.replace("https://api.test", "")
        for (method, prefix), result in self.routes.items():
            if request.get_method() == method and path.startswith(prefix):
                if isinstance(result, int):
                    raise urllib.error.HTTPError(
                        request.full_url, result, "error", {}, io.BytesIO(b'{"message": "Not Found"}')
                    )
                if isinstance(result, (dict, list)):
                    return _Response(json.dumps(result).encode("utf-8"))
                return _Response(result)
        raise AssertionError(f"Unexpected request {request.get_method()} {path}")


def _client(routes):
    transport = _Transport(routes)
    return GitHubClient("tok", "https://api.test", urlopen=transport), transport


def test_requests_carry_auth_and_api_headers():
    client, transport = _client({("GET", "/repos/acme/widgets/actions/runs/1"): {"run_attempt": 2}})

    assert client.get_workflow_run_attempts("acme", "widgets", 1) == 2
    request = transport.requests[0]
    assert request.unredirected_hdrs["Authorization"] == "Bearer tok"
    assert request.get_header("Accept") == "application/vnd.github+json"


def test_get_repo_file_returns_none_on_404():
    client, _ = _client({("GET", "/repos/acme/widgets/contents/"): 404})
    assert client.get_repo_file("acme", "widgets", ".github/sre-agent.yml") is None


def test_get_repo_file_returns_text():
    client, transport = _client({("GET", "/repos/acme/widgets/contents/"): b"enabled: false\n"})

    assert client.get_repo_file("acme", "widgets", ".github/sre-agent.yml") == "enabled: false\n"
    assert transport.requests[0].full_url.endswith("/contents/.github/sre-agent.yml")


def test_http_errors_become_github_api_errors():
    client, _ = _client({("POST", "/repos/acme/widgets/actions/runs/5/rerun"): 403})

    with pytest.raises(GitHubAPIError) as exc_info:
        client.rerun_workflow("acme", "widgets", 5)
    assert exc_info.value.status == 403
    assert exc_info.value.message == "Not Found"


def test_transport_failure_becomes_github_api_error():
    def unreachable(request, timeout=None):
        raise urllib.error.URLError("dns failure")

    client = GitHubClient("tok", "https://api.test", urlopen=unreachable)
    with pytest.raises(GitHubAPIError) as exc_info:
        client.get_workflow_run("acme", "widgets", 1)
    assert exc_info.value.status == 0


def test_failed_job_logs_tail_at_most_three_jobs():
    jobs = [{"id": n, "name": f"job-{n}", "conclusion": "failure"} for n in range(1, 5)]
    jobs.append({"id": 9, "name": "ok", "conclusion": "success"})
    log = "\n".join(f"line {n}" for n in range(300)).encode("utf-8")
    client, _ = _client(
        {
            ("GET", "/repos/acme/widgets/actions/runs/7/jobs"): {"jobs": jobs},
            ("GET", "/repos/acme/widgets/actions/jobs/2/logs"): 500,
            ("GET", "/repos/acme/widgets/actions/jobs/"): log,
        }
    )

    logs = client.get_failed_job_logs("acme", "widgets", 7)

    assert "=== Job: job-1 ===" in logs
    assert "=== Job: job-2 ===\n[Failed to fetch logs]" in logs
    assert "=== Job: job-3 ===" in logs
    assert "job-4" not in logs
    assert "line 99\n" not in logs
    assert "line 100" in logs
    assert "line 299" in logs


def test_failed_job_logs_without_failures():
    client, _ = _client({("GET", "/repos/acme/widgets/actions/runs/7/jobs"): {"jobs": []}})
    assert client.get_failed_job_logs("acme", "widgets", 7) == "No failed jobs found."


def test_create_issue_posts_body_and_returns_number():
    client, transport = _client({("POST", "/repos/acme/widgets/issues"): {"number": 31}})

    number = client.create_issue("acme", "widgets", "CI broken", "details", ["sre-agent"], ["dev"])

    assert number == 31
    sent = json.loads(transport.requests[0].data.decode("utf-8"))
    assert sent == {"title": "CI broken", "body": "details", "labels": ["sre-agent"], "assignees": ["dev"]}


def test_search_issues_parses_items():
    client, transport = _client(
        {("GET", "/search/issues"): {"items": [{"number": 4, "title": "CI broken", "state": "open"}]}}
    )

    assert client.search_issues("acme", "widgets", "CI broken") == [IssueRef(4, "CI broken", "open")]
    assert "repo%3Aacme%2Fwidgets" in transport.requests[0].full_url


def test_close_issue_patches_state():
    client, transport = _client({("PATCH", "/repos/acme/widgets/issues/4"): {}})

    client.close_issue("acme", "widgets", 4)
    assert json.loads(transport.requests[0].data.decode("utf-8"))["state"] == "closed"
