from __future__ import annotations

import json
from collections.abc import Callable

import anyio
import httpx
import pytest

from app.github.client import GitHubClient
from app.infra.retry import PollPolicy
from app.review.errors import DiffUnavailableError
from app.review.errors import TransportError
from app.review.errors import UnsupportedEventError
from app.review.job_client import ReviewJobClient
from app.review.orchestrator import ReviewOrchestrator
from app.review.orchestrator import UnsupportedEventPolicy
from app.review.orchestrator import build_review_orchestrator
from app.review.orchestrator import run_review

REPOSITORY = {"name": "r", "owner": {"login": "o"}, "html_url": "https://github.com/o/r"}


class FakeGitHub:
    """记录所有 GitHub 请求；diff 与 review 响应可配置。"""

    def __init__(self, diff: str, review_status: int = 200) -> None:
        self.diff = diff
        self.review_status = review_status
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        accept = request.headers.get("Accept", "")
        if request.method == "POST" and path.endswith("/reviews"):
            if self.review_status >= 400:
                return httpx.Response(self.review_status, text="nope")
            return httpx.Response(200, json={"id": len(self.requests), "state": "COMMENTED"})
        if "/compare/" in path or accept.endswith(".diff"):
            return httpx.Response(200, text=self.diff)
        if "/pulls/" in path:
            return httpx.Response(200, json={"number": 5, "title": "Add feature", "body": None})
        return httpx.Response(404)

    def reviews(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]


class FakeBackend:
    def __init__(self, result: list[dict[str, object]]) -> None:
        self.result = result
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/comment":
            return httpx.Response(200, json=self.result)
        return httpx.Response(200, json={"status": "ok"})


def _orchestrator(
    github: FakeGitHub,
    backend: FakeBackend,
    exclude: list[str] | None = None,
    include: list[str] | None = None,
    unsupported_event: UnsupportedEventPolicy = "skip",
    github_handler: Callable[[httpx.Request], httpx.Response] | None = None,
) -> ReviewOrchestrator:
    github_client = GitHubClient(
        api_base_url="https://api.github.com",
        token="gh-token",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(github_handler or github.handler)),
    )
    job_client = ReviewJobClient(
        base_url="https://review.example.com",
        api_key="secret",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(backend.handler)),
        mode="sync",
        poll_policy=PollPolicy(interval_seconds=0),
    )
    return build_review_orchestrator(
        github_client=github_client,
        job_client=job_client,
        exclude=exclude if exclude is not None else ["*.md"],
        include=include if include is not None else ["*"],
        unsupported_event=unsupported_event,
    )


def test_pull_request_opened_end_to_end(app_ts_diff: str) -> None:
    github = FakeGitHub(diff=app_ts_diff)
    backend = FakeBackend(result=[{"path": "src/app.ts", "items": [{"line": 10, "body": "fix"}]}])
    orchestrator = _orchestrator(github, backend)
    payload = {"action": "opened", "number": 5, "repository": REPOSITORY}

    result = anyio.run(run_review, orchestrator, payload, "pull_request")

    assert result.status == "done"
    reviews = github.reviews()
    assert len(reviews) == 1
    assert reviews[0].url.path == "/repos/o/r/pulls/5/reviews"
    body = json.loads(reviews[0].content)
    assert body["event"] == "COMMENT"
    assert body["comments"] == [{"path": "src/app.ts", "line": 10, "body": "fix"}]
    assert [c.body for c in result.comments] == ["fix"]

    (submitted,) = backend.requests
    job = json.loads(submitted.content)
    assert job["files"] == ["src/app.ts"]
    assert job["pull_request"]["title"] == "Add feature"
    assert job["pull_request"]["description"] == ""


def test_pull_request_details_fetched_once(app_ts_diff: str) -> None:
    github = FakeGitHub(diff=app_ts_diff)
    orchestrator = _orchestrator(github, FakeBackend(result=[]))
    payload = {"action": "opened", "number": 5, "repository": REPOSITORY}

    anyio.run(run_review, orchestrator, payload, "pull_request")

    json_gets = [r for r in github.requests if r.method == "GET" and not r.headers["Accept"].endswith(".diff")]
    assert len(json_gets) == 1


def test_synchronize_uses_commit_comparison(app_ts_diff: str) -> None:
    github = FakeGitHub(diff=app_ts_diff)
    orchestrator = _orchestrator(github, FakeBackend(result=[]))
    payload = {"action": "synchronize", "number": 5, "before": "aaa", "after": "bbb", "repository": REPOSITORY}

    result = anyio.run(run_review, orchestrator, payload, "pull_request")

    assert result.status == "done"
    compare = [r for r in github.requests if "/compare/" in r.url.path]
    assert [r.url.path for r in compare] == ["/repos/o/r/compare/aaa...bbb"]
    assert compare[0].headers["Accept"] == "application/vnd.github.v3.diff"
    assert github.reviews() == []


def _push_payload(before: str, after: str) -> dict[str, object]:
    return {
        "before": before,
        "after": after,
        "pusher": {"name": "dev", "email": "dev@example.com"},
        "repository": {"name": "r", "owner": {"name": "o", "login": "o"}, "url": "https://github.com/o/r"},
        "commits": [{"id": "c1", "message": "msg", "author": {"email": "a@x"}, "committer": {"email": "c@x"}}],
    }


@pytest.mark.parametrize("before", ["a" * 40, "0" * 40])
def test_push_that_cannot_be_compared_is_informational(app_ts_diff: str, before: str) -> None:
    github = FakeGitHub(diff=app_ts_diff)
    backend = FakeBackend(result=[])
    orchestrator = _orchestrator(github, backend)
    after = "a" * 40

    result = anyio.run(run_review, orchestrator, _push_payload(before, after), "push")

    assert result.status == "skipped"
    assert result.message == "Cannot compare this push"
    assert github.requests == []
    assert backend.requests == []


def test_push_is_logged_not_reviewed(app_ts_diff: str) -> None:
    github = FakeGitHub(diff=app_ts_diff)
    backend = FakeBackend(result=[])
    orchestrator = _orchestrator(github, backend)

    result = anyio.run(run_review, orchestrator, _push_payload("a" * 40, "b" * 40), "push")

    assert result.status == "done"
    assert [r.url.path for r in backend.requests] == ["/log"]
    logged = json.loads(backend.requests[0].content)
    assert logged["pusher"] == "dev@example.com"
    assert logged["commits"][0]["id"] == "c1"
    assert logged["repository"]["url"] == "https://github.com/o/r"
    assert github.reviews() == []


def test_unsupported_event_skip_and_fail_policies() -> None:
    payload = {"action": "closed", "number": 5, "repository": REPOSITORY}

    skip = _orchestrator(FakeGitHub(diff=""), FakeBackend(result=[]))
    result = anyio.run(run_review, skip, payload, "pull_request")
    assert result.status == "skipped"

    fail = _orchestrator(FakeGitHub(diff=""), FakeBackend(result=[]), unsupported_event="fail")
    with pytest.raises(UnsupportedEventError):
        anyio.run(run_review, fail, payload, "pull_request")


def test_empty_diff_is_a_failure() -> None:
    orchestrator = _orchestrator(FakeGitHub(diff=""), FakeBackend(result=[]))
    payload = {"action": "opened", "number": 5, "repository": REPOSITORY}
    with pytest.raises(DiffUnavailableError):
        anyio.run(run_review, orchestrator, payload, "pull_request")


def test_compare_transport_error_names_shas() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if "/compare/" in request.url.path:
            return httpx.Response(500, text="server error")
        return httpx.Response(200, json={"number": 5, "title": "t", "body": "b"})

    orchestrator = _orchestrator(FakeGitHub(diff=""), FakeBackend(result=[]), github_handler=handler)
    payload = {"action": "synchronize", "number": 5, "before": "aaa", "after": "bbb", "repository": REPOSITORY}

    with pytest.raises(TransportError) as exc_info:
        anyio.run(run_review, orchestrator, payload, "pull_request")
    assert exc_info.value.identifiers["base"] == "aaa"
    assert exc_info.value.identifiers["head"] == "bbb"


def test_everything_filtered_out_skips_backend(app_ts_diff: str) -> None:
    backend = FakeBackend(result=[])
    orchestrator = _orchestrator(FakeGitHub(diff=app_ts_diff), backend, exclude=["src/**"])
    payload = {"action": "opened", "number": 5, "repository": REPOSITORY}

    result = anyio.run(run_review, orchestrator, payload, "pull_request")

    assert result.status == "skipped"
    assert backend.requests == []


def test_publish_failures_do_not_abort_run(multi_file_diff: str) -> None:
    github = FakeGitHub(diff=multi_file_diff, review_status=422)
    backend = FakeBackend(
        result=[
            {"path": "src/app.ts", "items": [{"line": 9, "body": "a"}]},
            {"path": "src/app.ts", "items": []},
            {"path": "src/app.ts", "items": [{"line": 10, "body": "b"}]},
        ]
    )
    orchestrator = _orchestrator(github, backend)
    payload = {"action": "opened", "number": 5, "repository": REPOSITORY}

    result = anyio.run(run_review, orchestrator, payload, "pull_request")

    assert result.status == "done"
    assert len(github.reviews()) == 2
    assert [o.ok for o in result.outcomes] == [False, False]
    assert len(result.failed_outcomes) == 2
