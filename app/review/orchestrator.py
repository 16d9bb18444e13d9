"""
Review Orchestrator（核心流程编排）。

流程（单向，不回滚；只有异步轮询内部会重复等待）：
Classifying -> Acquiring -> Filtering -> Submitting -> Polling -> Publishing -> Done

- 分类 / 获取 diff / 过滤 / 提交 出错都是致命错误（直接抛 `ReviewPipelineError`）
- 发布评论按 group 隔离失败
- 无法比较的 push、unsupported 事件（skip 策略）返回 `skipped`，不算失败
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from app.github.client import GitHubClient
from app.github.events import PullRequestEvent
from app.github.events import PullRequestOpenedEvent
from app.github.events import PullRequestSynchronizeEvent
from app.github.events import PushEvent
from app.github.events import UnsupportedEvent
from app.github.events import classify_event
from app.github.events import push_comparison_blocker
from app.infra.retry import CancellationToken
from app.review.diff_parser import parse_unified_diff
from app.review.diff_source import acquire_diff
from app.review.errors import DiffUnavailableError
from app.review.errors import UnsupportedEventError
from app.review.filters import filter_diff_files
from app.review.filters import render_diff
from app.review.job_client import ReviewJobClient
from app.review.models import AnalysisJob
from app.review.models import DiffFile
from app.review.models import PullRequestContext
from app.review.models import RepositoryContext
from app.review.models import RunResult
from app.review.publisher import publish_review_groups

logger = logging.getLogger(__name__)

UnsupportedEventPolicy = Literal["skip", "fail"]

NO_FILES_AFTER_FILTERING = "No files to review after filtering"


@dataclass(frozen=True)
class ReviewOrchestrator:
    """Orchestrator 运行时依赖 + 过滤规则。"""

    github_client: GitHubClient
    job_client: ReviewJobClient
    exclude: list[str] = field(default_factory=list)
    include: list[str] = field(default_factory=list)
    unsupported_event: UnsupportedEventPolicy = "skip"


def build_review_orchestrator(
    github_client: GitHubClient,
    job_client: ReviewJobClient,
    exclude: list[str],
    include: list[str],
    unsupported_event: UnsupportedEventPolicy = "skip",
) -> ReviewOrchestrator:
    return ReviewOrchestrator(
        github_client=github_client,
        job_client=job_client,
        exclude=list(exclude),
        include=list(include),
        unsupported_event=unsupported_event,
    )


async def run_review(
    orchestrator: ReviewOrchestrator,
    payload: Mapping[str, Any],
    event_name: str,
    cancel_token: CancellationToken | None = None,
) -> RunResult:
    """
    跑一次完整 pipeline。

    - 输入：原始事件 payload + 事件名
    - 输出：`RunResult`（done / skipped）
    - 失败：抛 `ReviewPipelineError` 子类，由入口统一上报
    """
    # Step 1: Classify
    event = classify_event(payload=payload, event_name=event_name)
    if isinstance(event, UnsupportedEvent):
        if orchestrator.unsupported_event == "fail":
            raise UnsupportedEventError(event_name=event.event_name)
        return RunResult(status="skipped", message=f"Unsupported event: {event.event_name}")

    if isinstance(event, PushEvent):
        blocker = push_comparison_blocker(event)
        if blocker is not None:
            logger.info(f"{blocker}: before={event.before!r}, after={event.after!r}")
            return RunResult(status="skipped", message=blocker)

    pull_request: PullRequestContext | None = None
    if isinstance(event, (PullRequestOpenedEvent, PullRequestSynchronizeEvent)):
        pull_request = await _fetch_pull_request_context(orchestrator.github_client, event)

    # Step 2: Acquire
    diff = await acquire_diff(event=event, github_client=orchestrator.github_client)
    if not diff or not diff.strip():
        raise DiffUnavailableError(f"No diff found for {event.owner}/{event.repo}")

    # Step 3: Filter
    files = filter_diff_files(
        parse_unified_diff(diff),
        exclude=orchestrator.exclude,
        include=orchestrator.include,
    )
    if not files:
        logger.info(NO_FILES_AFTER_FILTERING)
        return RunResult(status="skipped", message=NO_FILES_AFTER_FILTERING)

    job = _build_job(orchestrator=orchestrator, event=event, files=files, pull_request=pull_request)

    # Step 4: push 只做日志提交，不发评论
    if pull_request is None:
        await orchestrator.job_client.submit_log(job)
        return RunResult(status="done", message=f"Logged {len(files)} file(s) for push", files=files)

    # Step 5: Submit + Poll
    groups = await orchestrator.job_client.request_review(job, cancel_token=cancel_token)

    # Step 6: Publish
    outcomes = await publish_review_groups(
        github_client=orchestrator.github_client,
        pull_request=pull_request,
        groups=groups,
    )
    failed = [o for o in outcomes if not o.ok]
    if failed:
        logger.warning(f"{len(failed)} of {len(outcomes)} review submission(s) failed")

    comments = [item for g in groups for item in g.items]
    return RunResult(
        status="done",
        message=f"Published {len(outcomes) - len(failed)} review(s) with {len(comments)} comment(s)",
        comments=comments,
        files=files,
        outcomes=outcomes,
    )


async def _fetch_pull_request_context(github_client: GitHubClient, event: PullRequestEvent) -> PullRequestContext:
    details = await github_client.get_pull_request(owner=event.owner, repo=event.repo, pull_number=event.pull_number)
    return PullRequestContext(
        owner=event.owner,
        repo=event.repo,
        pull_number=event.pull_number,
        title=details.title or "",
        description=details.body or "",
    )


def _build_job(
    orchestrator: ReviewOrchestrator,
    event: PullRequestEvent | PushEvent,
    files: list[DiffFile],
    pull_request: PullRequestContext | None,
) -> AnalysisJob:
    repo_url = event.repo_url if isinstance(event, PushEvent) else ""
    job = AnalysisJob(
        diff=render_diff(files),
        files=[f.target for f in files if f.target],
        repository=RepositoryContext(owner=event.owner, repo=event.repo, url=repo_url),
        pull_request=pull_request,
        include=orchestrator.include,
        exclude=orchestrator.exclude,
    )
    if isinstance(event, PushEvent):
        job.pusher = event.pusher_email
        job.commits = list(event.commits)
    return job
