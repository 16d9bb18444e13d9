"""
Diff 获取：根据事件类型决定拉哪份 diff。

- PR opened：整个 PR 的 diff
- PR synchronize / push：before...after 的 commit range diff
- unsupported：没有 diff，调用方应提前短路
"""

from __future__ import annotations

import logging

from app.github.client import GitHubClient
from app.github.events import EventDescriptor
from app.github.events import PullRequestOpenedEvent
from app.github.events import PullRequestSynchronizeEvent
from app.github.events import PushEvent
from app.github.events import UnsupportedEvent
from app.review.errors import DiffUnavailableError

logger = logging.getLogger(__name__)


async def acquire_diff(event: EventDescriptor, github_client: GitHubClient) -> str:
    """返回 unified diff 文本；传输错误以 `TransportError` 原样向上抛。"""
    if isinstance(event, PullRequestOpenedEvent):
        logger.info(f"Fetching PR diff: {event.owner}/{event.repo}#{event.pull_number}")
        return await github_client.get_pull_request_diff(
            owner=event.owner,
            repo=event.repo,
            pull_number=event.pull_number,
        )
    if isinstance(event, (PullRequestSynchronizeEvent, PushEvent)):
        logger.info(f"Comparing commits: {event.owner}/{event.repo} {event.before}...{event.after}")
        return await github_client.compare_commits_diff(
            owner=event.owner,
            repo=event.repo,
            base=event.before,
            head=event.after,
        )
    if isinstance(event, UnsupportedEvent):
        raise DiffUnavailableError(f"No diff for unsupported event: {event.event_name}")
    raise TypeError(f"Unknown event descriptor: {event!r}")
