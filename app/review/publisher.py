"""
把 backend 返回的 review group 发布成 GitHub PR review。

- 每个 group 单独一次 review 提交；没有 item 的 group 不发请求
- 单个 group 失败只记录，不影响后续 group（结果里能看到哪些失败了）
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from app.github.client import GitHubClient
from app.github.schemas import GitHubReviewComment
from app.review.errors import TransportError
from app.review.models import PublishOutcome
from app.review.models import PullRequestContext
from app.review.models import ReviewGroup

logger = logging.getLogger(__name__)


async def publish_review_groups(
    github_client: GitHubClient,
    pull_request: PullRequestContext,
    groups: Sequence[ReviewGroup],
) -> list[PublishOutcome]:
    outcomes: list[PublishOutcome] = []
    for group in groups:
        if not group.items:
            continue
        comments = [GitHubReviewComment(path=i.path, line=i.line, body=i.body) for i in group.items]
        try:
            await github_client.create_pull_request_review(
                owner=pull_request.owner,
                repo=pull_request.repo,
                pull_number=pull_request.pull_number,
                comments=comments,
            )
        except TransportError as exc:
            logger.warning(f"Failed to publish review for {group.path}: {exc}")
            outcomes.append(PublishOutcome(group=group, ok=False, error=str(exc)))
            continue
        logger.info(f"Published {len(comments)} comment(s) on {group.path}")
        outcomes.append(PublishOutcome(group=group, ok=True))
    return outcomes
