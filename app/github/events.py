"""
事件分类：原始 payload -> 封闭的 `EventDescriptor`。

下游只对 `kind` 做穷举匹配，不再去 payload 里按字段名猜。
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, ValidationError

from app.github.schemas import GitHubPullRequestEventPayload
from app.github.schemas import GitHubPushEventPayload
from app.review.errors import UnsupportedEventError
from app.review.models import CommitSummary

logger = logging.getLogger(__name__)

ZERO_SHA_PREFIX = "0000000"
CANNOT_COMPARE_PUSH = "Cannot compare this push"


class PullRequestOpenedEvent(BaseModel):
    kind: Literal["pull_request_opened"] = "pull_request_opened"
    owner: str
    repo: str
    pull_number: int


class PullRequestSynchronizeEvent(BaseModel):
    kind: Literal["pull_request_synchronize"] = "pull_request_synchronize"
    owner: str
    repo: str
    pull_number: int
    before: str
    after: str


class PushEvent(BaseModel):
    kind: Literal["push"] = "push"
    owner: str
    repo: str
    repo_url: str = ""
    before: str
    after: str
    pusher_email: str | None = None
    commits: list[CommitSummary] = Field(default_factory=list)


class UnsupportedEvent(BaseModel):
    kind: Literal["unsupported"] = "unsupported"
    event_name: str


EventDescriptor = Annotated[
    Union[PullRequestOpenedEvent, PullRequestSynchronizeEvent, PushEvent, UnsupportedEvent],
    Field(discriminator="kind"),
]

PullRequestEvent = Union[PullRequestOpenedEvent, PullRequestSynchronizeEvent]


def classify_event(payload: Mapping[str, Any], event_name: str) -> EventDescriptor:
    """
    按 action / pusher 选择处理模式。

    - action == "opened"      -> PullRequestOpenedEvent
    - action == "synchronize" -> PullRequestSynchronizeEvent（带 before/after）
    - 有 pusher 字段          -> PushEvent
    - 其它                    -> UnsupportedEvent
    - 结构不合法（缺 repository / number）直接抛 `UnsupportedEventError`
    """
    action = payload.get("action")
    try:
        if action in ("opened", "synchronize"):
            return _classify_pull_request(payload=payload, event_name=event_name)
        if "pusher" in payload:
            return _classify_push(payload=payload)
    except ValidationError as exc:
        raise UnsupportedEventError(event_name=event_name, detail=str(exc)) from exc

    logger.info(f"Unsupported event: name={event_name}, action={action}")
    return UnsupportedEvent(event_name=event_name)


def _classify_pull_request(payload: Mapping[str, Any], event_name: str) -> PullRequestEvent:
    parsed = GitHubPullRequestEventPayload.model_validate(payload)
    pull_number = parsed.pull_number
    if pull_number is None:
        raise UnsupportedEventError(event_name=event_name, detail="payload has no pull request number")

    owner = parsed.repository.owner.handle
    repo = parsed.repository.name
    if parsed.action == "opened":
        return PullRequestOpenedEvent(owner=owner, repo=repo, pull_number=pull_number)
    return PullRequestSynchronizeEvent(
        owner=owner,
        repo=repo,
        pull_number=pull_number,
        before=parsed.before,
        after=parsed.after,
    )


def _classify_push(payload: Mapping[str, Any]) -> PushEvent:
    parsed = GitHubPushEventPayload.model_validate(payload)
    commits = [
        CommitSummary(
            id=c.id,
            message=c.message,
            author_email=c.author.email if c.author else None,
            committer_email=c.committer.email if c.committer else None,
        )
        for c in parsed.commits
    ]
    return PushEvent(
        owner=parsed.repository.owner.handle,
        repo=parsed.repository.name,
        repo_url=parsed.repository.html_url or parsed.repository.url,
        before=parsed.before,
        after=parsed.after,
        pusher_email=parsed.pusher.email,
        commits=commits,
    )


def push_comparison_blocker(event: PushEvent) -> str | None:
    """
    push 无法比较时返回原因（informational，不算失败），否则 None。

    分支创建/删除时 before 是全 0 sha。
    """
    if not event.before or not event.after:
        return CANNOT_COMPARE_PUSH
    if event.before == event.after:
        return CANNOT_COMPARE_PUSH
    if event.before.startswith(ZERO_SHA_PREFIX):
        return CANNOT_COMPARE_PUSH
    return None

