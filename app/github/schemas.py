"""
GitHub 事件 payload / API response schemas（Pydantic）。

说明：
- 字段只覆盖 pipeline 需要的子集（pull_request / push 事件 + PR 详情 + review 创建）
- 其余字段一律忽略（pydantic 默认 extra=ignore）
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class GitHubOwner(BaseModel):
    """repository.owner：pull_request 事件有 login，push 事件还会带 name。"""

    login: str | None = None
    name: str | None = None

    @property
    def handle(self) -> str:
        return self.login or self.name or ""


class GitHubRepository(BaseModel):
    name: str
    owner: GitHubOwner
    url: str = ""
    html_url: str = ""


class GitHubPullRequestRef(BaseModel):
    number: int


class GitHubPullRequestEventPayload(BaseModel):
    """
    `pull_request` 事件（最小结构）。

    number 顶层一定有；`pull_request.number` 仅作兜底。
    """

    action: str
    number: int | None = None
    pull_request: GitHubPullRequestRef | None = None
    repository: GitHubRepository
    before: str = ""
    after: str = ""

    @property
    def pull_number(self) -> int | None:
        if self.number is not None:
            return self.number
        if self.pull_request is not None:
            return self.pull_request.number
        return None


class GitHubCommitUser(BaseModel):
    email: str | None = None


class GitHubPushCommit(BaseModel):
    id: str
    message: str = ""
    author: GitHubCommitUser | None = None
    committer: GitHubCommitUser | None = None


class GitHubPusher(BaseModel):
    name: str | None = None
    email: str | None = None


class GitHubPushEventPayload(BaseModel):
    """`push` 事件（最小结构）。"""

    before: str = ""
    after: str = ""
    pusher: GitHubPusher
    repository: GitHubRepository
    commits: list[GitHubPushCommit] = Field(default_factory=list)


class GitHubPullRequestDetails(BaseModel):
    """`GET /repos/{owner}/{repo}/pulls/{pull_number}`（JSON）的子集。"""

    number: int
    title: str | None = None
    body: str | None = None


class GitHubReviewComment(BaseModel):
    """创建 review 时的单条行内评论。"""

    path: str
    line: int
    body: str


class GitHubReview(BaseModel):
    """`POST /pulls/{pull_number}/reviews` 返回结构。"""

    id: int
    state: str | None = None
