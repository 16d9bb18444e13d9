"""
Review 领域模型（Pydantic）。

用途：
- 明确 pipeline 各阶段输入/输出的数据结构（diff -> job -> result -> comment）
- 作为 review backend JSON 响应的 schema 校验
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Change(BaseModel):
    """hunk 里的一行变更（add/del/normal）。"""

    type: Literal["add", "del", "normal"]
    old_line: int | None = None
    new_line: int | None = None
    content: str


class Chunk(BaseModel):
    """一个 hunk：起始行号（新文件侧）+ hunk header + 变更行。"""

    line: int
    content: str
    changes: list[Change] = Field(default_factory=list)


class DiffFile(BaseModel):
    """
    单个文件的 diff。

    - target 为 None 表示文件被删除（`/dev/null`）
    - raw 保留原始文本，过滤后可以原样拼回 diff
    """

    source: str | None = None
    target: str | None = None
    chunks: list[Chunk] = Field(default_factory=list)
    raw: str = ""

    @property
    def is_deleted(self) -> bool:
        return self.target is None


class PullRequestContext(BaseModel):
    """一次 PR 的上下文；每次运行只构造一次。"""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    pull_number: int
    title: str = ""
    description: str = ""


class RepositoryContext(BaseModel):
    """push 事件没有 PR，只有仓库信息。"""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    url: str = ""


class ReviewItem(BaseModel):
    """backend 返回的单条行内评论。"""

    path: str
    line: int
    body: str


class ReviewGroup(BaseModel):
    """
    backend 返回的一组评论（对应一个文件/chunk）。

    item 没写 path 时继承 group 的 path。
    """

    path: str
    line: int | None = None
    items: list[ReviewItem] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _inherit_item_path(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        path = data.get("path")
        items = data.get("items")
        if isinstance(path, str) and isinstance(items, list):
            data = dict(data)
            data["items"] = [
                {"path": path, **item} if isinstance(item, dict) and "path" not in item else item for item in items
            ]
        return data


TaskState = Literal["pending", "running", "succeeded", "failed"]


class TaskStatus(BaseModel):
    """`GET /task/{task_id}` 的响应。"""

    status: TaskState
    result: list[ReviewGroup] | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ("succeeded", "failed")


class CommitSummary(BaseModel):
    """push 事件里的一条 commit 摘要。"""

    id: str
    message: str = ""
    author_email: str | None = None
    committer_email: str | None = None


class AnalysisJob(BaseModel):
    """
    提交给 review backend 的 payload。

    pull_request 与 pusher/commits 二选一（PR 事件 vs push 事件）。
    task_id 只在异步模式被 backend 接受后才有值。
    """

    diff: str
    files: list[str] = Field(default_factory=list)
    repository: RepositoryContext
    pull_request: PullRequestContext | None = None
    pusher: str | None = None
    commits: list[CommitSummary] = Field(default_factory=list)
    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    task_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"task_id"}, exclude_none=True)


class PublishOutcome(BaseModel):
    """单个 review group 的发布结果。"""

    group: ReviewGroup
    ok: bool
    error: str | None = None


class RunResult(BaseModel):
    """一次运行的非失败结果（done / skipped）。"""

    status: Literal["done", "skipped"]
    message: str = ""
    comments: list[ReviewItem] = Field(default_factory=list)
    files: list[DiffFile] = Field(default_factory=list)
    outcomes: list[PublishOutcome] = Field(default_factory=list)

    @property
    def failed_outcomes(self) -> list[PublishOutcome]:
        return [o for o in self.outcomes if not o.ok]
