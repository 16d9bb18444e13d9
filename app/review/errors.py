"""
Review pipeline 错误类型。

约定：
- 致命错误统一继承 `ReviewPipelineError`，由入口处一次性上报
- 发布评论失败不在这里抛出（见 `publisher.PublishOutcome`）
"""

from __future__ import annotations


class ReviewPipelineError(RuntimeError):
    """pipeline 任一阶段的致命错误。"""

    pass


class UnsupportedEventError(ReviewPipelineError):
    """事件无法映射到支持的处理模式。"""

    def __init__(self, event_name: str, detail: str = "") -> None:
        self.event_name = event_name
        message = f"Unsupported event: {event_name}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class DiffUnavailableError(ReviewPipelineError):
    """diff 为空或无法获取。"""

    pass


class TransportError(ReviewPipelineError):
    """
    外部调用失败（GitHub / review backend）。

    - operation: 调用名（例如 `compare_commits`）
    - identifiers: 定位问题需要的 id（sha、PR 号、task_id 等）
    """

    def __init__(self, operation: str, detail: str, identifiers: dict[str, object] | None = None) -> None:
        self.operation = operation
        self.detail = detail
        self.identifiers = dict(identifiers or {})
        ids = ", ".join(f"{k}={v}" for k, v in self.identifiers.items())
        suffix = f" [{ids}]" if ids else ""
        super().__init__(f"{operation} failed: {detail}{suffix}")


class TaskFailedError(ReviewPipelineError):
    """异步任务进入 failed 终态。"""

    def __init__(self, task_id: str, detail: str | None = None) -> None:
        self.task_id = task_id
        message = f"Review task {task_id} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PollTimeoutError(ReviewPipelineError):
    """轮询超过 max_attempts / deadline 仍未到终态。"""

    pass


class PollCancelledError(ReviewPipelineError):
    """轮询被 cancellation token 取消。"""

    pass
