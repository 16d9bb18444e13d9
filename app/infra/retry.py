"""
轮询策略（最小版本）。

- `PollPolicy`：固定间隔（无 jitter / backoff），次数 / 截止时间上限可选
- `PollBudget`：每次发请求前调用 `before_attempt`，超限抛 `PollTimeoutError`
- `CancellationToken`：调用方 `cancel()`，下一次请求前抛 `PollCancelledError`
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from app.review.errors import PollCancelledError
from app.review.errors import PollTimeoutError


@dataclass(frozen=True)
class PollPolicy:
    """
    - interval_seconds: 两次状态查询之间的固定间隔
    - max_attempts: 最多查询次数（None 表示不限）
    - deadline_seconds: 从开始轮询算起的最长等待（None 表示不限）
    """

    interval_seconds: float = 1.0
    max_attempts: int | None = None
    deadline_seconds: float | None = None

    def __post_init__(self) -> None:
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")
        if self.max_attempts is not None and self.max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        if self.deadline_seconds is not None and self.deadline_seconds <= 0:
            raise ValueError("deadline_seconds must be > 0")


@dataclass
class CancellationToken:
    """协作式取消：调用方 `cancel()`，轮询循环在下一次查询前检查。"""

    _cancelled: bool = field(default=False, init=False)
    reason: str = ""

    def cancel(self, reason: str = "") -> None:
        self._cancelled = True
        self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class PollBudget:
    """单次轮询的预算计数（次数 + 截止时间）。"""

    def __init__(self, policy: PollPolicy, label: str) -> None:
        self._policy = policy
        self._label = label
        self._attempts = 0
        self._started_at = time.monotonic()

    @property
    def attempts(self) -> int:
        return self._attempts

    def before_attempt(self, cancel_token: CancellationToken | None) -> None:
        """每次发请求前调用；超预算 / 已取消直接抛错。"""
        if cancel_token is not None and cancel_token.cancelled:
            reason = f": {cancel_token.reason}" if cancel_token.reason else ""
            raise PollCancelledError(f"Polling {self._label} cancelled{reason}")
        max_attempts = self._policy.max_attempts
        if max_attempts is not None and self._attempts >= max_attempts:
            raise PollTimeoutError(f"Polling {self._label} gave up after {self._attempts} attempt(s)")
        deadline = self._policy.deadline_seconds
        if deadline is not None and time.monotonic() - self._started_at >= deadline:
            raise PollTimeoutError(f"Polling {self._label} exceeded deadline of {deadline}s")
        self._attempts += 1
