"""
Action 结果上报（workflow commands + step outputs）。

- 所有致命错误都走 `set_failed`，是否让进程失败由 `never_fail` 决定
- outputs 追加写入 `$GITHUB_OUTPUT`（多行值用 heredoc 分隔符）
- 本地运行没有 `GITHUB_OUTPUT` 时，outputs 只打日志
"""

from __future__ import annotations

import logging
import sys
import uuid
from pathlib import Path
from typing import TextIO

logger = logging.getLogger(__name__)


def _escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class ActionReporter:
    """唯一的失败上报出口。"""

    def __init__(self, output_path: str | None, never_fail: bool, stream: TextIO | None = None) -> None:
        self._output_path = Path(output_path) if output_path else None
        self._never_fail = never_fail
        self._stream = stream or sys.stdout
        self._failures: list[str] = []

    @property
    def failures(self) -> list[str]:
        return list(self._failures)

    @property
    def exit_code(self) -> int:
        if self._failures and not self._never_fail:
            return 1
        return 0

    def _command(self, name: str, message: str) -> None:
        self._stream.write(f"::{name}::{_escape_data(message)}\n")

    def debug(self, message: str) -> None:
        logger.debug(message)
        self._command("debug", message)

    def info(self, message: str) -> None:
        logger.info(message)
        self._stream.write(f"{message}\n")

    def warning(self, message: str) -> None:
        logger.warning(message)
        self._command("warning", message)

    def set_output(self, name: str, value: str) -> None:
        if self._output_path is None:
            logger.info(f"Output {name}: {len(value)} chars (GITHUB_OUTPUT not set)")
            return
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        with self._output_path.open("a", encoding="utf-8") as f:
            f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")

    def set_failed(self, message: str) -> None:
        """
        记录一次致命失败。

        never_fail=true 时只打 warning，进程仍然以 0 退出。
        """
        self._failures.append(message)
        if self._never_fail:
            logger.error(f"Failure suppressed by NEVER_FAIL: {message}")
            self._command("warning", message)
            return
        logger.error(message)
        self._command("error", message)
