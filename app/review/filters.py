"""
include/exclude 路径过滤。

规则（固定两遍，不合并成一个 predicate）：
1. 先丢掉已删除文件（target 为 None）
2. exclude：命中任意一个 pattern 就丢掉
3. include：至少命中一个 pattern 才保留；include 为空时等价于 `["*"]`

因此同一路径同时命中 exclude 和 include 时，exclude 生效。
"""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Sequence

from app.review.models import DiffFile

logger = logging.getLogger(__name__)

MATCH_ALL = "*"


def parse_pattern_list(raw: str | None) -> list[str]:
    """逗号分隔的 glob 列表 -> list（去空白、去空项）。"""
    if not raw:
        return []
    return [p.strip() for p in raw.split(",") if p.strip()]


def matches_any(path: str, patterns: Sequence[str]) -> bool:
    """shell glob 语义（fnmatch：`*`/`**` 可跨 `/`，`?`，`[...]`）。"""
    return any(fnmatch.fnmatch(path, pattern) for pattern in patterns)


def drop_deleted_files(files: Sequence[DiffFile]) -> list[DiffFile]:
    return [f for f in files if not f.is_deleted]


def filter_diff_files(
    files: Sequence[DiffFile],
    exclude: Sequence[str],
    include: Sequence[str],
) -> list[DiffFile]:
    """对 post-change path 执行 exclude -> include 两遍过滤，保持原顺序。"""
    include_patterns = list(include) or [MATCH_ALL]

    remaining = drop_deleted_files(files)
    kept: list[DiffFile] = []
    for f in remaining:
        path = f.target or ""
        if matches_any(path, exclude):
            logger.debug(f"Excluded by pattern: {path}")
            continue
        kept.append(f)

    result = [f for f in kept if matches_any(f.target or "", include_patterns)]
    logger.info(f"Pattern filter: {len(files)} file(s) in, {len(result)} file(s) kept")
    return result


def render_diff(files: Sequence[DiffFile]) -> str:
    """把过滤后的文件重新拼成 unified diff 文本。"""
    return "".join(f.raw for f in files)
