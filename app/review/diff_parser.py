"""
Unified diff 解析（非 AI，确定性）。

- 输入：GitHub 返回的 diff 文本（`application/vnd.github.v3.diff`）
- 输出：`DiffFile` 列表，保持原始文件顺序
- hunk 结束由 header 里的行数判断，避免把 `--- foo` 这种删除行误判成文件头
"""

from __future__ import annotations

from app.review.models import Change
from app.review.models import Chunk
from app.review.models import DiffFile

DEV_NULL = "/dev/null"


def parse_unified_diff(diff: str) -> list[DiffFile]:
    files: list[DiffFile] = []
    current: DiffFile | None = None
    raw_lines: list[str] = []
    chunk: Chunk | None = None
    old_line = new_line = 0
    old_left = new_left = 0

    def flush() -> None:
        if current is not None:
            current.raw = "\n".join(raw_lines) + "\n"
            files.append(current)

    lines = diff.split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    for raw_line in lines:
        # CRLF diff：判断用去掉 \r 的行，raw 保留原样
        line = raw_line.rstrip("\r")
        in_hunk = chunk is not None and (old_left > 0 or new_left > 0)

        if line.startswith("diff --git ") and not in_hunk:
            flush()
            current = DiffFile()
            raw_lines = [raw_line]
            chunk = None
            source, target = _parse_git_header(line)
            current.source, current.target = source, target
            continue

        if line.startswith("--- ") and not in_hunk:
            if current is None or current.chunks:
                # 没有 `diff --git` 头的普通 unified diff
                flush()
                current = DiffFile()
                raw_lines = []
                chunk = None
            current.source = _strip_prefix(line[4:], "a/")
            raw_lines.append(raw_line)
            continue

        if current is None:
            continue
        raw_lines.append(raw_line)

        if line.startswith("+++ ") and not in_hunk:
            current.target = _strip_prefix(line[4:], "b/")
            continue
        if line.startswith("deleted file mode") and not in_hunk:
            current.target = None
            continue
        if line.startswith("@@"):
            old_line, old_left, new_line, new_left = _parse_hunk_header(header=line)
            chunk = Chunk(line=new_line, content=line)
            current.chunks.append(chunk)
            continue
        if chunk is None or not in_hunk:
            continue

        if line.startswith("+"):
            chunk.changes.append(Change(type="add", new_line=new_line, content=line))
            new_line += 1
            new_left -= 1
        elif line.startswith("-"):
            chunk.changes.append(Change(type="del", old_line=old_line, content=line))
            old_line += 1
            old_left -= 1
        elif line.startswith(" ") or line == "":
            chunk.changes.append(Change(type="normal", old_line=old_line, new_line=new_line, content=line))
            old_line += 1
            new_line += 1
            old_left -= 1
            new_left -= 1
        # `\ No newline at end of file` 不计入行号

    flush()
    return files


def _parse_git_header(line: str) -> tuple[str | None, str | None]:
    # diff --git a/path b/path
    rest = line[len("diff --git ") :]
    marker = rest.rfind(" b/")
    if not rest.startswith("a/") or marker < 0:
        return None, None
    return rest[2:marker], rest[marker + 3 :]


def _strip_prefix(path: str, prefix: str) -> str | None:
    path = path.split("\t", 1)[0].strip()
    if path == DEV_NULL:
        return None
    if path.startswith(prefix):
        return path[len(prefix) :]
    return path


def _parse_hunk_header(header: str) -> tuple[int, int, int, int]:
    # @@ -a,b +c,d @@ optional section heading
    try:
        parts = header.split(" ")
        old_part = parts[1].lstrip("-").split(",")
        new_part = parts[2].lstrip("+").split(",")
        old_start = int(old_part[0])
        old_count = int(old_part[1]) if len(old_part) > 1 else 1
        new_start = int(new_part[0])
        new_count = int(new_part[1]) if len(new_part) > 1 else 1
        return old_start, old_count, new_start, new_count
    except Exception as exc:
        raise ValueError(f"Invalid diff hunk header: {header}") from exc
