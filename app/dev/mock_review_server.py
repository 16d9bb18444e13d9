"""
本地 Mock review backend（只覆盖 pipeline 用到的三个接口）。

用途：
- 在没有真实 backend 的情况下，本地跑通：
  POST /comment -> GET /task/{task_id}（pending -> running -> succeeded）-> 发布评论
- 单测里通过 `httpx.ASGITransport` 直接挂载

启动：
  python -m app.dev.mock_review_server
"""

from __future__ import annotations

import os
import uuid
from typing import Any, Literal

import uvicorn
from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel, Field

from app.review.diff_parser import parse_unified_diff


class JobRequest(BaseModel):
    diff: str
    files: list[str] = Field(default_factory=list)
    repository: dict[str, Any]
    pull_request: dict[str, Any] | None = None
    pusher: str | None = None
    commits: list[dict[str, Any]] = Field(default_factory=list)
    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)


def _review_groups_for(diff: str) -> list[dict[str, object]]:
    """每个文件在第一条新增行上放一条评论（确定性，便于断言）。"""
    groups: list[dict[str, object]] = []
    for f in parse_unified_diff(diff):
        if f.target is None:
            continue
        added = [ch.new_line for c in f.chunks for ch in c.changes if ch.type == "add"]
        if not added:
            continue
        groups.append(
            {
                "path": f.target,
                "line": f.chunks[0].line,
                "items": [{"path": f.target, "line": added[0], "body": f"Mock review for `{f.target}`"}],
            }
        )
    return groups


def build_mock_app(
    api_key: str = "mock-key",
    mode: Literal["sync", "async"] = "async",
    polls_until_done: int = 2,
    fail_tasks: bool = False,
) -> FastAPI:
    """
    - mode: sync 直接返回结果；async 返回 task_id
    - polls_until_done: 前 N 次查询依次返回 pending / running
    - fail_tasks: 任务最终进入 failed
    """
    app = FastAPI(title="Mock Review Backend", version="0.1.0")
    tasks: dict[str, dict[str, Any]] = {}
    logs: list[dict[str, Any]] = []

    def check_auth(authorization: str | None) -> None:
        if authorization != f"Bearer {api_key}":
            raise HTTPException(status_code=401, detail="Invalid API key")

    @app.post("/log")
    async def submit_log(req: JobRequest, authorization: str | None = Header(default=None)) -> dict[str, str]:
        check_auth(authorization)
        logs.append(req.model_dump())
        return {"status": "ok"}

    @app.post("/comment")
    async def submit_comment(req: JobRequest, authorization: str | None = Header(default=None)) -> Any:
        check_auth(authorization)
        groups = _review_groups_for(req.diff)
        if mode == "sync":
            return groups
        task_id = uuid.uuid4().hex
        tasks[task_id] = {"polls": 0, "result": groups}
        return {"task_id": task_id}

    @app.get("/task/{task_id}")
    async def get_task(task_id: str, authorization: str | None = Header(default=None)) -> dict[str, object]:
        check_auth(authorization)
        task = tasks.get(task_id)
        if task is None:
            raise HTTPException(status_code=404, detail="Unknown task")
        polls = task["polls"]
        task["polls"] = polls + 1
        if polls < polls_until_done:
            return {"status": "pending" if polls == 0 else "running"}
        if fail_tasks:
            return {"status": "failed", "error": "mock failure"}
        return {"status": "succeeded", "result": task["result"]}

    @app.get("/__debug__/logs")
    async def debug_logs() -> dict[str, object]:
        return {"count": len(logs), "logs": logs}

    return app


def main() -> None:
    mode: Literal["sync", "async"] = "sync" if os.environ.get("MOCK_REVIEW_MODE") == "sync" else "async"
    app = build_mock_app(api_key=os.environ.get("API_KEY", "mock-key"), mode=mode)
    uvicorn.run(app, host="127.0.0.1", port=9003)


if __name__ == "__main__":
    main()
