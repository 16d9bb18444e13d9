"""
Action 入口。

这里做四件事：
- 加载配置（严格校验环境变量）
- 读取事件 payload（`GITHUB_EVENT_PATH` / `GITHUB_EVENT_NAME`）
- 组装外部依赖（HTTP Client / GitHub client / review backend client）
- 跑 pipeline，把结果/失败交给 `ActionReporter`，返回进程退出码

注意：
- 业务流程不写在这里（由 `review/orchestrator.py` 负责）
- 一次运行只创建一个 `httpx.AsyncClient`，结束时关闭
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import anyio
import httpx

from app.action.reporter import ActionReporter
from app.config import ActionConfig
from app.config import load_config_from_env
from app.config import never_fail_from_env
from app.github.client import GitHubClient
from app.review.errors import ReviewPipelineError
from app.review.job_client import ReviewJobClient
from app.review.models import RunResult
from app.review.orchestrator import build_review_orchestrator
from app.review.orchestrator import run_review

logger = logging.getLogger(__name__)


def read_event_payload(event_path: str) -> dict[str, Any]:
    """读取 GitHub 写好的事件 JSON 文件。"""
    if not event_path:
        raise ValueError("GITHUB_EVENT_PATH is not set")
    try:
        payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ValueError(f"Cannot read event payload from {event_path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError(f"Event payload must be a JSON object: {event_path}")
    return payload


async def run_action(
    config: ActionConfig,
    payload: Mapping[str, Any],
    event_name: str,
    http_client: httpx.AsyncClient,
) -> RunResult:
    """组装 client + orchestrator，跑一次 review。"""
    github_client = GitHubClient(
        api_base_url=str(config.github_api_url),
        token=config.github_token,
        http_client=http_client,
    )
    job_client = ReviewJobClient(
        base_url=str(config.api_base_url),
        api_key=config.api_key,
        http_client=http_client,
        mode=config.review_mode,
        poll_policy=config.poll_policy(),
    )
    orchestrator = build_review_orchestrator(
        github_client=github_client,
        job_client=job_client,
        exclude=config.exclude,
        include=config.include,
        unsupported_event=config.unsupported_event,
    )
    return await run_review(orchestrator=orchestrator, payload=payload, event_name=event_name)


def report_result(result: RunResult, reporter: ActionReporter) -> None:
    """skipped 只是信息；done 时把评论和过滤后的 diff 写成 step outputs。"""
    reporter.info(result.message)
    for outcome in result.failed_outcomes:
        reporter.warning(f"Review for {outcome.group.path} was not published: {outcome.error}")
    if result.comments:
        reporter.set_output("comments", json.dumps([c.model_dump() for c in result.comments]))
        reporter.set_output("diff", json.dumps([f.model_dump(exclude={"raw"}) for f in result.files]))


async def _run(environ: Mapping[str, str], reporter: ActionReporter, config: ActionConfig) -> None:
    payload = read_event_payload(environ.get("GITHUB_EVENT_PATH", ""))
    event_name = environ.get("GITHUB_EVENT_NAME", "")
    async with httpx.AsyncClient(timeout=httpx.Timeout(30.0)) as http_client:
        result = await run_action(config=config, payload=payload, event_name=event_name, http_client=http_client)
    report_result(result=result, reporter=reporter)


def main(environ: Mapping[str, str] | None = None) -> int:
    """命令行入口：返回退出码（NEVER_FAIL=true 时失败也返回 0）。"""
    environ = os.environ if environ is None else environ
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    reporter = ActionReporter(output_path=environ.get("GITHUB_OUTPUT"), never_fail=never_fail_from_env(environ))

    # 1) 配置：缺失同样走失败上报
    try:
        config = load_config_from_env(environ)
    except ValueError as exc:
        reporter.set_failed(str(exc))
        return reporter.exit_code

    # 2) 跑 pipeline：所有致命错误汇总到 set_failed
    try:
        anyio.run(_run, environ, reporter, config)
    except (ReviewPipelineError, ValueError) as exc:
        reporter.set_failed(str(exc))
    return reporter.exit_code


if __name__ == "__main__":
    sys.exit(main())
