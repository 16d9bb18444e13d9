"""
Review backend 客户端（提交 diff、取回 review 结果）。

两种协议，契约等价：
- **sync**：`POST /comment` 直接返回 review group 列表
- **async**：`POST /comment` 返回 `{task_id}`，再按固定间隔轮询 `GET /task/{task_id}`

约定：
- API key 通过构造参数传入，每个请求单独带 header（不修改共享 httpx client）
- 传输错误 / 非 2xx 直接抛 `TransportError`，轮询遇到传输错误立即停止
- 只有业务状态 pending/running 才会继续等待
"""

from __future__ import annotations

import logging
from typing import Any, Literal

import anyio
import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from app.infra.retry import CancellationToken
from app.infra.retry import PollBudget
from app.infra.retry import PollPolicy
from app.review.errors import TaskFailedError
from app.review.errors import TransportError
from app.review.models import AnalysisJob
from app.review.models import ReviewGroup
from app.review.models import TaskStatus

logger = logging.getLogger(__name__)

ReviewMode = Literal["sync", "async"]

_review_groups = TypeAdapter(list[ReviewGroup])


class TaskAccepted(BaseModel):
    """异步模式下 `POST /comment` 的响应。"""

    task_id: str


class ReviewJobClient:
    """review backend 的最小 client。"""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: httpx.AsyncClient,
        mode: ReviewMode = "async",
        poll_policy: PollPolicy | None = None,
    ) -> None:
        """
        - base_url: backend 地址（例如 `https://review.example.com`）
        - api_key: backend 鉴权 key
        - http_client: 复用的 httpx.AsyncClient
        - mode: sync / async
        - poll_policy: 异步轮询策略，默认 1s 间隔、不设上限
        """
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._http_client = http_client
        self._mode = mode
        self._poll_policy = poll_policy or PollPolicy()

    @property
    def mode(self) -> ReviewMode:
        return self._mode

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}", "Accept": "application/json"}

    async def _send(
        self,
        method: str,
        path: str,
        operation: str,
        identifiers: dict[str, object],
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            response = await self._http_client.request(method, url, headers=self._headers(), json=json)
        except httpx.HTTPError as exc:
            logger.error(f"Review backend HTTP error during {operation}: {exc}")
            raise TransportError(operation=operation, detail=str(exc), identifiers=identifiers) from exc
        if not response.is_success:
            logger.error(f"Review backend error during {operation}: {response.status_code}")
            raise TransportError(
                operation=operation,
                detail=f"Review backend error {response.status_code}: {response.text}",
                identifiers=identifiers,
            )
        return response

    def _parse(self, response: httpx.Response, operation: str, identifiers: dict[str, object], schema: Any) -> Any:
        try:
            data = response.json()
            if isinstance(schema, TypeAdapter):
                return schema.validate_python(data)
            return schema.model_validate(data)
        except (ValueError, ValidationError) as exc:
            raise TransportError(
                operation=operation,
                detail=f"Unexpected response shape: {exc}",
                identifiers=identifiers,
            ) from exc

    async def submit_log(self, job: AnalysisJob) -> None:
        """`POST /log`：fire-and-forget，只关心成功与否。"""
        identifiers = {"repo": f"{job.repository.owner}/{job.repository.repo}"}
        logger.info(f"Submitting log job: files={len(job.files)}, commits={len(job.commits)}")
        await self._send("POST", "/log", operation="submit_log", identifiers=identifiers, json=job.to_payload())

    async def request_review(
        self,
        job: AnalysisJob,
        cancel_token: CancellationToken | None = None,
    ) -> list[ReviewGroup]:
        """
        `POST /comment` 并取回结果。

        - sync：响应体就是 review group 列表
        - async：响应体是 `{task_id}`，写回 `job.task_id` 后轮询到终态
        """
        identifiers: dict[str, object] = {"repo": f"{job.repository.owner}/{job.repository.repo}"}
        if job.pull_request is not None:
            identifiers["pull_number"] = job.pull_request.pull_number

        logger.info(f"Submitting review job: mode={self._mode}, files={len(job.files)}")
        response = await self._send(
            "POST",
            "/comment",
            operation="request_review",
            identifiers=identifiers,
            json=job.to_payload(),
        )
        if self._mode == "sync":
            return self._parse(response, "request_review", identifiers, _review_groups)

        accepted = self._parse(response, "request_review", identifiers, TaskAccepted)
        job.task_id = accepted.task_id
        logger.info(f"Review task accepted: task_id={accepted.task_id}")
        return await self.wait_for_task(task_id=accepted.task_id, cancel_token=cancel_token)

    async def get_task_status(self, task_id: str) -> TaskStatus:
        """`GET /task/{task_id}`。"""
        identifiers = {"task_id": task_id}
        response = await self._send("GET", f"/task/{task_id}", operation="get_task_status", identifiers=identifiers)
        return self._parse(response, "get_task_status", identifiers, TaskStatus)

    async def wait_for_task(
        self,
        task_id: str,
        cancel_token: CancellationToken | None = None,
    ) -> list[ReviewGroup]:
        """
        轮询直到终态。

        - succeeded：返回 result（缺省为空列表）
        - failed：抛 `TaskFailedError`，不再查询
        - 传输错误：原样抛出，不重试
        - 超出 poll_policy 上限 / token 取消：抛 `PollTimeoutError` / `PollCancelledError`
        """
        budget = PollBudget(policy=self._poll_policy, label=f"task {task_id}")
        while True:
            budget.before_attempt(cancel_token)
            status = await self.get_task_status(task_id)
            logger.info(f"Task {task_id} status: {status.status} (attempt {budget.attempts})")

            if status.is_terminal:
                if status.status == "failed":
                    raise TaskFailedError(task_id=task_id, detail=status.error)
                return list(status.result or [])

            await anyio.sleep(self._poll_policy.interval_seconds)
