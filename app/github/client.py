"""
GitHub API 客户端（外部系统连接器）。

约定：
- 这里只做 HTTP 调用 + 错误处理 + schema 校验
- 出错直接抛 `TransportError`（不要吞），带上 operation 和相关 id，便于定位
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from app.github.schemas import GitHubPullRequestDetails
from app.github.schemas import GitHubReview
from app.github.schemas import GitHubReviewComment
from app.review.errors import TransportError

logger = logging.getLogger(__name__)

DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"
JSON_MEDIA_TYPE = "application/vnd.github+json"

ModelT = TypeVar("ModelT", bound=BaseModel)


class GitHubClient:
    """最小 GitHub API client（PR 详情 / PR diff / compare diff / 创建 review）。"""

    def __init__(self, api_base_url: str, token: str, http_client: httpx.AsyncClient) -> None:
        self._api_base_url = api_base_url.rstrip("/")
        self._token = token
        self._http_client = http_client

    def _headers(self, accept: str = JSON_MEDIA_TYPE) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": accept,
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def _request(
        self,
        method: str,
        url: str,
        operation: str,
        identifiers: dict[str, object],
        accept: str = JSON_MEDIA_TYPE,
        json: object | None = None,
    ) -> httpx.Response:
        try:
            response = await self._http_client.request(method, url, headers=self._headers(accept=accept), json=json)
        except httpx.HTTPError as exc:
            logger.error(f"GitHub HTTP error during {operation}: {exc}")
            raise TransportError(operation=operation, detail=str(exc), identifiers=identifiers) from exc
        if response.status_code >= 400:
            logger.error(f"GitHub API error during {operation}: {response.status_code}")
            raise TransportError(
                operation=operation,
                detail=f"GitHub API error {response.status_code}: {response.text}",
                identifiers=identifiers,
            )
        return response

    def _parse(
        self,
        response: httpx.Response,
        schema: type[ModelT],
        operation: str,
        identifiers: dict[str, object],
    ) -> ModelT:
        """2xx 但响应体不是预期 JSON（例如代理返回的 HTML）同样算传输失败。"""
        try:
            return schema.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            logger.error(f"Unexpected GitHub response during {operation}: {exc}")
            raise TransportError(
                operation=operation,
                detail=f"Unexpected response shape: {exc}",
                identifiers=identifiers,
            ) from exc

    async def get_pull_request(self, owner: str, repo: str, pull_number: int) -> GitHubPullRequestDetails:
        """拉取 PR 详情（title / body）。"""
        url = f"{self._api_base_url}/repos/{owner}/{repo}/pulls/{pull_number}"
        identifiers: dict[str, object] = {"repo": f"{owner}/{repo}", "pull_number": pull_number}
        response = await self._request("GET", url, operation="get_pull_request", identifiers=identifiers)
        return self._parse(response, GitHubPullRequestDetails, "get_pull_request", identifiers)

    async def get_pull_request_diff(self, owner: str, repo: str, pull_number: int) -> str:
        """以 diff media type 拉取整个 PR 的 unified diff。"""
        url = f"{self._api_base_url}/repos/{owner}/{repo}/pulls/{pull_number}"
        response = await self._request(
            "GET",
            url,
            operation="get_pull_request_diff",
            identifiers={"repo": f"{owner}/{repo}", "pull_number": pull_number},
            accept=DIFF_MEDIA_TYPE,
        )
        return response.text

    async def compare_commits_diff(self, owner: str, repo: str, base: str, head: str) -> str:
        """
        base...head 的 commit range diff。

        GitHub API: GET /repos/{owner}/{repo}/compare/{base}...{head}
        """
        url = f"{self._api_base_url}/repos/{owner}/{repo}/compare/{base}...{head}"
        response = await self._request(
            "GET",
            url,
            operation="compare_commits",
            identifiers={"repo": f"{owner}/{repo}", "base": base, "head": head},
            accept=DIFF_MEDIA_TYPE,
        )
        return str(response.text)

    async def create_pull_request_review(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        comments: Sequence[GitHubReviewComment],
        body: str | None = None,
    ) -> GitHubReview:
        """
        创建一条带行内评论的 PR review。

        说明：event=COMMENT 表示“评论型 review”（不 approve / request changes）。
        """
        url = f"{self._api_base_url}/repos/{owner}/{repo}/pulls/{pull_number}/reviews"
        payload: dict[str, object] = {
            "event": "COMMENT",
            "comments": [c.model_dump() for c in comments],
        }
        if body:
            payload["body"] = body
        identifiers: dict[str, object] = {"repo": f"{owner}/{repo}", "pull_number": pull_number}
        response = await self._request(
            "POST",
            url,
            operation="create_pull_request_review",
            identifiers=identifiers,
            json=payload,
        )
        return self._parse(response, GitHubReview, "create_pull_request_review", identifiers)
