"""
Action 配置加载。

设计目标：
- **严格**：缺少必要的 token / key 直接报错（避免“看起来跑了其实没配置好”）
- **类型安全**：使用 Pydantic 校验 URL / 枚举 / 数值
- **可测试**：核心加载函数接收 `environ` 显式输入，便于单元测试

GitHub Actions 会把 `with:` 里的输入放到 `INPUT_<NAME>`，这里先读它，再回退到同名大写环境变量。
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, Field, HttpUrl, ValidationError

from app.infra.retry import PollPolicy
from app.review.filters import parse_pattern_list


class ActionConfig(BaseModel):
    """一次 Action 运行所需的配置。"""

    github_token: str
    github_api_url: HttpUrl = Field(default="https://api.github.com", validate_default=True)
    api_key: str
    api_base_url: HttpUrl
    exclude: list[str] = Field(default_factory=list)
    include: list[str] = Field(default_factory=list)
    review_mode: Literal["sync", "async"] = "async"
    poll_interval_seconds: float = Field(default=1.0, ge=0)
    poll_max_attempts: int | None = Field(default=None, gt=0)
    poll_timeout_seconds: float | None = Field(default=None, gt=0)
    unsupported_event: Literal["skip", "fail"] = "skip"

    def poll_policy(self) -> PollPolicy:
        return PollPolicy(
            interval_seconds=self.poll_interval_seconds,
            max_attempts=self.poll_max_attempts,
            deadline_seconds=self.poll_timeout_seconds,
        )


def get_input(environ: Mapping[str, str], name: str) -> str:
    """读取 Action 输入：`INPUT_<NAME>` 优先，其次 `<NAME>`；都没有返回空串。"""
    key = name.upper().replace(" ", "_")
    for candidate in (f"INPUT_{key}", key):
        value = environ.get(candidate)
        if value is not None and value.strip():
            return value.strip()
    return ""


def never_fail_from_env(environ: Mapping[str, str]) -> bool:
    """
    `NEVER_FAIL` 单独读取：reporter 要在配置校验之前创建，配置错误也要按这个开关上报。
    """
    return get_input(environ, "NEVER_FAIL").lower() == "true"


def load_config_from_env(environ: Mapping[str, str]) -> ActionConfig:
    """
    从环境变量加载并校验配置。

    - **输入**：`environ`（例如 `os.environ`）
    - **输出**：`ActionConfig`
    - **失败**：缺失/为空/非法值抛 `ValueError`
    """
    required_keys: tuple[str, ...] = ("GITHUB_TOKEN", "API_KEY", "API_BASE_URL")
    missing: list[str] = [key for key in required_keys if not get_input(environ, key)]
    if missing:
        raise ValueError(f"Missing required env vars: {', '.join(missing)}")

    values: dict[str, object] = {
        "github_token": get_input(environ, "GITHUB_TOKEN"),
        "api_key": get_input(environ, "API_KEY"),
        "api_base_url": get_input(environ, "API_BASE_URL"),
        "exclude": parse_pattern_list(get_input(environ, "exclude")),
        "include": parse_pattern_list(get_input(environ, "include")),
    }
    optional: dict[str, str] = {
        "github_api_url": "GITHUB_API_URL",
        "review_mode": "REVIEW_MODE",
        "poll_interval_seconds": "POLL_INTERVAL_SECONDS",
        "poll_max_attempts": "POLL_MAX_ATTEMPTS",
        "poll_timeout_seconds": "POLL_TIMEOUT_SECONDS",
        "unsupported_event": "UNSUPPORTED_EVENT",
    }
    for field_name, key in optional.items():
        raw = get_input(environ, key)
        if raw:
            values[field_name] = raw.lower() if field_name in ("review_mode", "unsupported_event") else raw

    # 交给 Pydantic 做类型校验（URL、枚举、数值范围）
    try:
        return ActionConfig.model_validate(values)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc
