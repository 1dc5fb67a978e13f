"""
应用配置加载。

设计目标：
- **严格**：缺少必要环境变量就直接报错（避免“看起来跑了其实没配置好”）
- **类型安全**：使用 Pydantic 校验 URL/整数/映射表，减少运行时踩坑
- **可测试**：核心加载函数接收 `environ` 显式输入，便于单元测试
"""

from __future__ import annotations

import json
from collections.abc import Mapping

from pydantic import BaseModel, Field, HttpUrl, ValidationError

# GitLab user id -> Slack handle。未配置 SLACK_USER_MENTIONS 时使用
DEFAULT_USER_MENTIONS: dict[int, str] = {
    17: "jelee",
    18: "manaemee",
    27: "ds.jeon",
    28: "dohkim",
}
DEFAULT_MENTION = "ds.jeon"


class GitLabConfig(BaseModel):
    base_url: HttpUrl
    token: str
    webhook_secret: str


class LLMConfig(BaseModel):
    base_url: HttpUrl
    api_key: str
    model: str
    max_output_tokens: int = Field(default=4000, gt=0)
    max_input_tokens: int = Field(default=100000, gt=0)


class SlackConfig(BaseModel):
    bot_token: str
    signing_secret: str
    channel_id: str
    api_base_url: HttpUrl = Field(default="https://slack.com/api", validate_default=True)
    user_mentions: dict[int, str] = Field(default_factory=lambda: dict(DEFAULT_USER_MENTIONS))
    default_mention: str = DEFAULT_MENTION


class AppConfig(BaseModel):
    """应用运行所需的配置集合。"""

    gitlab: GitLabConfig
    llm: LLMConfig
    slack: SlackConfig
    proxy_url: str | None = None
    log_level: str = "INFO"


def _require(environ: Mapping[str, str], keys: tuple[str, ...]) -> None:
    missing: list[str] = [key for key in keys if key not in environ or not environ[key]]
    if missing:
        raise ValueError(f"Missing required env vars: {', '.join(missing)}")


def _optional(environ: Mapping[str, str], key: str) -> str | None:
    value = environ.get(key)
    return value if value else None


def _parse_user_mentions(raw: str) -> dict[int, str]:
    """SLACK_USER_MENTIONS 是 JSON 对象：{"17": "jelee", ...}。"""
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"SLACK_USER_MENTIONS is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValueError("SLACK_USER_MENTIONS must be a JSON object")
    return {int(key): str(value) for key, value in parsed.items()}


def load_config_from_env(environ: Mapping[str, str]) -> AppConfig:
    """
    从环境变量加载并校验配置。

    - **输入**：`environ`（例如 `os.environ`）
    - **输出**：`AppConfig`
    - **失败**：缺失/为空/格式错误则抛 `ValueError`
    """
    _require(
        environ,
        (
            "GITLAB_BASE_URL",
            "GITLAB_TOKEN",
            "GITLAB_WEBHOOK_SECRET",
            "LLM_BASE_URL",
            "LLM_API_KEY",
            "LLM_MODEL",
            "SLACK_BOT_TOKEN",
            "SLACK_SIGNING_SECRET",
            "SLACK_CHANNEL_ID",
        ),
    )

    llm: dict[str, object] = {
        "base_url": environ["LLM_BASE_URL"],
        "api_key": environ["LLM_API_KEY"],
        "model": environ["LLM_MODEL"],
    }
    if _optional(environ, "LLM_MAX_OUTPUT_TOKENS"):
        llm["max_output_tokens"] = environ["LLM_MAX_OUTPUT_TOKENS"]
    if _optional(environ, "LLM_MAX_INPUT_TOKENS"):
        llm["max_input_tokens"] = environ["LLM_MAX_INPUT_TOKENS"]

    slack: dict[str, object] = {
        "bot_token": environ["SLACK_BOT_TOKEN"],
        "signing_secret": environ["SLACK_SIGNING_SECRET"],
        "channel_id": environ["SLACK_CHANNEL_ID"],
    }
    if _optional(environ, "SLACK_API_BASE_URL"):
        slack["api_base_url"] = environ["SLACK_API_BASE_URL"]
    if _optional(environ, "SLACK_USER_MENTIONS"):
        slack["user_mentions"] = _parse_user_mentions(environ["SLACK_USER_MENTIONS"])
    if _optional(environ, "SLACK_DEFAULT_MENTION"):
        slack["default_mention"] = environ["SLACK_DEFAULT_MENTION"]

    # 交给 Pydantic 做类型校验（例如 URL 合法性、token 上限为正整数）
    try:
        config = AppConfig(
            gitlab=GitLabConfig(
                base_url=environ["GITLAB_BASE_URL"],
                token=environ["GITLAB_TOKEN"],
                webhook_secret=environ["GITLAB_WEBHOOK_SECRET"],
            ),
            llm=LLMConfig.model_validate(llm),
            slack=SlackConfig.model_validate(slack),
            proxy_url=_optional(environ, "HTTP_PROXY_URL"),
            log_level=environ.get("LOG_LEVEL") or "INFO",
        )
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc

    if config.llm.max_output_tokens >= config.llm.max_input_tokens:
        raise ValueError("LLM_MAX_OUTPUT_TOKENS must be smaller than LLM_MAX_INPUT_TOKENS")
    return config
