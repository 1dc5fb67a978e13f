"""
Slack Web API 客户端（外部系统连接器）。

约定：
- 只覆盖两个方法：auth.test（启动自检）与 chat.postMessage（发通知）
- Slack 出错时 HTTP 状态码仍可能是 200，需要看 body 里的 `ok` 字段
- 不做线程回复/消息更新，每次通知都是频道里的一条新消息
"""

from __future__ import annotations

import logging
from typing import TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from review_bot.errors import SlackAPIError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class SlackAuthInfo(BaseModel):
    user_id: str | None = None
    team: str | None = None
    url: str | None = None


class SlackPostResult(BaseModel):
    channel: str
    ts: str


class SlackClient:
    def __init__(self, api_base_url: str, bot_token: str, channel_id: str, http_client: httpx.AsyncClient) -> None:
        """
        - api_base_url: 一般为 https://slack.com/api
        - bot_token: xoxb- 开头的 bot token
        - channel_id: 通知发送的频道
        """
        self._api_base_url = api_base_url.rstrip("/")
        self._bot_token = bot_token
        self._channel_id = channel_id
        self._http_client = http_client

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._bot_token}"}

    async def _call(self, method: str, payload: dict[str, object]) -> dict[str, object]:
        response = await self._http_client.post(
            f"{self._api_base_url}/{method}",
            headers=self._headers(),
            json=payload,
        )
        if response.status_code >= 400:
            raise SlackAPIError(f"Slack API error {response.status_code} on {method}: {response.text}")
        try:
            data = response.json()
        except ValueError as exc:
            raise SlackAPIError(f"Slack {method} returned non-JSON body: {exc}") from exc
        if not isinstance(data, dict):
            raise SlackAPIError(f"Slack {method} returned unexpected body: {data!r}")
        if not data.get("ok"):
            raise SlackAPIError(f"Slack {method} failed: {data.get('error', 'unknown_error')}")
        return data

    def _validate(self, method: str, model: type[ModelT], data: dict[str, object]) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise SlackAPIError(f"Slack {method} returned unexpected body: {exc}") from exc

    async def auth_test(self) -> SlackAuthInfo:
        """启动时校验 bot token，失败直接抛错（启动失败是期望行为）。"""
        try:
            data = await self._call("auth.test", {})
            info = self._validate("auth.test", SlackAuthInfo, data)
        except (SlackAPIError, httpx.HTTPError) as exc:
            logger.error(f"Failed to initialize Slack client: {exc}")
            raise
        logger.info(f"Slack bot initialized: user_id={info.user_id} team={info.team}")
        return info

    async def post_message(self, text: str, blocks: list[dict[str, object]]) -> SlackPostResult:
        """
        往配置的频道发一条消息。

        - text：通知预览/无障碍阅读用的纯文本
        - blocks：Block Kit 结构
        """
        try:
            data = await self._call(
                "chat.postMessage",
                {"channel": self._channel_id, "text": text, "blocks": blocks},
            )
            result = self._validate("chat.postMessage", SlackPostResult, data)
        except (SlackAPIError, httpx.HTTPError) as exc:
            logger.error(f"Failed to send Slack message: channel={self._channel_id} error={exc}")
            raise
        logger.debug(f"Slack message sent: channel={result.channel} ts={result.ts}")
        return result
