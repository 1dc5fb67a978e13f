"""
LLM Client（基于 OpenAI SDK，对接 LiteLLM Proxy）。

目标：
- **尽量薄**：只做协议适配与错误处理
- **统一接口**：通过 OpenAI-compatible API 访问 LiteLLM Proxy（后面可以是 Claude/GPT 等）
- 输出解析（从文本里抠 JSON）不在这里做，由 reviewer 负责
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel

from review_bot.errors import LLMResponseError

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    """OpenAI chat message 的最小结构。"""

    role: str
    content: str


def _normalize_base_url(base_url: str) -> str:
    normalized = base_url.rstrip("/")
    if normalized.endswith("/v1"):
        return normalized
    return f"{normalized}/v1"


class OpenAICompatLLMClient:
    """通过 OpenAI-compatible 网关调用 LLM。"""

    def __init__(self, api_key: str, base_url: str, http_client: httpx.AsyncClient, model: str) -> None:
        """
        - api_key: LLM API key
        - base_url: OpenAI-compatible base URL（LiteLLM Proxy 的地址）
        - http_client: 复用 httpx.AsyncClient 连接池
        - model: 模型名（例如 `claude-3-5-sonnet-20241022`，由 LiteLLM Proxy 路由）
        """
        self._base_url = _normalize_base_url(base_url=base_url)
        self._model = model
        # 一次调用只发一次请求，不使用 SDK 内置重试
        self._client = AsyncOpenAI(api_key=api_key, base_url=self._base_url, http_client=http_client, max_retries=0)

    async def complete_text(
        self,
        messages: Sequence[ChatMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """
        调用 chat completion 并返回纯文本 content。

        注意：
        - 不做重试，一次调用一次请求
        - 出错直接抛异常，便于上游统一处理/告警
        """
        options: dict[str, object] = {}
        if temperature is not None:
            options["temperature"] = temperature
        if max_tokens is not None:
            options["max_tokens"] = max_tokens

        try:
            logger.info(f"LLM request: model={self._model}, messages={len(messages)} msg(s)")
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[m.model_dump() for m in messages],
                **options,
            )
        except OpenAIError as exc:
            logger.error(f"LLM API error: {exc}")
            raise
        except httpx.HTTPError as exc:
            logger.error(f"LLM HTTP error: {exc}")
            raise

        content = response.choices[0].message.content
        if content is None:
            logger.error("LLM returned None content")
            raise LLMResponseError("LLM returned None content")

        logger.info(f"LLM response: {len(content)} chars")
        return str(content)
