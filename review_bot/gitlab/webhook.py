"""
GitLab Webhook 接入层。

职责：
- 读取 `X-Gitlab-Event` / `X-Gitlab-Token` 与 JSON body
- 交给 dispatcher（鉴权 + 分发都在那里）
- 把内部异常映射成 HTTP 状态码：
  401 token 不对 / 422 payload 不合法 / 413 diff 超出 token 预算 / 502 外部系统失败
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx
from fastapi import APIRouter
from fastapi import Header
from fastapi import HTTPException
from fastapi import Request
from openai import OpenAIError

from review_bot.errors import UpstreamError
from review_bot.errors import WebhookAuthError
from review_bot.errors import WebhookPayloadError
from review_bot.infra.token_budget import TokenLimitExceededError
from review_bot.review.models import DispatchOutcome

logger = logging.getLogger(__name__)


class WebhookHandler(Protocol):
    async def handle(self, token: str | None, event_type: str, raw_payload: object) -> DispatchOutcome: ...


def build_gitlab_webhook_router(dispatcher: WebhookHandler) -> APIRouter:
    """创建 GitLab webhook 路由。"""
    router = APIRouter()

    @router.post("/gitlab/webhook")
    async def gitlab_webhook(
        request: Request,
        x_gitlab_event: str = Header(default="", alias="X-Gitlab-Event"),
        x_gitlab_token: str | None = Header(default=None, alias="X-Gitlab-Token"),
    ) -> dict[str, object]:
        logger.info(f"Received GitLab webhook: event={x_gitlab_event}")
        try:
            # body 不是合法 JSON 时按 None 交给 dispatcher：先鉴权，再由 schema 校验报 422
            raw_payload = await _read_json(request)
            outcome = await dispatcher.handle(token=x_gitlab_token, event_type=x_gitlab_event, raw_payload=raw_payload)
        except WebhookAuthError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        except WebhookPayloadError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except TokenLimitExceededError as exc:
            raise HTTPException(status_code=413, detail=str(exc)) from exc
        except (UpstreamError, OpenAIError, httpx.HTTPError) as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return outcome.model_dump(mode="json", exclude_none=True)

    return router


async def _read_json(request: Request) -> object:
    try:
        return await request.json()
    except ValueError:
        return None
