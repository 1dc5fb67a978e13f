"""
错误类型。

分类：
- webhook 入口：鉴权失败 / payload 结构不符
- 外部系统（GitLab / Slack / LLM）：统一继承 `UpstreamError`，由 HTTP 层映射为 502
- 本地预检：token 超限，不需要任何网络往返
"""

from __future__ import annotations


class WebhookAuthError(RuntimeError):
    """X-Gitlab-Token 与配置的 secret 不一致。"""


class WebhookPayloadError(ValueError):
    """webhook body 与声明的事件类型 schema 不匹配。"""


class UpstreamError(RuntimeError):
    """外部系统调用失败。"""


class GitLabAPIError(UpstreamError):
    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"GitLab API error {status_code}: {body}")
        self.status_code = status_code


class SlackAPIError(UpstreamError):
    pass


class AIResponseParseError(UpstreamError):
    """LLM 返回内容不是约定的 JSON（协议违约，不是网络问题）。"""


class LLMResponseError(UpstreamError):
    """LLM 网关返回了空 content。"""
