"""
Review 领域模型（Pydantic）。

用途：
- 明确各阶段输入/输出的数据结构（通知、AI review 上下文与结果、分发结果）
- 与 GitLab/Slack 的 schema 解耦：这里的模型不关心外部系统的字段名
- 所有对象只活在一次 webhook 请求里，不做持久化
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from review_bot.review.triggers import TriggerKind

ChangeKind = Literal["new file", "deleted", "modified"]
EnrichmentStatus = Literal["enriched", "skipped", "failed"]


class Participant(BaseModel):
    id: int
    name: str


class MergeRequestSummary(BaseModel):
    iid: int
    title: str
    url: str
    author_id: int | None
    author: str
    source_branch: str
    target_branch: str
    state: str


class DiscussionContext(BaseModel):
    """Response 通知附带的讨论串信息。"""

    id: str
    original_author: Participant
    last_reply_author: Participant


class DiscussionEnrichment(BaseModel):
    """
    讨论串补充信息的结果。

    - enriched：成功拿到讨论串
    - skipped：不适用（不是 response / 评论不在讨论串里）
    - failed：尝试过但失败（已记录日志），通知照常发送
    """

    status: EnrichmentStatus
    discussion: DiscussionContext | None = None
    reason: str | None = None


class ReviewNotification(BaseModel):
    """Notification Builder 的标准输出，与传输方式无关。"""

    kind: TriggerKind
    actor_id: int
    actor_name: str
    project: str
    merge_request: MergeRequestSummary
    comment_body: str
    comment_url: str
    discussion: DiscussionContext | None = None
    discussion_status: EnrichmentStatus = "skipped"


class MergedMergeRequest(BaseModel):
    title: str
    url: str
    source_branch: str
    target_branch: str
    description: str | None = None


class MergeNotification(BaseModel):
    actor_username: str
    actor_id: int
    project: str
    merge_request: MergedMergeRequest
    reviewers: list[Participant] = Field(default_factory=list)


class FileChange(BaseModel):
    """单个文件的变更（从 GitLab changes/diff 归一化而来）。"""

    path: str
    diff: str
    change_kind: ChangeKind


class AIReviewContext(BaseModel):
    """一次 AI review 的输入。changes 为已经序列化好的 diff 文本。"""

    project_id: int
    mr_iid: int
    title: str
    description: str
    author_username: str
    changes: str
    extra_instructions: str = ""


class AIReviewPayload(BaseModel):
    """LLM JSON 输出的 schema：summary/suggestions 必填。"""

    summary: str
    suggestions: list[str]
    highlights: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)

    @field_validator("highlights", "risks", mode="before")
    @classmethod
    def _none_as_empty(cls, value: object) -> object:
        return [] if value is None else value


class AIReviewMetadata(BaseModel):
    model: str
    timestamp: str


class AIReviewResult(BaseModel):
    summary: str
    suggestions: list[str]
    highlights: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)
    metadata: AIReviewMetadata


class AIReviewOutcome(BaseModel):
    success: bool
    review: AIReviewResult
    note_id: int


class DispatchOutcome(BaseModel):
    """一次 webhook 分发的结果（直接作为 HTTP 响应 JSON）。"""

    status: Literal["ok", "ignored", "skipped"]
    message: str
    event_type: str | None = None
    trigger_kind: TriggerKind | None = None
