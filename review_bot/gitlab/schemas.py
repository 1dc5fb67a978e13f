"""
GitLab Webhook / API response schemas（Pydantic）。

为什么要单独放 schema：
- GitLab 的 payload 结构复杂，直接用 dict 容易写错 key
- schema 校验失败会立刻暴露问题（比“默默 None”安全）

说明：
- 这里的字段只覆盖当前流程所需子集，GitLab 多发的字段直接忽略
- Note hook 里的 merge_request 字段刻意宽松（title/url 可缺，结构不对时视为 None），
  “是不是可处理的 MR 评论”由业务层判断，而不是直接 4xx
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator
from pydantic import ValidatorFunctionWrapHandler


class GitLabUser(BaseModel):
    """Webhook 里的 user 子结构。"""

    id: int
    name: str
    username: str


class GitLabProject(BaseModel):
    """Webhook 里的 project 子结构。"""

    id: int
    name: str = ""
    path_with_namespace: str
    web_url: str = ""


class GitLabNoteAttributes(BaseModel):
    """Note hook 的 object_attributes（即评论本身）。"""

    note: str
    noteable_type: str
    url: str
    discussion_id: str | None = None


class GitLabPersonName(BaseModel):
    name: str | None = None
    email: str | None = None


class GitLabCommit(BaseModel):
    id: str | None = None
    author: GitLabPersonName | None = None


class GitLabNoteMergeRequest(BaseModel):
    """Note hook 附带的 merge_request（只在 MR 评论上出现）。"""

    iid: int
    title: str | None = None
    url: str | None = None
    description: str | None = None
    state: str = ""
    source_branch: str = ""
    target_branch: str = ""
    author_id: int | None = None
    author: GitLabPersonName | None = None
    last_commit: GitLabCommit | None = None


class GitLabNoteWebhookEvent(BaseModel):
    """Note hook 的最小结构。"""

    object_kind: Literal["note"]
    user: GitLabUser
    project: GitLabProject
    object_attributes: GitLabNoteAttributes
    merge_request: GitLabNoteMergeRequest | None = None

    @field_validator("merge_request", mode="wrap")
    @classmethod
    def _drop_malformed_merge_request(
        cls, value: object, handler: ValidatorFunctionWrapHandler
    ) -> GitLabNoteMergeRequest | None:
        """merge_request 结构不对（缺 iid、title/url 类型错误等）时按“不是 MR 评论”处理。"""
        try:
            return handler(value)
        except ValidationError:
            return None


class GitLabMergeRequestObjectAttributes(BaseModel):
    """Merge request hook 的 object_attributes 子结构。"""

    iid: int
    title: str
    url: str
    source_branch: str
    target_branch: str
    description: str | None = None
    state: str = ""
    action: str | None = None


class GitLabReviewer(BaseModel):
    id: int
    name: str
    username: str = ""


class GitLabMergeRequestWebhookEvent(BaseModel):
    """Merge request hook 的最小结构。"""

    object_kind: Literal["merge_request"]
    user: GitLabUser
    project: GitLabProject
    object_attributes: GitLabMergeRequestObjectAttributes
    reviewers: list[GitLabReviewer] = Field(default_factory=list)


GitLabWebhookEvent = Annotated[
    Union[GitLabNoteWebhookEvent, GitLabMergeRequestWebhookEvent],
    Field(discriminator="object_kind"),
]

webhook_event_adapter: TypeAdapter[GitLabWebhookEvent] = TypeAdapter(GitLabWebhookEvent)


class GitLabMRChange(BaseModel):
    """单个文件变更（包含 diff 字符串）。"""

    old_path: str
    new_path: str
    new_file: bool = False
    renamed_file: bool = False
    deleted_file: bool = False
    diff: str


class GitLabMRAuthor(BaseModel):
    id: int | None = None
    username: str
    name: str | None = None


class GitLabMergeRequestChanges(BaseModel):
    """MR changes API 返回结构（MR 基本信息 + changes）。"""

    title: str
    description: str | None = None
    author: GitLabMRAuthor
    changes: list[GitLabMRChange] = Field(default_factory=list)


class GitLabNoteAuthor(BaseModel):
    id: int
    username: str = ""
    name: str


class GitLabNote(BaseModel):
    """MR note 返回结构。"""

    id: int
    body: str
    author: GitLabNoteAuthor | None = None
    system: bool = False
    created_at: str | None = None
    updated_at: str | None = None


class GitLabDiscussion(BaseModel):
    """MR discussion（同一 discussion_id 下按时间排序的 notes）。"""

    id: str
    individual_note: bool = False
    notes: list[GitLabNote] = Field(default_factory=list)
