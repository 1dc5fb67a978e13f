"""
Notification Builder。

职责：
- 判断 Note 事件是否是“可处理的 MR 评论”，并收窄成强类型的 `MergeRequestNote`
- webhook payload + TriggerKind -> `ReviewNotification`（与 Slack 无关的标准结构）
- Merge 事件 -> `MergeNotification`（只处理 action == "merge"）

讨论串补充（只对 response）是 best-effort：
拿不到就记日志、不带 discussion 字段继续发通知，不让通知因此失败。
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

from review_bot.gitlab.schemas import GitLabMergeRequestWebhookEvent
from review_bot.gitlab.schemas import GitLabNoteAttributes
from review_bot.gitlab.schemas import GitLabNoteMergeRequest
from review_bot.gitlab.schemas import GitLabNoteWebhookEvent
from review_bot.gitlab.schemas import GitLabProject
from review_bot.gitlab.schemas import GitLabUser
from review_bot.review.models import DiscussionContext
from review_bot.review.models import DiscussionEnrichment
from review_bot.review.models import MergedMergeRequest
from review_bot.review.models import MergeNotification
from review_bot.review.models import MergeRequestSummary
from review_bot.review.models import Participant
from review_bot.review.models import ReviewNotification
from review_bot.review.ports import GitLabPort
from review_bot.review.triggers import TriggerKind

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "Unknown"


class MergeRequestNote(BaseModel):
    """已确认挂在 MR 上的评论：merge_request/title/url 都一定存在。"""

    actor: GitLabUser
    project: GitLabProject
    comment: GitLabNoteAttributes
    merge_request: GitLabNoteMergeRequest
    title: str
    url: str


def extract_merge_request_note(event: GitLabNoteWebhookEvent) -> MergeRequestNote | None:
    """不是 MR 评论（或 MR 信息不完整）时返回 None。"""
    mr = event.merge_request
    if event.object_attributes.noteable_type != "MergeRequest" or mr is None:
        return None
    if not mr.title or not mr.url:
        return None
    return MergeRequestNote(
        actor=event.user,
        project=event.project,
        comment=event.object_attributes,
        merge_request=mr,
        title=mr.title,
        url=mr.url,
    )


def resolve_author_name(mr: GitLabNoteMergeRequest) -> str:
    """MR 自身的 author -> last_commit 的 author -> "Unknown"（不同事件子类型字段不一致）。"""
    if mr.author is not None and mr.author.name:
        return mr.author.name
    if mr.last_commit is not None and mr.last_commit.author is not None and mr.last_commit.author.name:
        return mr.last_commit.author.name
    return UNKNOWN_AUTHOR


class NotificationBuilder:
    def __init__(self, gitlab_client: GitLabPort) -> None:
        self._gitlab_client = gitlab_client

    async def enrich_discussion(self, kind: TriggerKind, note: MergeRequestNote) -> DiscussionEnrichment:
        discussion_id = note.comment.discussion_id
        if kind is not TriggerKind.RESPONSE or not discussion_id:
            return DiscussionEnrichment(status="skipped")

        try:
            discussion = await self._gitlab_client.get_merge_request_discussion(
                project_id=note.project.id,
                mr_iid=note.merge_request.iid,
                discussion_id=discussion_id,
            )
        except Exception as exc:
            logger.warning(
                f"Failed to fetch discussion: project={note.project.id} "
                f"mr={note.merge_request.iid} discussion={discussion_id} error={exc}"
            )
            return DiscussionEnrichment(status="failed", reason=str(exc))

        authored = [n.author for n in discussion.notes if n.author is not None]
        if not authored:
            logger.warning(f"Discussion has no authored notes: discussion={discussion_id}")
            return DiscussionEnrichment(status="failed", reason="discussion has no notes")

        first, last = authored[0], authored[-1]
        return DiscussionEnrichment(
            status="enriched",
            discussion=DiscussionContext(
                id=discussion.id,
                original_author=Participant(id=first.id, name=first.name),
                last_reply_author=Participant(id=last.id, name=last.name),
            ),
        )

    async def build_review_notification(self, kind: TriggerKind, note: MergeRequestNote) -> ReviewNotification:
        """
        构建 review 通知。

        前置条件：`note` 来自 `extract_merge_request_note`（不在这里重复校验）。
        """
        mr = note.merge_request
        enrichment = await self.enrich_discussion(kind=kind, note=note)
        return ReviewNotification(
            kind=kind,
            actor_id=note.actor.id,
            actor_name=note.actor.name,
            project=note.project.path_with_namespace,
            merge_request=MergeRequestSummary(
                iid=mr.iid,
                title=note.title,
                url=note.url,
                author_id=mr.author_id,
                author=resolve_author_name(mr=mr),
                source_branch=mr.source_branch,
                target_branch=mr.target_branch,
                state=mr.state,
            ),
            comment_body=note.comment.note,
            comment_url=note.comment.url,
            discussion=enrichment.discussion,
            discussion_status=enrichment.status,
        )

    def build_merge_notification(self, event: GitLabMergeRequestWebhookEvent) -> MergeNotification | None:
        """只接受 action == "merge"，其他 action 返回 None。"""
        attrs = event.object_attributes
        if attrs.action != "merge":
            logger.debug(f"Skipping merge request event with action: {attrs.action}")
            return None
        return MergeNotification(
            actor_username=event.user.username,
            actor_id=event.user.id,
            project=event.project.path_with_namespace,
            merge_request=MergedMergeRequest(
                title=attrs.title,
                url=attrs.url,
                source_branch=attrs.source_branch,
                target_branch=attrs.target_branch,
                description=attrs.description,
            ),
            reviewers=[Participant(id=r.id, name=r.name) for r in event.reviewers],
        )
