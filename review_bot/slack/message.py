"""
Slack 消息渲染（纯函数，无 I/O）。

- `ReviewNotification` / `MergeNotification` -> `SlackMessage`（纯文本 fallback + Block Kit）
- 文案是团队既有的韩文约定，改动前先和频道使用者确认
"""

from __future__ import annotations

from pydantic import BaseModel

from review_bot.review.models import MergeNotification
from review_bot.review.models import ReviewNotification
from review_bot.review.triggers import TriggerKind
from review_bot.slack.mentions import MentionDirectory

Block = dict[str, object]

REVIEW_HEADERS: dict[TriggerKind, str] = {
    TriggerKind.REQUEST: "🙏 리뷰 요청",
    TriggerKind.START: "👀 리뷰 시작",
    TriggerKind.COMPLETE: "✅ 리뷰 완료",
    TriggerKind.RESPONSE: "💬 리뷰 응답",
    TriggerKind.ADDITIONAL: "📝 추가 리뷰",
    TriggerKind.AI_REVIEW: "🤖 AI 리뷰",
}

FOOTER_ACTIONS: dict[TriggerKind, str] = {
    TriggerKind.REQUEST: "리뷰를 요청했습니다",
    TriggerKind.START: "리뷰를 시작했습니다",
    TriggerKind.COMPLETE: "리뷰를 완료했습니다",
    TriggerKind.RESPONSE: "리뷰에 응답했습니다",
    TriggerKind.ADDITIONAL: "추가 리뷰를 요청했습니다",
}
DEFAULT_FOOTER_ACTION = "코멘트를 남겼습니다"

MERGE_HEADER = "🎉 MR 머지 완료"
DESCRIPTION_EXCERPT_CHARS = 300


class SlackMessage(BaseModel):
    text: str
    blocks: list[Block]


def build_header_text(notification: ReviewNotification, mentions: MentionDirectory) -> str:
    kind = notification.kind
    mr = notification.merge_request
    actor = mentions.mention(notification.actor_id)
    author = mentions.mention(mr.author_id)
    is_author = notification.actor_id == mr.author_id
    header = REVIEW_HEADERS[kind]

    if kind in (TriggerKind.REQUEST, TriggerKind.ADDITIONAL):
        return f"{header} - {author}님이 요청"
    if kind in (TriggerKind.START, TriggerKind.COMPLETE):
        return f"{header} - {actor}님이 {author}님의 MR 검토"
    if kind is TriggerKind.RESPONSE:
        if is_author:
            text = f"{header} - {author}님이 응답"
        else:
            text = f"{header} - {actor}님이 {author}님의 MR에 응답"
        discussion = notification.discussion
        if discussion is not None:
            text += f" in 📝 {mentions.mention(discussion.original_author.id)}님의 쓰레드"
            if discussion.last_reply_author.id != discussion.original_author.id:
                text += f" (마지막 답변: {mentions.mention(discussion.last_reply_author.id)})"
        return text

    # 其余类型（ai_review）按普通评论处理
    if is_author:
        return f"{author}님의 코멘트"
    return f"{actor}님이 {author}님의 코드에 코멘트"


def _header_block(text: str) -> Block:
    return {"type": "header", "text": {"type": "plain_text", "text": text, "emoji": True}}


def _section_block(lines: list[str]) -> Block:
    return {"type": "section", "text": {"type": "mrkdwn", "text": "\n".join(lines)}}


def _divider_block() -> Block:
    return {"type": "divider"}


def _merge_request_block(notification: ReviewNotification, mentions: MentionDirectory) -> Block:
    mr = notification.merge_request
    return _section_block(
        [
            f"*제목:* <{mr.url}|{mr.title}>",
            f"*작성자:* {mentions.mention(mr.author_id)}",
            f"*브랜치:* `{mr.source_branch}` → `{mr.target_branch}`",
            f"*코멘트:* <{notification.comment_url}|보기>",
        ]
    )


def _footer_block(notification: ReviewNotification, mentions: MentionDirectory) -> Block:
    action = FOOTER_ACTIONS.get(notification.kind, DEFAULT_FOOTER_ACTION)
    footer = f"{mentions.mention(notification.actor_id)}님이 {action}"
    return {
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": f"👤 {footer} • <{notification.comment_url}|코멘트 보기>"}],
    }


def render_review_message(notification: ReviewNotification, mentions: MentionDirectory) -> SlackMessage:
    header = build_header_text(notification=notification, mentions=mentions)
    return SlackMessage(
        text=header,
        blocks=[
            _header_block(header),
            _merge_request_block(notification, mentions),
            _footer_block(notification, mentions),
            _divider_block(),
        ],
    )


def _excerpt(text: str, limit: int) -> str:
    stripped = text.strip()
    if len(stripped) <= limit:
        return stripped
    return stripped[:limit].rstrip() + "…"


def render_merge_message(notification: MergeNotification, mentions: MentionDirectory) -> SlackMessage:
    actor = mentions.mention(notification.actor_id)
    header = f"{MERGE_HEADER} - {actor}님이 머지"
    mr = notification.merge_request

    lines = [
        f"*제목:* <{mr.url}|{mr.title}>",
        f"*프로젝트:* {notification.project}",
        f"*브랜치:* `{mr.source_branch}` → `{mr.target_branch}`",
    ]
    if notification.reviewers:
        reviewers = ", ".join(mentions.mention(r.id) for r in notification.reviewers)
        lines.append(f"*리뷰어:* {reviewers}")

    blocks: list[Block] = [_header_block(header), _section_block(lines)]
    if mr.description and mr.description.strip():
        quoted = _excerpt(mr.description, DESCRIPTION_EXCERPT_CHARS).replace("\n", "\n> ")
        blocks.append(_section_block([f"> {quoted}"]))
    blocks.append(_divider_block())
    return SlackMessage(text=header, blocks=blocks)
