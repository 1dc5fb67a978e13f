"""
Webhook Dispatcher（鉴权 + 事件类型分发）。

- 先校验 token，不通过直接拒绝（此时不看 payload）
- 按 X-Gitlab-Event 分发：Note Hook / Merge Request Hook，其他类型一律 ignored
- 每次调用只会走一条下游路径：Slack 通知 / AI review / merge 通知 三选一
- 自身不做业务逻辑，业务在 NotificationBuilder / AIReviewOrchestrator / SlackNotifier
"""

from __future__ import annotations

import hmac
import logging
from typing import TypeVar

import httpx
from pydantic import ValidationError

from review_bot.config import AppConfig
from review_bot.errors import WebhookAuthError
from review_bot.errors import WebhookPayloadError
from review_bot.gitlab.client import GitLabClient
from review_bot.gitlab.schemas import GitLabMergeRequestWebhookEvent
from review_bot.gitlab.schemas import GitLabNoteWebhookEvent
from review_bot.gitlab.schemas import webhook_event_adapter
from review_bot.llm.client import OpenAICompatLLMClient
from review_bot.review.models import DispatchOutcome
from review_bot.review.notification import NotificationBuilder
from review_bot.review.notification import extract_merge_request_note
from review_bot.review.orchestrator import AIReviewOrchestrator
from review_bot.review.reviewer import AIReviewer
from review_bot.review.triggers import TriggerKind
from review_bot.review.triggers import classify
from review_bot.slack.client import SlackClient
from review_bot.slack.mentions import MentionDirectory
from review_bot.slack.notifier import SlackNotifier

logger = logging.getLogger(__name__)

NOTE_HOOK = "Note Hook"
MERGE_REQUEST_HOOK = "Merge Request Hook"

EventT = TypeVar("EventT", GitLabNoteWebhookEvent, GitLabMergeRequestWebhookEvent)


class WebhookDispatcher:
    def __init__(
        self,
        webhook_secret: str,
        notification_builder: NotificationBuilder,
        ai_review: AIReviewOrchestrator,
        notifier: SlackNotifier,
    ) -> None:
        self._webhook_secret = webhook_secret
        self._notification_builder = notification_builder
        self._ai_review = ai_review
        self._notifier = notifier

    def verify_token(self, token: str | None) -> None:
        if not token or not hmac.compare_digest(token.encode("utf-8"), self._webhook_secret.encode("utf-8")):
            logger.error("Invalid webhook secret provided")
            raise WebhookAuthError("Invalid webhook token")

    async def handle(self, token: str | None, event_type: str, raw_payload: object) -> DispatchOutcome:
        self.verify_token(token)
        logger.info(f"Processing webhook: {event_type}")

        if event_type == NOTE_HOOK:
            return await self._process_note(_parse_event(raw_payload, GitLabNoteWebhookEvent))
        if event_type == MERGE_REQUEST_HOOK:
            return await self._process_merge_request(_parse_event(raw_payload, GitLabMergeRequestWebhookEvent))

        logger.warning(f"Unhandled GitLab event type: {event_type}")
        return DispatchOutcome(
            status="ignored",
            message=f"Event {event_type} received but not processed",
            event_type=event_type,
        )

    async def _process_note(self, event: GitLabNoteWebhookEvent) -> DispatchOutcome:
        note = extract_merge_request_note(event)
        if note is None:
            logger.debug("Note is not on merge request")
            return DispatchOutcome(status="skipped", message="Note is not on merge request", event_type=NOTE_HOOK)

        kind = classify(note.comment.note)
        if kind is None:
            logger.debug("No trigger found in note")
            return DispatchOutcome(status="skipped", message="No trigger found in note", event_type=NOTE_HOOK)

        try:
            if kind is TriggerKind.AI_REVIEW:
                await self._ai_review.process_review_request(
                    project_id=note.project.id,
                    mr_iid=note.merge_request.iid,
                    trigger_comment=note.comment.note,
                )
                message = "AI review posted"
            else:
                notification = await self._notification_builder.build_review_notification(kind=kind, note=note)
                await self._notifier.send_review_notification(notification)
                message = "Review notification sent"
        except Exception as exc:
            logger.error(
                f"Failed to process review trigger: kind={kind.value} user={note.actor.username} "
                f"project={note.project.path_with_namespace} mr={note.merge_request.iid} error={exc}"
            )
            raise

        logger.info(f"{message}: {kind.value}")
        return DispatchOutcome(status="ok", message=message, event_type=NOTE_HOOK, trigger_kind=kind)

    async def _process_merge_request(self, event: GitLabMergeRequestWebhookEvent) -> DispatchOutcome:
        notification = self._notification_builder.build_merge_notification(event)
        if notification is None:
            return DispatchOutcome(
                status="ignored",
                message=f"Merge request action {event.object_attributes.action} not processed",
                event_type=MERGE_REQUEST_HOOK,
            )

        try:
            await self._notifier.send_merge_notification(notification)
        except Exception as exc:
            logger.error(
                f"Failed to process merge event: project={notification.project} "
                f"mr={event.object_attributes.iid} error={exc}"
            )
            raise
        return DispatchOutcome(status="ok", message="Merge notification sent", event_type=MERGE_REQUEST_HOOK)


def _parse_event(raw_payload: object, expected: type[EventT]) -> EventT:
    """payload 只在这里校验一次；object_kind 必须与 header 声明一致。"""
    try:
        event = webhook_event_adapter.validate_python(raw_payload)
    except ValidationError as exc:
        raise WebhookPayloadError(f"Invalid webhook payload: {exc}") from exc
    if not isinstance(event, expected):
        raise WebhookPayloadError(f"Webhook payload object_kind does not match {expected.__name__}")
    return event


def build_webhook_dispatcher(
    config: AppConfig,
    http_client: httpx.AsyncClient,
    llm_client: OpenAICompatLLMClient,
    slack_client: SlackClient,
) -> WebhookDispatcher:
    """
    装配 dispatcher：
    - 把外部依赖（GitLab/LLM/Slack client）和业务组件绑定起来
    - 组件之间只通过构造函数注入，不依赖全局状态
    """
    gitlab_client = GitLabClient(
        base_url=str(config.gitlab.base_url).rstrip("/"),
        private_token=config.gitlab.token,
        http_client=http_client,
    )
    reviewer = AIReviewer(
        llm_client=llm_client,
        model=config.llm.model,
        max_input_tokens=config.llm.max_input_tokens,
        max_output_tokens=config.llm.max_output_tokens,
    )
    mentions = MentionDirectory(entries=config.slack.user_mentions, default=config.slack.default_mention)
    return WebhookDispatcher(
        webhook_secret=config.gitlab.webhook_secret,
        notification_builder=NotificationBuilder(gitlab_client=gitlab_client),
        ai_review=AIReviewOrchestrator(gitlab_client=gitlab_client, reviewer=reviewer),
        notifier=SlackNotifier(chat_client=slack_client, mentions=mentions),
    )
