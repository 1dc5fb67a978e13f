from __future__ import annotations

import logging

from review_bot.review.models import MergeNotification
from review_bot.review.models import ReviewNotification
from review_bot.review.ports import ChatPort
from review_bot.slack.client import SlackPostResult
from review_bot.slack.mentions import MentionDirectory
from review_bot.slack.message import render_merge_message
from review_bot.slack.message import render_review_message

logger = logging.getLogger(__name__)


class SlackNotifier:
    """渲染 + 发送。渲染是纯函数，先完整生成再一次性 post。"""

    def __init__(self, chat_client: ChatPort, mentions: MentionDirectory) -> None:
        self._chat_client = chat_client
        self._mentions = mentions

    async def send_review_notification(self, notification: ReviewNotification) -> SlackPostResult:
        message = render_review_message(notification=notification, mentions=self._mentions)
        try:
            return await self._chat_client.post_message(text=message.text, blocks=message.blocks)
        except Exception:
            logger.error(
                f"Failed to send review notification: kind={notification.kind.value} mr={notification.merge_request.url}"
            )
            raise

    async def send_merge_notification(self, notification: MergeNotification) -> SlackPostResult:
        message = render_merge_message(notification=notification, mentions=self._mentions)
        try:
            return await self._chat_client.post_message(text=message.text, blocks=message.blocks)
        except Exception:
            logger.error(f"Failed to send merge notification: mr={notification.merge_request.url}")
            raise
