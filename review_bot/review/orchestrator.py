"""
AI Review Orchestrator（核心流程编排）。

关键思想：
- **流程由工程代码控制**：固定的 5 步 pipeline，每一步失败都直接终止
- **LLM 只负责“生成结构化输出”**：单次调用，不 loop，不重试

流程：
get MR changes -> build context -> token 预算检查 + LLM -> parse -> synthesize -> post MR note
"""

from __future__ import annotations

import logging

from review_bot.errors import AIResponseParseError
from review_bot.infra.token_budget import TokenLimitExceededError
from review_bot.review.context import build_review_context
from review_bot.review.models import AIReviewOutcome
from review_bot.review.ports import GitLabPort
from review_bot.review.reviewer import AIReviewer
from review_bot.review.synthesis import synthesize_gitlab_note_body
from review_bot.review.triggers import strip_trigger_phrases

logger = logging.getLogger(__name__)


class AIReviewOrchestrator:
    def __init__(self, gitlab_client: GitLabPort, reviewer: AIReviewer) -> None:
        self._gitlab_client = gitlab_client
        self._reviewer = reviewer

    async def process_review_request(self, project_id: int, mr_iid: int, trigger_comment: str) -> AIReviewOutcome:
        """
        跑一次完整 AI review，并把结果写回 GitLab。

        - trigger_comment：触发的评论原文；去掉 trigger 短语后的文字会作为附加要求传给模型
        - 任何一步失败都抛出，不会留下半成品评论
        """
        try:
            changes = await self._gitlab_client.get_merge_request_changes(project_id=project_id, mr_iid=mr_iid)
            context = build_review_context(
                project_id=project_id,
                mr_iid=mr_iid,
                changes=changes,
                extra_instructions=strip_trigger_phrases(comment_body=trigger_comment),
            )
            review = await self._reviewer.generate_review(context=context)
            note_body = synthesize_gitlab_note_body(review=review)
            note = await self._gitlab_client.create_merge_request_note(
                project_id=project_id,
                mr_iid=mr_iid,
                body=note_body,
            )
        except TokenLimitExceededError as exc:
            logger.warning(f"AI review rejected before LLM call: project={project_id} mr={mr_iid} {exc}")
            raise
        except AIResponseParseError as exc:
            logger.error(f"AI review response violated contract: project={project_id} mr={mr_iid} error={exc}")
            raise
        except Exception as exc:
            logger.error(f"Failed to process AI review: project={project_id} mr={mr_iid} error={exc}")
            raise

        logger.info(f"AI review posted: project={project_id} mr={mr_iid} note={note.id}")
        return AIReviewOutcome(success=True, review=review, note_id=note.id)
