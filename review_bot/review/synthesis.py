from __future__ import annotations

"""
Synthesis（汇总输出）。

注意：
- 这里是**确定性输出**（不依赖 LLM），便于稳定回写 GitLab
- 纯函数：先完整拼好评论正文，再由 orchestrator 一次性发出
"""

from review_bot.review.models import AIReviewResult


def _bullets(items: list[str]) -> list[str]:
    return [f"- {item}" for item in items]


def synthesize_gitlab_note_body(review: AIReviewResult) -> str:
    """
    将 AI review 结果拼成一段 GitLab MR note 文本（markdown）。

    - 要点（highlights）/ 建议（suggestions）始终输出
    - 风险（risks）为空时整节省略
    - 末尾注明 review 时间与模型
    """
    lines: list[str] = ["## AI 리뷰 결과 🤖", ""]
    lines.extend(["### 요약", review.summary, ""])
    lines.extend(["### 잘된 점 ✨", *_bullets(review.highlights), ""])
    lines.extend(["### 개선 제안 💡", *_bullets(review.suggestions), ""])

    if review.risks:
        lines.extend(["### 주의 사항 ⚠️", *_bullets(review.risks), ""])

    lines.extend(
        [
            "---",
            f"리뷰 시간: {review.metadata.timestamp}",
            f"모델: {review.metadata.model}",
        ]
    )
    return "\n".join(lines)
