"""
Trigger 识别（非 AI）。

评论里带上约定的方括号短语即视为一次 review 指令：
- 纯子串匹配，大小写敏感，不做归一化/正则
- 按表顺序匹配，第一个命中的生效（同一条评论写了多个短语时，以表顺序为准）
"""

from __future__ import annotations

from enum import Enum


class TriggerKind(str, Enum):
    REQUEST = "request"
    START = "start"
    COMPLETE = "complete"
    RESPONSE = "response"
    ADDITIONAL = "additional"
    AI_REVIEW = "ai_review"


# 顺序即优先级，不要随意调整
TRIGGER_PHRASES: tuple[tuple[str, TriggerKind], ...] = (
    ("[리뷰 요청]", TriggerKind.REQUEST),
    ("[리뷰 시작]", TriggerKind.START),
    ("[리뷰 완료]", TriggerKind.COMPLETE),
    ("[리뷰 응답]", TriggerKind.RESPONSE),
    ("[추가 리뷰]", TriggerKind.ADDITIONAL),
    ("[AI 리뷰]", TriggerKind.AI_REVIEW),
)


def classify(comment_body: str) -> TriggerKind | None:
    """返回评论对应的 TriggerKind；没有任何短语时返回 None（不是错误）。"""
    for phrase, kind in TRIGGER_PHRASES:
        if phrase in comment_body:
            return kind
    return None


def strip_trigger_phrases(comment_body: str) -> str:
    """去掉评论里的所有 trigger 短语，剩下的文本作为附加说明。"""
    text = comment_body
    for phrase, _ in TRIGGER_PHRASES:
        text = text.replace(phrase, "")
    return text.strip()
