"""
AI Reviewer（单次 LLM 调用，不 loop）。

流程：
- 拼 system/user prompt（韩文，团队约定的 review 关注点）
- 发请求前先估算 token，超出预算直接本地拒绝
- 从模型返回的文本里找第一个顶层 JSON 对象并做 schema 校验

注意：
- 模型经常在 JSON 前后加解释文字或 markdown，所以不能直接 json.loads 整段文本
- 解析失败直接抛错（宁可失败也不要写入错误评论）
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from pydantic import ValidationError

from review_bot.errors import AIResponseParseError
from review_bot.infra.token_budget import check_token_budget
from review_bot.infra.token_budget import input_token_budget
from review_bot.llm.client import ChatMessage
from review_bot.llm.tokens import TokenCounter
from review_bot.llm.tokens import count_tokens
from review_bot.review.models import AIReviewContext
from review_bot.review.models import AIReviewMetadata
from review_bot.review.models import AIReviewPayload
from review_bot.review.models import AIReviewResult
from review_bot.review.ports import LLMPort

logger = logging.getLogger(__name__)

REVIEW_TEMPERATURE = 0.3
# role/分隔符等框架开销
MESSAGE_OVERHEAD_TOKENS = 8

SYSTEM_PROMPT = """당신은 경험이 풍부한 시니어 개발자이자 코드 리뷰어입니다.
주어진 merge request의 변경사항을 검토하고 건설적인 피드백을 제공하는 것이 당신의 임무입니다.

다음 측면들을 중점적으로 검토해주세요:

1. 컴포넌트 설계 원칙 (책임과 컴포지션)

단일 책임
- 컴포넌트가 하나의 명확한 역할만 수행하는가?
- 컴포넌트 이름이 그 역할을 잘 표현하는가?
- props가 해당 책임에 필요한 것들로만 제한되어 있는가?

컴포지션
- 재사용/확장이 용이한 설계인가?
- UI와 로직이 적절히 분리되어 있는가?
- 다른 컴포넌트와의 조합이 자연스러운가?

2. 성능 최적화

리렌더링 최적화
- 상태 관리가 적절한 위치에서 이루어지는가?
- 컴포넌트 외부의 고비용 계산 혹은 함수에 대한 메모이제이션
- 여러 컴포넌트에서 공유되는 계산의 캐싱

응답은 한글로 작성하며, 다음 JSON 구조를 따라주세요:
{
  "summary": "변경사항에 대한 간단한 요약",
  "suggestions": ["개선 제안 1", "개선 제안 2", ...],
  "highlights": ["특별히 잘한 점 1", "특별히 잘한 점 2", ...],
  "risks": ["잠재적 위험 1", "잠재적 위험 2", ...]
}"""


def build_user_prompt(context: AIReviewContext) -> str:
    extra = ""
    if context.extra_instructions:
        extra = f"\n추가 요청: {context.extra_instructions}\n"
    return (
        "다음 merge request 변경사항을 검토해주세요:\n\n"
        f"제목: {context.title}\n"
        f"설명: {context.description}\n"
        f"작성자: {context.author_username}\n"
        f"{extra}\n"
        "변경사항:\n"
        f"{context.changes}\n\n"
        "다음 형식의 JSON으로 응답해주세요:\n"
        "{\n"
        '  "summary": "전반적인 코드 품질과 변경사항에 대한 간단한 요약",\n'
        '  "suggestions": ["구체적인 개선 제안들을 항목별로 나열"],\n'
        '  "highlights": ["잘 작성된 부분들을 항목별로 나열"],\n'
        '  "risks": ["주의가 필요한 부분들을 항목별로 나열"]\n'
        "}\n\n"
        "각 항목은 명확하고 구체적으로 작성해주세요."
    )


def extract_first_json_object(text: str) -> dict[str, object]:
    """
    找到文本中第一个能完整解析的顶层 `{...}` 对象。

    从每个 `{` 位置尝试 raw_decode，第一个解析成功且是 dict 的即返回。
    """
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            parsed, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(parsed, dict):
            return parsed
        start = text.find("{", start + 1)
    raise AIResponseParseError("Invalid response format: no JSON object found")


def parse_review_response(raw: str, model: str, now: datetime | None = None) -> AIReviewResult:
    try:
        payload = AIReviewPayload.model_validate(extract_first_json_object(text=raw))
    except AIResponseParseError:
        logger.error(f"Failed to parse AI response (no JSON object). Raw content: {raw}")
        raise
    except ValidationError as exc:
        logger.error(f"AI response does not match review schema: {exc}")
        raise AIResponseParseError(f"AI response does not match review schema: {exc}") from exc

    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    return AIReviewResult(
        summary=payload.summary,
        suggestions=payload.suggestions,
        highlights=payload.highlights,
        risks=payload.risks,
        metadata=AIReviewMetadata(model=model, timestamp=timestamp),
    )


class AIReviewer:
    """AI 协作方的业务封装：prompt + 预算检查 + 输出解析。"""

    def __init__(
        self,
        llm_client: LLMPort,
        model: str,
        max_input_tokens: int,
        max_output_tokens: int,
        token_counter: TokenCounter = count_tokens,
    ) -> None:
        self._llm_client = llm_client
        self._model = model
        self._max_output_tokens = max_output_tokens
        self._input_budget = input_token_budget(max_input_tokens=max_input_tokens, max_output_tokens=max_output_tokens)
        self._token_counter = token_counter

    async def generate_review(self, context: AIReviewContext) -> AIReviewResult:
        user_prompt = build_user_prompt(context=context)
        used = self._token_counter(SYSTEM_PROMPT) + self._token_counter(user_prompt) + MESSAGE_OVERHEAD_TOKENS
        # 超出预算在这里就抛 TokenLimitExceededError，不会发出请求
        check_token_budget(
            identity=f"project={context.project_id} mr={context.mr_iid}",
            budget=self._input_budget,
            used=used,
        )

        messages = [
            ChatMessage(role="system", content=SYSTEM_PROMPT),
            ChatMessage(role="user", content=user_prompt),
        ]
        raw = await self._llm_client.complete_text(
            messages=messages,
            temperature=REVIEW_TEMPERATURE,
            max_tokens=self._max_output_tokens,
        )
        return parse_review_response(raw=raw, model=self._model)
