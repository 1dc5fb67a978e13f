from __future__ import annotations

from datetime import datetime, timezone

import pytest

from fakes import REVIEW_JSON
from fakes import FakeLLM
from review_bot.errors import AIResponseParseError
from review_bot.infra.token_budget import TokenLimitExceededError
from review_bot.review.models import AIReviewContext
from review_bot.review.reviewer import SYSTEM_PROMPT
from review_bot.review.reviewer import AIReviewer
from review_bot.review.reviewer import build_user_prompt
from review_bot.review.reviewer import extract_first_json_object
from review_bot.review.reviewer import parse_review_response

pytestmark = pytest.mark.anyio


def _context(changes: str = "File: a.py (modified)\n+print(1)") -> AIReviewContext:
    return AIReviewContext(
        project_id=42,
        mr_iid=7,
        title="Add login form",
        description="로그인 폼 추가",
        author_username="jelee",
        changes=changes,
    )


def test_extract_first_json_object_ignores_surrounding_prose() -> None:
    text = f"리뷰 결과입니다:\n```json\n{REVIEW_JSON}\n```\n추가 설명 {{not json}}"
    parsed = extract_first_json_object(text)
    assert parsed["summary"] == "변경 요약"


def test_extract_first_json_object_skips_unparseable_braces() -> None:
    parsed = extract_first_json_object('{oops} then {"summary": "s", "suggestions": []}')
    assert parsed == {"summary": "s", "suggestions": []}


def test_extract_first_json_object_without_object_raises() -> None:
    with pytest.raises(AIResponseParseError):
        extract_first_json_object("no json here")


def test_parse_review_response_defaults_optional_lists() -> None:
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    result = parse_review_response('{"summary": "s", "suggestions": ["a"], "risks": null}', model="m", now=now)
    assert result.highlights == []
    assert result.risks == []
    assert result.metadata.model == "m"
    assert result.metadata.timestamp == "2024-05-01T12:00:00+00:00"


@pytest.mark.parametrize(
    "raw",
    [
        '{"suggestions": ["a"]}',
        '{"summary": "s"}',
        '{"summary": "s", "suggestions": "not a list"}',
    ],
)
def test_parse_review_response_requires_summary_and_suggestions(raw: str) -> None:
    with pytest.raises(AIResponseParseError):
        parse_review_response(raw, model="m")


def test_user_prompt_contains_context_and_extra_instructions() -> None:
    context = _context().model_copy(update={"extra_instructions": "보안 위주로"})
    prompt = build_user_prompt(context)
    assert "제목: Add login form" in prompt
    assert "작성자: jelee" in prompt
    assert "File: a.py (modified)" in prompt
    assert "추가 요청: 보안 위주로" in prompt
    assert "추가 요청" not in build_user_prompt(_context())


async def test_generate_review_calls_llm_with_fixed_parameters() -> None:
    llm = FakeLLM()
    reviewer = AIReviewer(llm_client=llm, model="m", max_input_tokens=100000, max_output_tokens=4000, token_counter=len)

    result = await reviewer.generate_review(_context())

    assert result.summary == "변경 요약"
    assert result.suggestions == ["타입 힌트 추가"]
    assert len(llm.calls) == 1
    call = llm.calls[0]
    assert call["temperature"] == 0.3
    assert call["max_tokens"] == 4000
    messages = call["messages"]
    assert messages[0].role == "system"  # type: ignore[index]
    assert messages[0].content == SYSTEM_PROMPT  # type: ignore[index]
    assert messages[1].role == "user"  # type: ignore[index]


async def test_generate_review_rejects_oversized_prompt_before_llm_call() -> None:
    llm = FakeLLM()
    # budget = 5000 - 4000 = 1000 characters with the len() counter
    reviewer = AIReviewer(llm_client=llm, model="m", max_input_tokens=5000, max_output_tokens=4000, token_counter=len)

    with pytest.raises(TokenLimitExceededError):
        await reviewer.generate_review(_context(changes="+x\n" * 2000))

    assert llm.calls == []


async def test_generate_review_propagates_parse_failure() -> None:
    reviewer = AIReviewer(
        llm_client=FakeLLM(response="죄송합니다, 리뷰할 수 없습니다."),
        model="m",
        max_input_tokens=100000,
        max_output_tokens=4000,
        token_counter=len,
    )
    with pytest.raises(AIResponseParseError):
        await reviewer.generate_review(_context())
