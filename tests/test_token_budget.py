from __future__ import annotations

import pytest

from review_bot.infra.token_budget import TokenLimitExceededError
from review_bot.infra.token_budget import check_token_budget
from review_bot.infra.token_budget import input_token_budget
from review_bot.llm.tokens import count_tokens


def test_input_token_budget_reserves_output() -> None:
    assert input_token_budget(max_input_tokens=100000, max_output_tokens=4000) == 96000


def test_input_token_budget_rejects_inverted_limits() -> None:
    with pytest.raises(ValueError):
        input_token_budget(max_input_tokens=100, max_output_tokens=100)


def test_check_token_budget_allows_exact_budget() -> None:
    check_token_budget(identity="p:1", budget=10, used=10)


def test_check_token_budget_over_budget_raises() -> None:
    with pytest.raises(TokenLimitExceededError) as exc_info:
        check_token_budget(identity="p:1", budget=10, used=11)
    assert exc_info.value.used == 11
    assert exc_info.value.budget == 10


def test_check_token_budget_validates_inputs() -> None:
    with pytest.raises(ValueError):
        check_token_budget(identity="", budget=10, used=1)
    with pytest.raises(ValueError):
        check_token_budget(identity="p:1", budget=10, used=-1)


def test_count_tokens_empty_text_is_zero() -> None:
    assert count_tokens("") == 0
