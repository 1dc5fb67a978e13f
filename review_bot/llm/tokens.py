from __future__ import annotations

import functools
from collections.abc import Callable

import tiktoken

TokenCounter = Callable[[str], int]


@functools.lru_cache(maxsize=1)
def _get_tokenizer() -> tiktoken.Encoding:
    return tiktoken.get_encoding("cl100k_base")


def count_tokens(text: str) -> int:
    """
    用 cl100k_base 估算 token 数。

    与 Claude 实际 tokenizer 有偏差，只用于请求前的预算检查。
    """
    if not text:
        return 0
    return len(_get_tokenizer().encode(text))
