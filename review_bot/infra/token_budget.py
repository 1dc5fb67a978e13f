from __future__ import annotations

"""
Token 预算检查（请求前的准入控制）。

为什么需要这个模块：
- diff 很大时整段塞给模型会直接超出上下文窗口
- 宁可本地拒绝，也不要把注定失败的大请求发出去
"""


class TokenLimitExceededError(RuntimeError):
    """请求 token 超过预算时抛出（本地检测，未发出任何网络请求）。"""

    def __init__(self, identity: str, used: int, budget: int) -> None:
        super().__init__(f"Review request exceeds maximum token limit for {identity}: {used}/{budget}")
        self.identity = identity
        self.used = used
        self.budget = budget


def input_token_budget(max_input_tokens: int, max_output_tokens: int) -> int:
    """输入可用预算 = 上下文上限 - 预留给输出的部分。"""
    if max_input_tokens <= 0 or max_output_tokens <= 0:
        raise ValueError("token limits must be > 0")
    if max_output_tokens >= max_input_tokens:
        raise ValueError("max_output_tokens must be smaller than max_input_tokens")
    return max_input_tokens - max_output_tokens


def check_token_budget(identity: str, budget: int, used: int) -> None:
    """
    - identity: 例如 project_id/mr_iid 组合（用于日志与报错）
    - budget: 输入 token 上限
    - used: 本次请求估算的 token 数
    """
    if not identity:
        raise ValueError("identity must be non-empty")
    if used < 0:
        raise ValueError("used must be >= 0")
    if used > budget:
        raise TokenLimitExceededError(identity=identity, used=used, budget=budget)
