from __future__ import annotations

"""
外部协作方接口（Protocol）。

业务层只依赖这里的最小接口，具体实现：
- `GitLabPort` -> `review_bot.gitlab.client.GitLabClient`
- `LLMPort` -> `review_bot.llm.client.OpenAICompatLLMClient`
- `ChatPort` -> `review_bot.slack.client.SlackClient`

测试时直接传入 fake 实现即可（依赖倒置）。
"""

from collections.abc import Sequence
from typing import Protocol

from review_bot.gitlab.schemas import GitLabDiscussion
from review_bot.gitlab.schemas import GitLabMergeRequestChanges
from review_bot.gitlab.schemas import GitLabNote
from review_bot.llm.client import ChatMessage
from review_bot.slack.client import SlackPostResult


class GitLabPort(Protocol):
    async def get_merge_request_changes(self, project_id: int, mr_iid: int) -> GitLabMergeRequestChanges: ...

    async def create_merge_request_note(self, project_id: int, mr_iid: int, body: str) -> GitLabNote: ...

    async def get_merge_request_discussion(
        self, project_id: int, mr_iid: int, discussion_id: str
    ) -> GitLabDiscussion: ...


class LLMPort(Protocol):
    async def complete_text(
        self,
        messages: Sequence[ChatMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str: ...


class ChatPort(Protocol):
    async def post_message(self, text: str, blocks: list[dict[str, object]]) -> SlackPostResult: ...
