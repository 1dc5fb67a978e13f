from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class MentionDirectory:
    """GitLab user id -> Slack mention。查不到时使用显式的 default。"""

    entries: Mapping[int, str]
    default: str

    def __post_init__(self) -> None:
        # 启动时注入后只读
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))

    def handle_for(self, user_id: int | None) -> str:
        if user_id is None:
            return self.default
        return self.entries.get(user_id, self.default)

    def mention(self, user_id: int | None) -> str:
        return f"<@{self.handle_for(user_id)}>"
