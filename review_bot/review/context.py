"""
Context Builder（非 AI）。

职责：
- 把 GitLab 的 changes/diff 转换为我们内部的 `AIReviewContext`
- diff 序列化成一整段文本：每个文件前面加一行 `File: <path> (<变更类型>)`
"""

from __future__ import annotations

from review_bot.gitlab.schemas import GitLabMergeRequestChanges
from review_bot.gitlab.schemas import GitLabMRChange
from review_bot.review.models import AIReviewContext
from review_bot.review.models import ChangeKind
from review_bot.review.models import FileChange


def infer_change_kind(change: GitLabMRChange) -> ChangeKind:
    if change.new_file:
        return "new file"
    if change.deleted_file:
        return "deleted"
    return "modified"


def to_file_changes(changes: GitLabMergeRequestChanges) -> list[FileChange]:
    return [
        FileChange(path=c.new_path, diff=c.diff, change_kind=infer_change_kind(change=c))
        for c in changes.changes
    ]


def serialize_changes(file_changes: list[FileChange]) -> str:
    """按 GitLab 返回顺序拼接，文件之间空一行。"""
    return "\n\n".join(f"File: {c.path} ({c.change_kind})\n{c.diff}" for c in file_changes)


def build_review_context(
    project_id: int,
    mr_iid: int,
    changes: GitLabMergeRequestChanges,
    extra_instructions: str = "",
) -> AIReviewContext:
    """
    将 GitLab MR changes 转为 AI review 输入。

    - extra_instructions：触发评论里除 trigger 短语之外的文字（可为空）
    """
    return AIReviewContext(
        project_id=project_id,
        mr_iid=mr_iid,
        title=changes.title,
        description=changes.description or "",
        author_username=changes.author.username,
        changes=serialize_changes(file_changes=to_file_changes(changes=changes)),
        extra_instructions=extra_instructions,
    )
