from __future__ import annotations

from collections.abc import Sequence

from review_bot.gitlab.schemas import GitLabDiscussion
from review_bot.gitlab.schemas import GitLabMergeRequestChanges
from review_bot.gitlab.schemas import GitLabNote
from review_bot.llm.client import ChatMessage
from review_bot.review.dispatcher import WebhookDispatcher
from review_bot.review.notification import NotificationBuilder
from review_bot.review.orchestrator import AIReviewOrchestrator
from review_bot.review.reviewer import AIReviewer
from review_bot.slack.client import SlackPostResult
from review_bot.slack.mentions import MentionDirectory
from review_bot.slack.notifier import SlackNotifier

WEBHOOK_SECRET = "s3cret"

REVIEW_JSON = (
    '{"summary": "변경 요약", "suggestions": ["타입 힌트 추가"], '
    '"highlights": ["테스트가 충실함"], "risks": ["N+1 쿼리 가능성"]}'
)


def default_changes() -> GitLabMergeRequestChanges:
    return GitLabMergeRequestChanges.model_validate(
        {
            "title": "Add login form",
            "description": "로그인 폼 추가",
            "author": {"id": 17, "username": "jelee", "name": "Jay Lee"},
            "changes": [
                {
                    "old_path": "src/login.ts",
                    "new_path": "src/login.ts",
                    "new_file": True,
                    "deleted_file": False,
                    "diff": "@@ -0,0 +1 @@\n+export const login = () => {};\n",
                },
                {
                    "old_path": "src/legacy.ts",
                    "new_path": "src/legacy.ts",
                    "new_file": False,
                    "deleted_file": True,
                    "diff": "@@ -1 +0,0 @@\n-export {};\n",
                },
                {
                    "old_path": "src/app.ts",
                    "new_path": "src/app.ts",
                    "diff": "@@ -1 +1 @@\n-a\n+b\n",
                },
            ],
        }
    )


class FakeGitLab:
    def __init__(
        self,
        changes: GitLabMergeRequestChanges | None = None,
        discussion: GitLabDiscussion | None = None,
        discussion_error: Exception | None = None,
        changes_error: Exception | None = None,
    ) -> None:
        self.changes = changes or default_changes()
        self.discussion = discussion
        self.discussion_error = discussion_error
        self.changes_error = changes_error
        self.calls: list[str] = []
        self.posted_notes: list[tuple[int, int, str]] = []

    async def get_merge_request_changes(self, project_id: int, mr_iid: int) -> GitLabMergeRequestChanges:
        self.calls.append("get_merge_request_changes")
        if self.changes_error is not None:
            raise self.changes_error
        return self.changes

    async def create_merge_request_note(self, project_id: int, mr_iid: int, body: str) -> GitLabNote:
        self.calls.append("create_merge_request_note")
        self.posted_notes.append((project_id, mr_iid, body))
        return GitLabNote(id=len(self.posted_notes), body=body)

    async def get_merge_request_discussion(self, project_id: int, mr_iid: int, discussion_id: str) -> GitLabDiscussion:
        self.calls.append("get_merge_request_discussion")
        if self.discussion_error is not None:
            raise self.discussion_error
        if self.discussion is None:
            raise AssertionError("discussion was not configured")
        return self.discussion


class FakeLLM:
    def __init__(self, response: str = REVIEW_JSON, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[dict[str, object]] = []

    async def complete_text(
        self,
        messages: Sequence[ChatMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        self.calls.append({"messages": list(messages), "temperature": temperature, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return self.response


class FakeChat:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.posts: list[tuple[str, list[dict[str, object]]]] = []

    async def post_message(self, text: str, blocks: list[dict[str, object]]) -> SlackPostResult:
        if self.error is not None:
            raise self.error
        self.posts.append((text, blocks))
        return SlackPostResult(channel="C123", ts=f"{len(self.posts)}.000")


def mentions() -> MentionDirectory:
    return MentionDirectory(entries={17: "jelee", 18: "manaemee", 27: "ds.jeon"}, default="ds.jeon")


def build_dispatcher(gitlab: FakeGitLab, llm: FakeLLM, chat: FakeChat) -> WebhookDispatcher:
    reviewer = AIReviewer(llm_client=llm, model="test-model", max_input_tokens=100000, max_output_tokens=4000, token_counter=len)
    return WebhookDispatcher(
        webhook_secret=WEBHOOK_SECRET,
        notification_builder=NotificationBuilder(gitlab_client=gitlab),
        ai_review=AIReviewOrchestrator(gitlab_client=gitlab, reviewer=reviewer),
        notifier=SlackNotifier(chat_client=chat, mentions=mentions()),
    )


def note_payload(
    body: str,
    noteable_type: str = "MergeRequest",
    with_merge_request: bool = True,
    discussion_id: str | None = None,
    actor_id: int = 18,
) -> dict[str, object]:
    payload: dict[str, object] = {
        "object_kind": "note",
        "event_type": "note",
        "user": {"id": actor_id, "name": "Mina", "username": "manaemee"},
        "project": {"id": 42, "name": "web", "path_with_namespace": "team/web", "web_url": "https://gitlab.example.com/team/web"},
        "object_attributes": {
            "id": 555,
            "note": body,
            "noteable_type": noteable_type,
            "url": "https://gitlab.example.com/team/web/-/merge_requests/7#note_555",
            "discussion_id": discussion_id,
        },
    }
    if with_merge_request:
        payload["merge_request"] = {
            "iid": 7,
            "title": "Add login form",
            "url": "https://gitlab.example.com/team/web/-/merge_requests/7",
            "description": "로그인 폼 추가",
            "state": "opened",
            "source_branch": "feature/login",
            "target_branch": "main",
            "author_id": 17,
            "last_commit": {"id": "abc123", "author": {"name": "Jay Lee", "email": "jay@example.com"}},
        }
    return payload


def merge_request_payload(action: str) -> dict[str, object]:
    return {
        "object_kind": "merge_request",
        "event_type": "merge_request",
        "user": {"id": 17, "name": "Jay Lee", "username": "jelee"},
        "project": {"id": 42, "name": "web", "path_with_namespace": "team/web"},
        "object_attributes": {
            "iid": 7,
            "title": "Add login form",
            "url": "https://gitlab.example.com/team/web/-/merge_requests/7",
            "source_branch": "feature/login",
            "target_branch": "main",
            "description": "로그인 폼 추가",
            "state": "merged" if action == "merge" else "closed",
            "action": action,
        },
        "reviewers": [{"id": 18, "name": "Mina", "username": "manaemee"}],
    }
