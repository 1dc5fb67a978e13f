"""
GitLab API 客户端（外部系统连接器）。

约定：
- 这里只做“HTTP 调用 + 错误处理 + schema 校验”，不做业务决策。
- 发生错误时**直接抛错**，不要吞异常（便于定位与告警）。
"""

from __future__ import annotations

import logging
from typing import Literal, TypeVar

import httpx
from pydantic import BaseModel

from review_bot.errors import GitLabAPIError
from review_bot.gitlab.schemas import GitLabDiscussion
from review_bot.gitlab.schemas import GitLabMergeRequestChanges
from review_bot.gitlab.schemas import GitLabNote

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class GitLabClient:
    """最小 GitLab v4 API client。"""

    def __init__(self, base_url: str, private_token: str, http_client: httpx.AsyncClient) -> None:
        """
        - base_url: GitLab 实例地址（不包含末尾 /，也不包含 /api/v4）
        - private_token: PRIVATE-TOKEN（建议用专用机器人账号）
        - http_client: 复用的 httpx.AsyncClient（代理也配置在它上面）
        """
        self._base_url = base_url.rstrip("/")
        self._private_token = private_token
        self._http_client = http_client

    def _headers(self) -> dict[str, str]:
        """GitLab API 鉴权头。"""
        return {"PRIVATE-TOKEN": self._private_token}

    def _mr_url(self, project_id: int, mr_iid: int) -> str:
        return f"{self._base_url}/api/v4/projects/{project_id}/merge_requests/{mr_iid}"

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        if response.status_code >= 400:
            logger.error(f"GitLab {operation} failed: status={response.status_code} url={response.request.url}")
            raise GitLabAPIError(status_code=response.status_code, body=response.text)

    def _parse(self, response: httpx.Response, model: type[ModelT], operation: str) -> ModelT:
        """2xx 但 body 不是约定结构时，同样视为 GitLab 侧错误。"""
        try:
            return model.model_validate(response.json())
        except ValueError as exc:
            logger.error(f"GitLab {operation} returned unexpected body: {exc}")
            raise GitLabAPIError(status_code=response.status_code, body=f"unexpected response: {exc}") from exc

    def _parse_list(self, response: httpx.Response, model: type[ModelT], operation: str) -> list[ModelT]:
        try:
            return [model.model_validate(item) for item in response.json()]
        except (ValueError, TypeError) as exc:
            logger.error(f"GitLab {operation} returned unexpected body: {exc}")
            raise GitLabAPIError(status_code=response.status_code, body=f"unexpected response: {exc}") from exc

    async def get_merge_request_changes(self, project_id: int, mr_iid: int) -> GitLabMergeRequestChanges:
        """
        获取 MR changes（标题/描述/作者 + 每个文件的 diff）。

        GitLab v4 API: GET /projects/:id/merge_requests/:iid/changes
        """
        response = await self._http_client.get(f"{self._mr_url(project_id, mr_iid)}/changes", headers=self._headers())
        self._raise_for_status(response, operation="get_merge_request_changes")
        return self._parse(response, GitLabMergeRequestChanges, operation="get_merge_request_changes")

    async def create_merge_request_note(self, project_id: int, mr_iid: int, body: str) -> GitLabNote:
        """在 MR 下发布一条全局评论（note）。"""
        response = await self._http_client.post(
            f"{self._mr_url(project_id, mr_iid)}/notes",
            headers=self._headers(),
            json={"body": body},
        )
        self._raise_for_status(response, operation="create_merge_request_note")
        return self._parse(response, GitLabNote, operation="create_merge_request_note")

    async def get_merge_request_note(self, project_id: int, mr_iid: int, note_id: int) -> GitLabNote:
        response = await self._http_client.get(
            f"{self._mr_url(project_id, mr_iid)}/notes/{note_id}",
            headers=self._headers(),
        )
        self._raise_for_status(response, operation="get_merge_request_note")
        return self._parse(response, GitLabNote, operation="get_merge_request_note")

    async def update_merge_request_note(self, project_id: int, mr_iid: int, note_id: int, body: str) -> GitLabNote:
        response = await self._http_client.put(
            f"{self._mr_url(project_id, mr_iid)}/notes/{note_id}",
            headers=self._headers(),
            json={"body": body},
        )
        self._raise_for_status(response, operation="update_merge_request_note")
        return self._parse(response, GitLabNote, operation="update_merge_request_note")

    async def delete_merge_request_note(self, project_id: int, mr_iid: int, note_id: int) -> None:
        response = await self._http_client.delete(
            f"{self._mr_url(project_id, mr_iid)}/notes/{note_id}",
            headers=self._headers(),
        )
        self._raise_for_status(response, operation="delete_merge_request_note")

    async def list_merge_request_notes(
        self,
        project_id: int,
        mr_iid: int,
        sort: Literal["asc", "desc"] | None = None,
        order_by: Literal["created_at", "updated_at"] | None = None,
    ) -> list[GitLabNote]:
        """
        列出 MR 的 notes。

        - sort/order_by 不传时使用 GitLab 默认（created_at desc）
        """
        params: dict[str, str] = {}
        if sort is not None:
            params["sort"] = sort
        if order_by is not None:
            params["order_by"] = order_by
        response = await self._http_client.get(
            f"{self._mr_url(project_id, mr_iid)}/notes",
            headers=self._headers(),
            params=params,
        )
        self._raise_for_status(response, operation="list_merge_request_notes")
        return self._parse_list(response, GitLabNote, operation="list_merge_request_notes")

    async def get_merge_request_discussion(self, project_id: int, mr_iid: int, discussion_id: str) -> GitLabDiscussion:
        """GitLab v4 API: GET /projects/:id/merge_requests/:iid/discussions/:discussion_id"""
        response = await self._http_client.get(
            f"{self._mr_url(project_id, mr_iid)}/discussions/{discussion_id}",
            headers=self._headers(),
        )
        self._raise_for_status(response, operation="get_merge_request_discussion")
        return self._parse(response, GitLabDiscussion, operation="get_merge_request_discussion")
