"""
GitLab platform handler for the PR comment poster.

Comments are merge request notes. GitLab has no way to hide a note,
so hide_comment is left unsupported.
"""

from datetime import datetime
from typing import List, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from .comment import PostedComment
from .config.settings import SettingsProtocol
from .platform_client import HTTPPlatformHandler
from .utils.retry import RetryConfig

PER_PAGE = 100


class GitLabNote(BaseModel):
    """Merge request note payload."""
    id: int
    body: str = ""
    created_at: datetime
    system: bool = False


class GitLabMergeRequest(BaseModel):
    iid: int
    web_url: str


class GitLabHandler(HTTPPlatformHandler):
    """Handler for GitLab merge requests."""

    platform_name = "gitlab"

    def __init__(
        self,
        settings: SettingsProtocol,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_config: Optional[RetryConfig] = None
    ):
        super().__init__(settings, transport=transport, retry_config=retry_config)

        self.project_id = quote(self.repository, safe="")
        self.merge_request_url = (
            f"{self.api_url}/projects/{self.project_id}/merge_requests/{self.pull_request}"
        )
        self._web_url: Optional[str] = None

    def add_markdown_tag(self, body: str, tag: str) -> str:
        return f"<!-- {tag} -->{body}"

    async def merge_request_web_url(self) -> str:
        """Web URL of the merge request, fetched once."""
        if self._web_url is None:
            result = await self.request("GET", self.merge_request_url)
            merge_request = self.parse(GitLabMergeRequest, result, self.merge_request_url)
            self._web_url = merge_request.web_url
        return self._web_url

    async def _to_comment(self, note: GitLabNote) -> PostedComment:
        web_url = await self.merge_request_web_url()
        return PostedComment(
            id=str(note.id),
            body=note.body,
            ref=f"{web_url}#note_{note.id}",
            created_at=note.created_at
        )

    async def find_matching_comments(self, tag: str) -> List[PostedComment]:
        url = f"{self.merge_request_url}/notes"
        matching: List[PostedComment] = []
        page = 1

        while True:
            result = await self.request(
                "GET",
                url,
                params={
                    "per_page": PER_PAGE,
                    "page": page,
                    "sort": "asc",
                    "order_by": "created_at",
                }
            )

            notes = [self.parse(GitLabNote, item, url) for item in result or []]
            for note in notes:
                if not note.system and self.has_markdown_tag(note.body, tag):
                    matching.append(await self._to_comment(note))

            if len(notes) < PER_PAGE:
                break
            page += 1

        return matching

    async def create_comment(self, body: str) -> PostedComment:
        url = f"{self.merge_request_url}/notes"
        result = await self.request("POST", url, json={"body": body}, retry=False)
        return await self._to_comment(self.parse(GitLabNote, result, url))

    async def update_comment(self, comment: PostedComment, body: str) -> None:
        url = f"{self.merge_request_url}/notes/{comment.id}"
        await self.request("PUT", url, json={"body": body})

    async def delete_comment(self, comment: PostedComment) -> None:
        url = f"{self.merge_request_url}/notes/{comment.id}"
        await self.request("DELETE", url)
