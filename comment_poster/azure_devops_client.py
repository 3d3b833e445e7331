"""
Azure DevOps Repos platform handler for the PR comment poster.

Each comment lives in its own pull request thread. The thread's first
comment holds the body, and hiding a comment closes its thread.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field

from .comment import PostedComment
from .config.settings import SettingsProtocol
from .platform_client import HTTPPlatformHandler
from .utils.exceptions import PlatformAPIError
from .utils.retry import RetryConfig

API_VERSION = "7.0"
CLOSED_STATUS = "closed"
# Thread statuses the pull request page collapses as resolved
RESOLVED_STATUSES = {"fixed", "wontfix", "closed", "bydesign"}


@dataclass(frozen=True)
class AzureDevOpsComment(PostedComment):
    """A thread's first comment; id is "<thread id>/<comment id>"."""
    thread_id: int = 0
    comment_id: int = 0


class AzureDevOpsThreadComment(BaseModel):
    id: int
    content: Optional[str] = ""
    published_date: datetime = Field(..., alias="publishedDate")
    is_deleted: bool = Field(False, alias="isDeleted")


class AzureDevOpsThread(BaseModel):
    """Pull request thread payload."""
    id: int
    status: Optional[str] = None
    is_deleted: bool = Field(False, alias="isDeleted")
    comments: List[AzureDevOpsThreadComment] = Field(default_factory=list)


class AzureDevOpsThreadList(BaseModel):
    value: List[AzureDevOpsThread] = Field(default_factory=list)


class AzureDevOpsHandler(HTTPPlatformHandler):
    """Handler for Azure DevOps Repos pull requests."""

    platform_name = "azure-devops"

    def __init__(
        self,
        settings: SettingsProtocol,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_config: Optional[RetryConfig] = None
    ):
        super().__init__(settings, transport=transport, retry_config=retry_config)

        repository = quote(self.repository, safe="")
        self.threads_url = (
            f"{self.api_url}/_apis/git/repositories/{repository}"
            f"/pullRequests/{self.pull_request}/threads"
        )
        self.pull_request_url = f"{self.api_url}/_git/{repository}/pullrequest/{self.pull_request}"
        self.params = {"api-version": API_VERSION}

    def add_markdown_tag(self, body: str, tag: str) -> str:
        return f"<!-- {tag} -->\n{body}"

    def _to_comment(self, thread: AzureDevOpsThread) -> Optional[AzureDevOpsComment]:
        if thread.is_deleted or not thread.comments:
            return None

        first = thread.comments[0]
        if first.is_deleted:
            return None

        return AzureDevOpsComment(
            id=f"{thread.id}/{first.id}",
            body=first.content or "",
            ref=f"{self.pull_request_url}?discussionId={thread.id}",
            created_at=first.published_date,
            hidden=(thread.status or "").lower() in RESOLVED_STATUSES,
            thread_id=thread.id,
            comment_id=first.id
        )

    async def find_matching_comments(self, tag: str) -> List[AzureDevOpsComment]:
        result = await self.request("GET", self.threads_url, params=self.params)
        threads = self.parse(AzureDevOpsThreadList, result, self.threads_url)

        matching: List[AzureDevOpsComment] = []
        for thread in threads.value:
            comment = self._to_comment(thread)
            if comment is not None and self.has_markdown_tag(comment.body, tag):
                matching.append(comment)

        return matching

    async def create_comment(self, body: str) -> AzureDevOpsComment:
        payload = {
            "comments": [
                {
                    "parentCommentId": 0,
                    "content": body,
                    "commentType": 1
                }
            ],
            "status": "active"
        }
        result = await self.request(
            "POST", self.threads_url, json=payload, params=self.params, retry=False
        )
        comment = self._to_comment(self.parse(AzureDevOpsThread, result, self.threads_url))
        if comment is None:
            raise PlatformAPIError(
                "Azure DevOps returned a thread without comments",
                endpoint=self.threads_url,
                platform=self.platform_name,
                retryable=False
            )
        return comment

    def _comment_url(self, comment: AzureDevOpsComment) -> str:
        return f"{self.threads_url}/{comment.thread_id}/comments/{comment.comment_id}"

    async def update_comment(self, comment: AzureDevOpsComment, body: str) -> None:
        await self.request("PATCH", self._comment_url(comment), json={"content": body}, params=self.params)

    async def delete_comment(self, comment: AzureDevOpsComment) -> None:
        await self.request("DELETE", self._comment_url(comment), params=self.params)

    async def hide_comment(self, comment: AzureDevOpsComment) -> None:
        url = f"{self.threads_url}/{comment.thread_id}"
        await self.request("PATCH", url, json={"status": CLOSED_STATUS}, params=self.params)
