"""
Bitbucket Cloud platform handler for the PR comment poster.

Bitbucket renders HTML comments, so the tag is embedded as an empty
markdown link reference instead. Comments cannot be hidden.
"""

from datetime import datetime
from typing import List, Optional

import httpx
from pydantic import BaseModel, Field

from .comment import PostedComment
from .config.settings import SettingsProtocol
from .platform_client import HTTPPlatformHandler
from .utils.retry import RetryConfig

PAGE_LENGTH = 100


class BitbucketContent(BaseModel):
    raw: Optional[str] = ""


class BitbucketLink(BaseModel):
    href: str = ""


class BitbucketLinks(BaseModel):
    html: BitbucketLink = Field(default_factory=BitbucketLink)


class BitbucketComment(BaseModel):
    """Pull request comment payload."""
    id: int
    content: BitbucketContent = Field(default_factory=BitbucketContent)
    created_on: datetime
    deleted: bool = False
    links: BitbucketLinks = Field(default_factory=BitbucketLinks)


class BitbucketCommentPage(BaseModel):
    values: List[BitbucketComment] = Field(default_factory=list)
    next: Optional[str] = None


class BitbucketHandler(HTTPPlatformHandler):
    """Handler for Bitbucket Cloud pull requests."""

    platform_name = "bitbucket"

    def __init__(
        self,
        settings: SettingsProtocol,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_config: Optional[RetryConfig] = None
    ):
        super().__init__(settings, transport=transport, retry_config=retry_config)
        self.comments_url = (
            f"{self.api_url}/repositories/{self.repository}/pullrequests/{self.pull_request}/comments"
        )

    def add_markdown_tag(self, body: str, tag: str) -> str:
        return f"[//]: # ({tag})\n{body}"

    def _to_comment(self, comment: BitbucketComment) -> PostedComment:
        return PostedComment(
            id=str(comment.id),
            body=comment.content.raw or "",
            ref=comment.links.html.href or f"{self.comments_url}/{comment.id}",
            created_at=comment.created_on
        )

    async def find_matching_comments(self, tag: str) -> List[PostedComment]:
        matching: List[PostedComment] = []
        url: Optional[str] = self.comments_url
        params: Optional[dict] = {"pagelen": PAGE_LENGTH}

        while url:
            result = await self.request("GET", url, params=params)
            page = self.parse(BitbucketCommentPage, result, url)

            for comment in page.values:
                if not comment.deleted and self.has_markdown_tag(comment.content.raw or "", tag):
                    matching.append(self._to_comment(comment))

            # next links already carry the query string
            url = page.next
            params = None

        return matching

    async def create_comment(self, body: str) -> PostedComment:
        result = await self.request(
            "POST", self.comments_url, json={"content": {"raw": body}}, retry=False
        )
        return self._to_comment(self.parse(BitbucketComment, result, self.comments_url))

    async def update_comment(self, comment: PostedComment, body: str) -> None:
        await self.request("PUT", f"{self.comments_url}/{comment.id}", json={"content": {"raw": body}})

    async def delete_comment(self, comment: PostedComment) -> None:
        await self.request("DELETE", f"{self.comments_url}/{comment.id}")
