"""
GitHub platform handler for the PR comment poster.

Comments are listed through GraphQL, which is the only API that
reports whether a comment is minimized, and written through the REST
issue comment endpoints. Hiding uses the GraphQL minimizeComment
mutation.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from .comment import PostedComment
from .config.settings import SettingsProtocol
from .platform_client import HTTPPlatformHandler
from .utils.exceptions import ConfigurationError, PlatformAPIError
from .utils.retry import RetryConfig


FIND_COMMENTS_QUERY = """
query($owner: String!, $repo: String!, $number: Int!, $after: String) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $number) {
      comments(first: 100, after: $after) {
        nodes {
          id
          databaseId
          url
          body
          createdAt
          isMinimized
        }
        pageInfo {
          endCursor
          hasNextPage
        }
      }
    }
  }
}
"""

MINIMIZE_COMMENT_MUTATION = """
mutation($id: ID!) {
  minimizeComment(input: {subjectId: $id, classifier: OUTDATED}) {
    clientMutationId
  }
}
"""


@dataclass(frozen=True)
class GitHubComment(PostedComment):
    """A pull request comment; id is the REST id, node_id the GraphQL id."""
    node_id: str = ""


class GitHubIssueComment(BaseModel):
    """REST issue comment payload."""
    id: int
    node_id: str
    body: str = ""
    html_url: str
    created_at: datetime


class GitHubCommentNode(BaseModel):
    """GraphQL IssueComment node."""
    id: str
    database_id: int = Field(..., alias="databaseId")
    url: str
    body: str = ""
    created_at: datetime = Field(..., alias="createdAt")
    is_minimized: bool = Field(False, alias="isMinimized")


class GitHubPageInfo(BaseModel):
    end_cursor: Optional[str] = Field(None, alias="endCursor")
    has_next_page: bool = Field(False, alias="hasNextPage")


class GitHubCommentConnection(BaseModel):
    nodes: List[Optional[GitHubCommentNode]] = Field(default_factory=list)
    page_info: GitHubPageInfo = Field(..., alias="pageInfo")


def graphql_url(api_url: str) -> str:
    """GraphQL endpoint for a REST API URL (GitHub Enterprise uses /api/graphql)."""
    api_url = api_url.rstrip("/")
    if api_url.endswith("/api/v3"):
        return api_url[:-len("/v3")] + "/graphql"
    return f"{api_url}/graphql"


class GitHubHandler(HTTPPlatformHandler):
    """Handler for GitHub and GitHub Enterprise pull requests."""

    platform_name = "github"

    def __init__(
        self,
        settings: SettingsProtocol,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_config: Optional[RetryConfig] = None
    ):
        super().__init__(settings, transport=transport, retry_config=retry_config)

        owner, _, name = self.repository.partition("/")
        if not owner or not name:
            raise ConfigurationError(
                "GitHub repository must be in the form owner/name",
                config_key="repository",
                config_value=self.repository
            )
        self.owner = owner
        self.name = name

        try:
            self.number = int(self.pull_request)
        except ValueError as e:
            raise ConfigurationError(
                "GitHub pull request must be a number",
                config_key="pull_request",
                config_value=self.pull_request
            ) from e

        self.graphql_url = graphql_url(self.api_url)

    def default_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def add_markdown_tag(self, body: str, tag: str) -> str:
        return f"<!-- {tag} -->\n{body}"

    async def graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run a GraphQL query.

        Raises:
            PlatformAPIError: If the request fails or GraphQL reports errors
        """
        result = await self.request("POST", self.graphql_url, json={"query": query, "variables": variables})

        errors = (result or {}).get("errors")
        if errors:
            messages = "; ".join(str(error.get("message", error)) for error in errors)
            raise PlatformAPIError(
                f"GitHub GraphQL error: {messages}",
                endpoint=self.graphql_url,
                platform=self.platform_name,
                retryable=False
            )

        return (result or {}).get("data") or {}

    async def find_matching_comments(self, tag: str) -> List[GitHubComment]:
        matching: List[GitHubComment] = []
        after: Optional[str] = None

        while True:
            data = await self.graphql(
                FIND_COMMENTS_QUERY,
                {"owner": self.owner, "repo": self.name, "number": self.number, "after": after}
            )

            pull_request = (data.get("repository") or {}).get("pullRequest")
            if pull_request is None:
                raise PlatformAPIError(
                    f"Pull request {self.repository}#{self.number} not found",
                    endpoint=self.graphql_url,
                    platform=self.platform_name,
                    retryable=False
                )

            connection = self.parse(GitHubCommentConnection, pull_request.get("comments"), self.graphql_url)
            for node in connection.nodes:
                if node is not None and self.has_markdown_tag(node.body, tag):
                    matching.append(GitHubComment(
                        id=str(node.database_id),
                        body=node.body,
                        ref=node.url,
                        created_at=node.created_at,
                        hidden=node.is_minimized,
                        node_id=node.id
                    ))

            if not connection.page_info.has_next_page:
                break
            after = connection.page_info.end_cursor

        return matching

    async def create_comment(self, body: str) -> GitHubComment:
        url = f"{self.api_url}/repos/{self.owner}/{self.name}/issues/{self.number}/comments"
        result = await self.request("POST", url, json={"body": body}, retry=False)
        created = self.parse(GitHubIssueComment, result, url)

        return GitHubComment(
            id=str(created.id),
            body=created.body,
            ref=created.html_url,
            created_at=created.created_at,
            node_id=created.node_id
        )

    async def update_comment(self, comment: GitHubComment, body: str) -> None:
        url = f"{self.api_url}/repos/{self.owner}/{self.name}/issues/comments/{comment.id}"
        await self.request("PATCH", url, json={"body": body})

    async def delete_comment(self, comment: GitHubComment) -> None:
        url = f"{self.api_url}/repos/{self.owner}/{self.name}/issues/comments/{comment.id}"
        await self.request("DELETE", url)

    async def hide_comment(self, comment: GitHubComment) -> None:
        await self.graphql(MINIMIZE_COMMENT_MUTATION, {"id": comment.node_id})
