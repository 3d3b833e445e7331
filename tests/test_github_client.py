"""
Tests for the GitHub platform handler using a mocked HTTP transport
"""
import json

import httpx
import pytest

from comment_poster.comment_publisher import CommentPublisher
from comment_poster.github_client import GitHubComment, GitHubHandler, graphql_url
from comment_poster.utils.exceptions import (
    ConfigurationError,
    PlatformAPIError,
    PlatformError,
    RetryExhaustedError,
)
from fixtures import make_settings


def graphql_comment(number, body, minimized=False, created="2024-01-01T12:00:00Z"):
    return {
        "id": f"IC_node{number}",
        "databaseId": number,
        "url": f"https://github.com/org/repo/pull/42#issuecomment-{number}",
        "body": body,
        "createdAt": created,
        "isMinimized": minimized,
    }


def comments_page(nodes, end_cursor=None, has_next_page=False):
    return {
        "data": {
            "repository": {
                "pullRequest": {
                    "comments": {
                        "nodes": nodes,
                        "pageInfo": {"endCursor": end_cursor, "hasNextPage": has_next_page},
                    }
                }
            }
        }
    }


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler):
        self.requests = []

        def record(request):
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


def github_handler(responder, **settings):
    transport = RecordingTransport(responder)
    return GitHubHandler(make_settings(**settings), transport=transport), transport


class TestGitHubConfiguration:
    """Test handler construction"""

    def test_graphql_url_for_github_com(self):
        assert graphql_url("https://api.github.com") == "https://api.github.com/graphql"

    def test_graphql_url_for_enterprise(self):
        assert graphql_url("https://ghe.example.com/api/v3/") == "https://ghe.example.com/api/graphql"

    @pytest.mark.parametrize("repository", ["repo", "/repo", "org/"])
    def test_invalid_repository(self, repository):
        with pytest.raises(ConfigurationError):
            GitHubHandler(make_settings(repository=repository))

    def test_invalid_pull_request(self):
        with pytest.raises(ConfigurationError):
            GitHubHandler(make_settings(pull_request="abc"))

    def test_markdown_tag(self):
        handler = GitHubHandler(make_settings())

        tagged = handler.add_markdown_tag("Cost: $10", "infracost-comment")

        assert tagged == "<!-- infracost-comment -->\nCost: $10"
        assert handler.has_markdown_tag(tagged, "infracost-comment")
        assert not handler.has_markdown_tag("Cost: $10", "infracost-comment")


class TestGitHubFindMatchingComments:
    """Test comment listing through GraphQL"""

    @pytest.mark.asyncio
    async def test_filters_by_tag_and_follows_pages(self):
        pages = [
            comments_page(
                [
                    graphql_comment(1, "<!-- ic -->\nold", minimized=True),
                    graphql_comment(2, "unrelated"),
                ],
                end_cursor="cursor-1",
                has_next_page=True,
            ),
            comments_page([graphql_comment(3, "<!-- ic -->\nnew", created="2024-01-02T12:00:00Z")]),
        ]

        def responder(request):
            return httpx.Response(200, json=pages.pop(0))

        handler, transport = github_handler(responder)

        comments = await handler.find_matching_comments("ic")

        assert [comment.id for comment in comments] == ["1", "3"]
        assert comments[0].hidden is True
        assert comments[0].node_id == "IC_node1"
        assert comments[1].ref == "https://github.com/org/repo/pull/42#issuecomment-3"
        assert comments[0].precedes(comments[1])

        variables = [json.loads(request.content)["variables"] for request in transport.requests]
        assert variables[0] == {"owner": "org", "repo": "repo", "number": 42, "after": None}
        assert variables[1]["after"] == "cursor-1"
        assert all(request.url == "https://api.github.com/graphql" for request in transport.requests)

    @pytest.mark.asyncio
    async def test_sends_auth_and_accept_headers(self):
        handler, transport = github_handler(lambda request: httpx.Response(200, json=comments_page([])))

        await handler.find_matching_comments("ic")

        request = transport.requests[0]
        assert request.headers["Authorization"] == "Bearer test-token"
        assert request.headers["Accept"] == "application/vnd.github+json"

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self):
        handler, transport = github_handler(
            lambda request: httpx.Response(200, json={"errors": [{"message": "Bad credentials"}]})
        )

        with pytest.raises(PlatformAPIError) as exc_info:
            await handler.find_matching_comments("ic")

        assert "Bad credentials" in str(exc_info.value)
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_missing_pull_request_raises(self):
        handler, _ = github_handler(
            lambda request: httpx.Response(200, json={"data": {"repository": {"pullRequest": None}}})
        )

        with pytest.raises(PlatformAPIError):
            await handler.find_matching_comments("ic")


class TestGitHubCommentOperations:
    """Test REST create, update, delete and GraphQL hide"""

    @pytest.mark.asyncio
    async def test_create_comment(self):
        def responder(request):
            assert request.method == "POST"
            assert request.url.path == "/repos/org/repo/issues/42/comments"
            assert json.loads(request.content) == {"body": "<!-- ic -->\nbody"}
            return httpx.Response(201, json={
                "id": 100,
                "node_id": "IC_node100",
                "body": "<!-- ic -->\nbody",
                "html_url": "https://github.com/org/repo/pull/42#issuecomment-100",
                "created_at": "2024-01-03T08:00:00Z",
            })

        handler, _ = github_handler(responder)

        comment = await handler.create_comment("<!-- ic -->\nbody")

        assert isinstance(comment, GitHubComment)
        assert comment.id == "100"
        assert comment.node_id == "IC_node100"
        assert comment.ref.endswith("#issuecomment-100")

    @pytest.mark.asyncio
    async def test_update_comment(self):
        handler, transport = github_handler(lambda request: httpx.Response(200, json={"id": 5}))
        comment = GitHubComment(id="5", body="", ref="r", created_at=None, node_id="IC_5")

        await handler.update_comment(comment, "new body")

        request = transport.requests[0]
        assert request.method == "PATCH"
        assert request.url.path == "/repos/org/repo/issues/comments/5"
        assert json.loads(request.content) == {"body": "new body"}

    @pytest.mark.asyncio
    async def test_delete_comment(self):
        handler, transport = github_handler(lambda request: httpx.Response(204))
        comment = GitHubComment(id="5", body="", ref="r", created_at=None, node_id="IC_5")

        await handler.delete_comment(comment)

        request = transport.requests[0]
        assert request.method == "DELETE"
        assert request.url.path == "/repos/org/repo/issues/comments/5"

    @pytest.mark.asyncio
    async def test_hide_comment_minimizes_as_outdated(self):
        handler, transport = github_handler(
            lambda request: httpx.Response(200, json={"data": {"minimizeComment": {"clientMutationId": None}}})
        )
        comment = GitHubComment(id="5", body="", ref="r", created_at=None, node_id="IC_5")

        await handler.hide_comment(comment)

        payload = json.loads(transport.requests[0].content)
        assert "minimizeComment" in payload["query"]
        assert "OUTDATED" in payload["query"]
        assert payload["variables"] == {"id": "IC_5"}


class TestGitHubErrors:
    """Test HTTP error mapping and retries"""

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        handler, transport = github_handler(
            lambda request: httpx.Response(403, json={"message": "Resource not accessible by integration"}),
            max_retries=3
        )

        with pytest.raises(PlatformAPIError) as exc_info:
            await handler.create_comment("body")

        assert exc_info.value.status_code == 403
        assert "Resource not accessible by integration" in str(exc_info.value)
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self):
        handler, transport = github_handler(
            lambda request: httpx.Response(502, text="Bad Gateway"),
            max_retries=2
        )

        with pytest.raises(RetryExhaustedError) as exc_info:
            await handler.delete_comment(GitHubComment(id="1", body="", ref="r", created_at=None))

        assert len(transport.requests) == 3
        assert exc_info.value.last_error.status_code == 502

    @pytest.mark.asyncio
    async def test_recovers_after_transient_error(self):
        responses = [httpx.Response(503), httpx.Response(204)]
        handler, transport = github_handler(lambda request: responses.pop(0), max_retries=1)

        await handler.delete_comment(GitHubComment(id="1", body="", ref="r", created_at=None))

        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_create_is_sent_once_when_it_times_out(self):
        def responder(request):
            raise httpx.ReadTimeout("timed out", request=request)

        handler, transport = github_handler(responder, max_retries=2)

        with pytest.raises(PlatformAPIError) as exc_info:
            await handler.create_comment("<!-- ic -->\nCost: $10")

        assert "ReadTimeout" in str(exc_info.value)
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_create_is_sent_once_on_server_error(self):
        handler, transport = github_handler(lambda request: httpx.Response(502), max_retries=2)

        with pytest.raises(PlatformAPIError) as exc_info:
            await handler.create_comment("body")

        assert exc_info.value.status_code == 502
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_publisher_posts_a_single_comment_when_create_times_out(self):
        def responder(request):
            if request.url.path == "/graphql":
                return httpx.Response(200, json=comments_page([]))
            raise httpx.ReadTimeout("timed out", request=request)

        handler, transport = github_handler(responder, max_retries=2)
        publisher = CommentPublisher(handler, tag="ic")

        with pytest.raises(PlatformError):
            await publisher.comment_with_behavior(False, "update", "Cost: $10")

        creates = [request for request in transport.requests if request.url.path.endswith("/comments")]
        assert len(creates) == 1
        assert json.loads(creates[0].content) == {"body": "<!-- ic -->\nCost: $10"}

    @pytest.mark.asyncio
    async def test_network_error(self):
        def responder(request):
            raise httpx.ConnectError("connection refused", request=request)

        handler, _ = github_handler(responder)

        with pytest.raises(PlatformAPIError) as exc_info:
            await handler.find_matching_comments("ic")

        assert exc_info.value.status_code is None
        assert "ConnectError" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_unexpected_payload(self):
        handler, _ = github_handler(lambda request: httpx.Response(201, json={"unexpected": True}))

        with pytest.raises(PlatformAPIError) as exc_info:
            await handler.create_comment("body")

        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_shared_client_inside_context(self):
        handler, transport = github_handler(lambda request: httpx.Response(204))

        async with handler:
            shared = handler._client
            await handler.delete_comment(GitHubComment(id="1", body="", ref="r", created_at=None))
            assert handler._client is shared

        assert handler._client is None
        assert len(transport.requests) == 1
