"""
End-to-end tests for the application entry point and client manager
"""
import asyncio
import io
import json
import logging
from unittest.mock import Mock, patch

import httpx
import pytest

from comment_poster.app import CommentPosterApp, main
from comment_poster.azure_devops_client import AzureDevOpsHandler
from comment_poster.bitbucket_client import BitbucketHandler
from comment_poster.client_manager import (
    PLATFORM_HANDLERS,
    create_comment_publisher,
    create_platform_handler,
)
from comment_poster.github_client import GitHubHandler
from comment_poster.gitlab_client import GitLabHandler
from comment_poster.utils.exceptions import ConfigurationError
from comment_poster.utils.logger import get_log_context
from fixtures import make_settings


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep the root logger untouched by the CLI."""
    with patch("comment_poster.cli_handler.setup_logging") as mock_setup:
        yield mock_setup


@pytest.fixture
def report(tmp_path):
    path = tmp_path / "report.md"
    path.write_text("Cost: $10", encoding="utf-8")
    return str(path)


def github_argv(report, *extra):
    return [
        "github",
        "--path", report,
        "--repo", "org/repo",
        "--pull-request", "42",
        "--token", "test-token",
        *extra,
    ]


def empty_comments_page():
    return {
        "data": {
            "repository": {
                "pullRequest": {
                    "comments": {"nodes": [], "pageInfo": {"endCursor": None, "hasNextPage": False}}
                }
            }
        }
    }


def created_comment(body):
    return {
        "id": 1,
        "node_id": "IC_1",
        "body": body,
        "html_url": "https://github.com/org/repo/pull/42#issuecomment-1",
        "created_at": "2024-01-01T12:00:00Z",
    }


class TestClientManager:
    """Test handler selection"""

    @pytest.mark.parametrize("platform,handler_class,extra", [
        ("github", GitHubHandler, {}),
        ("gitlab", GitLabHandler, {}),
        ("bitbucket", BitbucketHandler, {}),
        ("azure-devops", AzureDevOpsHandler, {"api_url": "https://dev.azure.com/org/project"}),
    ])
    def test_creates_handler_for_platform(self, platform, handler_class, extra):
        handler = create_platform_handler(make_settings(platform=platform, **extra))

        assert type(handler) is handler_class
        assert PLATFORM_HANDLERS[platform] is handler_class

    def test_unknown_platform(self):
        settings = Mock(platform="gitea")

        with pytest.raises(ConfigurationError):
            create_platform_handler(settings)

    def test_requires_credentials(self):
        with pytest.raises(ConfigurationError):
            create_platform_handler(make_settings(token=""))

    def test_publisher_uses_settings(self):
        settings = make_settings(tag="my-tag", troubleshooting_url="https://example.com/help")
        handler = create_platform_handler(settings)

        publisher = create_comment_publisher(settings, handler)

        assert publisher.platform_handler is handler
        assert publisher.tag == "my-tag"
        assert publisher.troubleshooting_url == "https://example.com/help"


class TestCommentPosterApp:
    """Test full runs against a mocked GitHub API"""

    @pytest.mark.asyncio
    async def test_posts_new_comment(self, report):
        requests = []
        seen_context = []

        def responder(request):
            requests.append(request)
            seen_context.append(get_log_context())
            if request.url.path == "/graphql":
                return httpx.Response(200, json=empty_comments_page())
            return httpx.Response(201, json=created_comment(json.loads(request.content)["body"]))

        stdout = io.StringIO()
        app = CommentPosterApp(transport=httpx.MockTransport(responder), stdout=stdout)

        exit_code = await app.run(github_argv(report, "--tag", "ic"))

        assert exit_code == 0
        assert stdout.getvalue() == "Comment posted to github\n"
        assert [request.method for request in requests] == ["POST", "POST"]
        assert json.loads(requests[1].content) == {"body": "<!-- ic -->\nCost: $10"}
        assert seen_context[0] == {"platform": "github", "repository": "org/repo", "pull_request": "42"}
        assert get_log_context() == {}

    @pytest.mark.asyncio
    async def test_skip_no_diff_without_comments(self, report):
        requests = []

        def responder(request):
            requests.append(request)
            return httpx.Response(200, json=empty_comments_page())

        stdout = io.StringIO()
        app = CommentPosterApp(transport=httpx.MockTransport(responder), stdout=stdout)

        exit_code = await app.run(github_argv(report, "--skip-no-diff"))

        assert exit_code == 0
        assert stdout.getvalue() == "Comment not posted (no changes to report)\n"
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_dry_run_does_not_contact_platform(self, report):
        transport = Mock()
        stdout = io.StringIO()
        app = CommentPosterApp(transport=transport, stdout=stdout)

        exit_code = await app.run(["gitlab", "--path", report, "--dry-run"])

        assert exit_code == 0
        assert stdout.getvalue() == "Cost: $10\n"
        assert transport.mock_calls == []

    @pytest.mark.asyncio
    async def test_platform_error_exits_with_1(self, report):
        app = CommentPosterApp(
            transport=httpx.MockTransport(lambda request: httpx.Response(401, json={"message": "Bad credentials"})),
            stdout=io.StringIO()
        )

        assert await app.run(github_argv(report)) == 1

    @pytest.mark.asyncio
    async def test_missing_token_exits_with_1(self, report):
        transport = Mock()
        app = CommentPosterApp(transport=transport, stdout=io.StringIO())

        assert await app.run(["github", "--path", report, "--repo", "org/repo", "--pull-request", "1"]) == 1
        assert transport.mock_calls == []

    @pytest.mark.asyncio
    async def test_timeout_exits_with_1(self, report):
        async def slow(request):
            await asyncio.sleep(10)
            return httpx.Response(200, json=empty_comments_page())

        stdout = io.StringIO()
        app = CommentPosterApp(transport=httpx.MockTransport(slow), stdout=stdout)

        assert await app.run(github_argv(report, "--timeout", "0.05")) == 1
        assert stdout.getvalue() == ""

    @pytest.mark.asyncio
    async def test_unknown_behavior_from_environment(self, report, monkeypatch):
        monkeypatch.setenv("COMMENT_BEHAVIOR", "replace")
        app = CommentPosterApp(transport=Mock(), stdout=io.StringIO())

        assert await app.run(github_argv(report)) == 1


    @pytest.mark.asyncio
    async def test_platform_error_is_logged_with_details(self, report, caplog):
        app = CommentPosterApp(
            transport=httpx.MockTransport(lambda request: httpx.Response(401, json={"message": "Bad credentials"})),
            stdout=io.StringIO()
        )

        with caplog.at_level(logging.ERROR, logger="cli"):
            assert await app.run(github_argv(report)) == 1

        record = next(record for record in caplog.records if record.name == "cli")
        assert record.error["error_type"] == "PlatformError"
        assert record.error["error_code"] == "PLATFORM_ERROR"
        assert "Bad credentials" in record.error["message"]

    @pytest.mark.asyncio
    async def test_body_that_is_not_utf8_is_a_configuration_error(self, tmp_path, caplog):
        path = tmp_path / "report.md"
        path.write_bytes(b"\xff\xfe cost")
        app = CommentPosterApp(transport=Mock(), stdout=io.StringIO())

        with caplog.at_level(logging.ERROR, logger="cli"):
            assert await app.run(github_argv(str(path))) == 1

        record = next(record for record in caplog.records if record.name == "cli")
        assert record.error["error_code"] == "CONFIG_ERROR"
        assert record.error["details"]["config_key"] == "path"
        assert record.exc_info is None


class TestMain:
    """Test the synchronous entry point"""

    def test_returns_exit_code(self, report, capsys):
        assert main(["github", "--path", report, "--dry-run"]) == 0
        assert "Cost: $10" in capsys.readouterr().out

    def test_keyboard_interrupt(self):
        with patch("comment_poster.app.asyncio.run", side_effect=KeyboardInterrupt):
            assert main(["github", "--path", "report.md"]) == 130
