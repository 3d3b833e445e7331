"""
Test fixtures and utilities for the comment poster tests
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from comment_poster.comment import PlatformHandler, PostedComment
from comment_poster.config.settings import Settings


BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_comment(body: str, ref: str, minutes: int = 0, hidden: bool = False) -> PostedComment:
    """Comment created the given number of minutes after BASE_TIME."""
    return PostedComment(
        id=ref,
        body=body,
        ref=ref,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        hidden=hidden
    )


def make_settings(**overrides) -> Settings:
    """Settings for a GitHub pull request with fast retries."""
    values = {
        "platform": "github",
        "token": "test-token",
        "repository": "org/repo",
        "pull_request": "42",
        "max_retries": 0,
        "retry_delay": 0.0,
    }
    values.update(overrides)
    return Settings(**values)


class FakePlatformHandler(PlatformHandler):
    """
    In-memory platform that records every call.

    calls holds one tuple per capability call, in order:
    ("find", tag), ("create", body), ("update", ref, body),
    ("delete", ref) and ("hide", ref).
    """

    platform_name = "fake"

    def __init__(self, comments: Optional[List[PostedComment]] = None, supports_hide: bool = True):
        self.comments = list(comments or [])
        self.supports_hide = supports_hide
        self.calls: List[Tuple] = []
        self.failures: Dict[Tuple[str, Optional[str]], BaseException] = {}
        self._created = 0

    def fail(self, operation: str, error: BaseException, ref: Optional[str] = None) -> None:
        """Make an operation raise, for every comment or only the one with ref."""
        self.failures[(operation, ref)] = error

    def _check(self, operation: str, ref: Optional[str] = None) -> None:
        error = self.failures.get((operation, ref)) or self.failures.get((operation, None))
        if error is not None:
            raise error

    @property
    def mutating_calls(self) -> List[Tuple]:
        return [call for call in self.calls if call[0] != "find"]

    def calls_named(self, operation: str) -> List[Tuple]:
        return [call for call in self.calls if call[0] == operation]

    def add_markdown_tag(self, body: str, tag: str) -> str:
        return f"<!--{tag}-->{body}"

    async def find_matching_comments(self, tag: str) -> List[PostedComment]:
        self.calls.append(("find", tag))
        self._check("find")
        return [comment for comment in self.comments if self.has_markdown_tag(comment.body, tag)]

    async def create_comment(self, body: str) -> PostedComment:
        self.calls.append(("create", body))
        self._check("create")
        self._created += 1
        comment = make_comment(body, f"new-{self._created}", minutes=1000 + self._created)
        self.comments.append(comment)
        return comment

    async def update_comment(self, comment: PostedComment, body: str) -> None:
        self.calls.append(("update", comment.ref, body))
        self._check("update", comment.ref)

    async def delete_comment(self, comment: PostedComment) -> None:
        self.calls.append(("delete", comment.ref))
        self._check("delete", comment.ref)

    async def hide_comment(self, comment: PostedComment) -> None:
        self.calls.append(("hide", comment.ref))
        if not self.supports_hide:
            await super().hide_comment(comment)
        self._check("hide", comment.ref)
