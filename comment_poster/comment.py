"""
Comment model and platform handler contract.

A Comment is a snapshot of a comment previously posted on a pull or
merge request. A PlatformHandler wraps one code hosting platform's API
and exposes the handful of operations the comment publisher needs to
find, create, update, delete and hide comments.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Protocol, Tuple, runtime_checkable

from .utils.exceptions import NotSupportedError


@runtime_checkable
class Comment(Protocol):
    """A comment on any platform."""

    body: str
    ref: str
    hidden: bool

    def precedes(self, other: "Comment") -> bool:
        """Return True if this comment sorts before the other one."""
        ...


@dataclass(frozen=True)
class PostedComment:
    """
    Immutable snapshot of a posted comment.

    Attributes:
        id: Platform identifier used when addressing the comment in API calls
        body: Raw comment text, including the embedded tag
        ref: Link to the comment, used for logging
        created_at: When the comment was created (timezone aware)
        hidden: Whether the comment is hidden/minimized/closed
    """

    id: str
    body: str
    ref: str
    created_at: datetime
    hidden: bool = False

    def sort_key(self):
        # Timestamps can share a second; platform ids grow with every new comment
        return (self.created_at, _numeric_id(self.id), self.ref)

    def precedes(self, other: "PostedComment") -> bool:
        return self.sort_key() < other.sort_key()


def _numeric_id(comment_id: str) -> Tuple[int, ...]:
    """Numeric parts of an id, so that "10" orders after "9" and "7/12" after "7/3"."""
    return tuple(int(part) for part in re.findall(r"\d+", comment_id))


class PlatformHandler(ABC):
    """
    Platform specific comment operations.

    Implementations call the platform API; they may retry transient
    failures but must raise on anything they cannot complete.
    """

    platform_name = "platform"

    @abstractmethod
    async def find_matching_comments(self, tag: str) -> List[Comment]:
        """
        Find all comments carrying the given tag.

        Order of the returned list is unspecified.
        """

    @abstractmethod
    async def create_comment(self, body: str) -> Comment:
        """Create a new comment and return it."""

    @abstractmethod
    async def update_comment(self, comment: Comment, body: str) -> None:
        """Replace the body of an existing comment."""

    @abstractmethod
    async def delete_comment(self, comment: Comment) -> None:
        """Delete a comment."""

    async def hide_comment(self, comment: Comment) -> None:
        """
        Hide (minimize) a comment.

        Raises:
            NotSupportedError: If the platform cannot hide comments
        """
        raise NotSupportedError("Hiding comments", platform=self.platform_name)

    @abstractmethod
    def add_markdown_tag(self, body: str, tag: str) -> str:
        """Embed the tag in the body so it is hidden when rendered."""

    def has_markdown_tag(self, body: str, tag: str) -> bool:
        """Return True if the body carries the marker add_markdown_tag embeds."""
        marker = self.add_markdown_tag("", tag).strip()
        return marker in body
