"""
PR comment poster.

Posts, updates, hides or deletes tagged report comments on pull and
merge requests across GitHub, GitLab, Bitbucket and Azure DevOps.
"""

from .comment import Comment, PostedComment, PlatformHandler
from .comment_publisher import CommentBehavior, CommentPublisher
from .config.settings import DEFAULT_TAG

__version__ = "0.1.0"

__all__ = [
    "Comment",
    "PostedComment",
    "PlatformHandler",
    "CommentBehavior",
    "CommentPublisher",
    "DEFAULT_TAG",
]
