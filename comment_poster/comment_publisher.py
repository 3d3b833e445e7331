"""
Comment Publisher for the PR comment poster.

This module decides whether to create, update, hide or delete report
comments on a pull/merge request and sequences the platform calls.
It works against any PlatformHandler; every run re-reads the comments
on the platform, using the tag embedded in each comment body to find
the ones posted by earlier runs.
"""

from enum import Enum
from typing import List, Optional, Sequence, Union

from .comment import Comment, PlatformHandler
from .config.settings import DEFAULT_TAG
from .utils.exceptions import BehaviorError, PlatformError, DEFAULT_TROUBLESHOOTING_URL
from .utils.logger import get_logger


class CommentBehavior(str, Enum):
    """How existing comments are handled before posting."""
    UPDATE = "update"
    NEW = "new"
    HIDE_AND_NEW = "hide-and-new"
    DELETE_AND_NEW = "delete-and-new"


def parse_behavior(behavior: Union[str, CommentBehavior]) -> CommentBehavior:
    """
    Convert a behavior literal to a CommentBehavior.

    Raises:
        BehaviorError: If the behavior is unknown
    """
    try:
        return CommentBehavior(behavior)
    except ValueError:
        raise BehaviorError(behavior) from None


class CommentPublisher:
    """
    Finds, creates, updates, hides and deletes tagged comments.

    Platform calls are awaited one at a time in a fixed order. Any
    failure stops the run immediately and is raised as a PlatformError;
    nothing already done on the platform is rolled back.
    """

    def __init__(
        self,
        platform_handler: PlatformHandler,
        tag: Optional[str] = None,
        troubleshooting_url: str = DEFAULT_TROUBLESHOOTING_URL
    ):
        """
        Initialize the comment publisher.

        Args:
            platform_handler: Handler for the target platform (not owned)
            tag: Marker used to find this tool's comments, DEFAULT_TAG if empty
            troubleshooting_url: Docs link included in posting errors
        """
        self.logger = get_logger("comment_publisher")
        self.platform_handler = platform_handler
        self.tag = tag or DEFAULT_TAG
        self.troubleshooting_url = troubleshooting_url

    async def comment_with_behavior(
        self,
        skip_no_diff: bool,
        behavior: Union[str, CommentBehavior],
        body: str
    ) -> bool:
        """
        Post the body using the given behavior.

        Args:
            skip_no_diff: Don't create an initial comment when there is nothing to report
            behavior: One of update, new, hide-and-new, delete-and-new
            body: Comment body without the tag

        Returns:
            True if a comment was created or updated

        Raises:
            BehaviorError: If the behavior is unknown (no platform calls are made)
            PlatformError: If a platform call fails
        """
        behavior = parse_behavior(behavior)

        if behavior is CommentBehavior.UPDATE:
            return await self.update_comment(skip_no_diff, body)
        elif behavior is CommentBehavior.NEW:
            await self.new_comment(body)
            return True
        elif behavior is CommentBehavior.HIDE_AND_NEW:
            return await self.hide_and_new_comment(skip_no_diff, body)
        else:
            return await self.delete_and_new_comment(skip_no_diff, body)

    async def _matching_comments(self) -> List[Comment]:
        self.logger.info(f"Finding matching comments for tag {self.tag}")

        try:
            matching_comments = list(await self.platform_handler.find_matching_comments(self.tag))
        except Exception as e:
            raise self._platform_error(e) from e

        if len(matching_comments) == 1:
            self.logger.info("Found 1 matching comment")
        else:
            self.logger.info(f"Found {len(matching_comments)} matching comments")

        return matching_comments

    async def latest_matching_comment(self) -> Optional[Comment]:
        """
        Return the most recent matching comment, or None if there are none.

        The latest comment is the one no other comment follows
        according to Comment.precedes.
        """
        matching_comments = await self._matching_comments()

        latest: Optional[Comment] = None
        for comment in matching_comments:
            if latest is None or latest.precedes(comment):
                latest = comment

        return latest

    async def update_comment(self, skip_no_diff: bool, body: str) -> bool:
        """
        Update the latest matching comment, or create one if none exists.

        Returns:
            True if a comment was updated or created
        """
        body_with_tag = self.platform_handler.add_markdown_tag(body, self.tag)

        latest_comment = await self.latest_matching_comment()

        if latest_comment is not None:
            if latest_comment.body == body_with_tag:
                self.logger.info(
                    f"Comment is unchanged, not updating {latest_comment.ref}",
                    extra={"ref": latest_comment.ref}
                )
                return False

            self.logger.info(f"Updating comment {latest_comment.ref}", extra={"ref": latest_comment.ref})

            try:
                await self.platform_handler.update_comment(latest_comment, body_with_tag)
            except Exception as e:
                raise self._platform_error(e) from e

            return True

        if skip_no_diff:
            self.logger.info("Not creating initial comment since there is no resource or cost difference")
            return False

        await self._create(body_with_tag)
        return True

    async def new_comment(self, body: str) -> None:
        """Create a new comment regardless of any existing ones."""
        body_with_tag = self.platform_handler.add_markdown_tag(body, self.tag)
        await self._create(body_with_tag)

    async def _create(self, body_with_tag: str) -> Comment:
        self.logger.info("Creating new comment")

        try:
            comment = await self.platform_handler.create_comment(body_with_tag)
        except Exception as e:
            raise self._platform_error(e) from e

        self.logger.info(f"Created new comment {comment.ref}", extra={"ref": comment.ref})
        return comment

    async def hide_and_new_comment(self, skip_no_diff: bool, body: str) -> bool:
        """
        Hide all matching comments, then create a new one.

        If hiding any comment fails, no further comments are hidden and
        no new comment is created.

        Returns:
            True if a new comment was created
        """
        matching_comments = await self._matching_comments()

        if not matching_comments and skip_no_diff:
            self.logger.info("Not creating initial comment since there is no resource or cost difference")
            return False

        await self._hide_comments(matching_comments)
        await self.new_comment(body)
        return True

    async def _hide_comments(self, comments: Sequence[Comment]) -> None:
        visible_comments = [comment for comment in comments if not comment.hidden]

        hidden_count = len(comments) - len(visible_comments)
        if hidden_count == 1:
            self.logger.info("1 comment is already hidden")
        elif hidden_count > 0:
            self.logger.info(f"{hidden_count} comments are already hidden")

        if len(visible_comments) == 1:
            self.logger.info("Hiding 1 comment")
        else:
            self.logger.info(f"Hiding {len(visible_comments)} comments")

        for comment in visible_comments:
            self.logger.info(f"Hiding comment {comment.ref}", extra={"ref": comment.ref})
            try:
                await self.platform_handler.hide_comment(comment)
            except Exception as e:
                raise self._platform_error(e) from e

    async def delete_and_new_comment(self, skip_no_diff: bool, body: str) -> bool:
        """
        Delete all matching comments, then create a new one.

        If deleting any comment fails, no further comments are deleted
        and no new comment is created.

        Returns:
            True if a new comment was created
        """
        matching_comments = await self._matching_comments()

        if not matching_comments and skip_no_diff:
            self.logger.info("Not creating initial comment since there is no resource or cost difference")
            return False

        await self._delete_comments(matching_comments)
        await self.new_comment(body)
        return True

    async def _delete_comments(self, comments: Sequence[Comment]) -> None:
        if len(comments) == 1:
            self.logger.info("Deleting 1 comment")
        else:
            self.logger.info(f"Deleting {len(comments)} comments")

        for comment in comments:
            self.logger.info(f"Deleting comment {comment.ref}", extra={"ref": comment.ref})
            try:
                await self.platform_handler.delete_comment(comment)
            except Exception as e:
                raise self._platform_error(e) from e

    def _platform_error(self, error: Exception) -> PlatformError:
        """Wrap a platform failure with the user-facing explanation."""
        self.logger.error(
            f"Platform call failed: {error}",
            extra={"error_type": type(error).__name__}
        )
        return PlatformError(error, troubleshooting_url=self.troubleshooting_url)
