"""
Main entry point for the PR comment poster.

Usage:
    comment-poster {github,gitlab,bitbucket,azure-devops} --path FILE [options]
    python -m comment_poster {github,gitlab,bitbucket,azure-devops} --path FILE [options]
"""

import asyncio
import sys
from typing import List, Optional, TextIO

import httpx

from .cli_handler import CLIHandler
from .client_manager import create_comment_publisher, create_platform_handler
from .config.settings import Settings
from .utils.exceptions import CommentPosterError
from .utils.logger import clear_log_context, set_log_context


class CommentPosterApp:
    """Runs one comment posting invocation end to end."""

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None
    ):
        """
        Initialize the application.

        Args:
            transport: Optional httpx transport handed to the platform handler
            stdin: Stream used when the body is read from "-"
            stdout: Stream for the summary line
        """
        self.transport = transport
        self.cli_handler = CLIHandler(stdin=stdin, stdout=stdout)

    async def post(self, settings: Settings, body: str) -> bool:
        """
        Post the body with the configured behavior.

        Returns:
            True if a comment was created or updated
        """
        async with create_platform_handler(settings, transport=self.transport) as handler:
            publisher = create_comment_publisher(settings, handler)
            return await publisher.comment_with_behavior(settings.skip_no_diff, settings.behavior, body)

    async def run(self, argv: Optional[List[str]] = None) -> int:
        """
        Execute the comment poster.

        Args:
            argv: Command-line arguments (uses sys.argv if None)

        Returns:
            Exit code (0 for success, 1 for error)
        """
        cli = self.cli_handler

        try:
            args = cli.parse_args(argv)
            settings = cli.build_settings(args)
            cli.setup_logging(settings)

            body = cli.read_body(args.path)

            if args.dry_run:
                cli.logger.info("Dry run, not posting comment")
                cli.print_dry_run(body)
                return 0

            set_log_context(
                platform=settings.platform,
                repository=settings.repository,
                pull_request=settings.pull_request
            )

            posted = await asyncio.wait_for(
                self.post(settings, body),
                timeout=settings.timeout_seconds
            )

            cli.print_summary(posted, settings.platform)
            return 0

        except asyncio.TimeoutError:
            message = f"Timed out after {settings.timeout_seconds:g}s while posting comment"
            if cli.logger:
                cli.logger.error(message)
            else:
                print(f"Error: {message}", file=sys.stderr)
            return 1
        except CommentPosterError as e:
            if cli.logger:
                cli.logger.error(e.message, extra={"error": e.to_dict()})
            else:
                print(f"Error: {e}", file=sys.stderr)
            return 1
        except Exception as e:
            if cli.logger:
                cli.logger.error(f"Unexpected error: {e}", exc_info=True)
            else:
                print(f"Unexpected error: {e}", file=sys.stderr)
            return 1
        finally:
            clear_log_context()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Synchronous entry point used by the console script.

    Returns:
        Exit code (0 for success, 1 for error, 130 when interrupted)
    """
    try:
        return asyncio.run(CommentPosterApp().run(argv))
    except KeyboardInterrupt:
        print("\nComment poster interrupted by user", file=sys.stderr)
        return 130  # Standard exit code for SIGINT


if __name__ == "__main__":
    sys.exit(main())
