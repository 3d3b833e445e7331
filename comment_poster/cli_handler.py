"""
CLI Handler for the PR comment poster.

This module handles command-line argument parsing and validation,
turns the arguments into Settings and reads the comment body.
"""

import argparse
import sys
from typing import List, Optional, TextIO

from .config.settings import BEHAVIORS, PLATFORMS, Settings
from .utils.exceptions import ConfigurationError
from .utils.logger import get_logger, setup_logging


class CLIHandler:
    """
    Handles the command-line interface of the comment poster.

    This class is responsible for:
    - Parsing and validating command-line arguments
    - Merging arguments over environment settings
    - Setting up logging configuration
    - Reading the comment body and printing the run summary
    """

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        """
        Initialize the CLI handler.

        Args:
            stdin: Stream read when the body path is "-" (defaults to sys.stdin)
            stdout: Stream for the summary and dry-run output (defaults to sys.stdout)
        """
        self.stdin = stdin
        self.stdout = stdout
        self.logger = None

    def create_parser(self) -> argparse.ArgumentParser:
        """
        Create and configure the argument parser.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="comment-poster",
            description="Post report comments on pull and merge requests",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Update the existing comment on a GitHub pull request, or create one
  comment-poster github --path report.md --repo org/repo --pull-request 42

  # Hide earlier comments and post a new one
  comment-poster github --path report.md --behavior hide-and-new

  # Post to a GitLab merge request, reading the body from stdin
  cat report.md | comment-poster gitlab --path - --behavior delete-and-new

  # Print the body without contacting the platform
  comment-poster azure-devops --path report.md --dry-run
            """
        )

        parser.add_argument(
            "platform",
            choices=PLATFORMS,
            help="Code hosting platform to post to"
        )

        parser.add_argument(
            "--path",
            required=True,
            help="File containing the comment body, or - to read stdin"
        )

        # Comment behavior
        parser.add_argument(
            "--behavior",
            choices=BEHAVIORS,
            help="How existing comments are handled (default: update)"
        )

        parser.add_argument(
            "--tag",
            help="Marker used to find comments posted by earlier runs"
        )

        parser.add_argument(
            "--skip-no-diff",
            action="store_true",
            default=None,
            help="Don't post an initial comment when there is nothing to report"
        )

        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Print the comment body without posting it"
        )

        # Target
        parser.add_argument("--repo", help="Repository (owner/name, project path or ID)")
        parser.add_argument("--pull-request", help="Pull or merge request number")
        parser.add_argument("--token", help="API token")
        parser.add_argument("--api-url", help="API base URL")

        parser.add_argument(
            "--timeout",
            type=float,
            help="Timeout for the whole run in seconds (default: 60)"
        )

        # Logging options
        parser.add_argument(
            "--log-level",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Override logging level"
        )

        parser.add_argument(
            "--log-format",
            choices=["text", "json"],
            help="Override log format"
        )

        parser.add_argument(
            "--log-file",
            type=str,
            help="Also write JSON logs to this file"
        )

        return parser

    def parse_args(self, argv: Optional[List[str]] = None) -> argparse.Namespace:
        """
        Parse and validate command-line arguments.

        Args:
            argv: List of command-line arguments (uses sys.argv if None)

        Returns:
            Parsed arguments namespace

        Raises:
            ConfigurationError: If arguments are invalid
        """
        parser = self.create_parser()
        args = parser.parse_args(argv)
        self.validate_args(args)
        return args

    def validate_args(self, args: argparse.Namespace) -> None:
        """
        Validate parsed command-line arguments.

        Raises:
            ConfigurationError: If arguments are invalid
        """
        if args.timeout is not None and args.timeout <= 0:
            raise ConfigurationError("timeout must be greater than 0", config_key="timeout")

        if not args.path.strip():
            raise ConfigurationError("path cannot be empty", config_key="path")

    def build_settings(self, args: argparse.Namespace) -> Settings:
        """
        Create settings from the environment with CLI values taking precedence.

        Raises:
            ConfigurationError: If the merged settings are invalid
        """
        return Settings.from_env(
            platform=args.platform,
            token=args.token,
            api_url=args.api_url,
            repository=args.repo,
            pull_request=args.pull_request,
            tag=args.tag,
            behavior=args.behavior,
            skip_no_diff=args.skip_no_diff,
            timeout_seconds=args.timeout,
            log_level=args.log_level,
            log_format=args.log_format,
            log_file=args.log_file
        )

    def setup_logging(self, settings: Settings) -> None:
        """Setup logging from the merged settings."""
        setup_logging(
            level=settings.log_level,
            format_type=settings.log_format,
            log_file=settings.log_file
        )
        self.logger = get_logger("cli")

    def read_body(self, path: str) -> str:
        """
        Read the comment body.

        Args:
            path: File path, or "-" for stdin

        Raises:
            ConfigurationError: If the body cannot be read or is empty
        """
        try:
            if path == "-":
                body = (self.stdin or sys.stdin).read()
            else:
                with open(path, "r", encoding="utf-8") as f:
                    body = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(
                f"Could not read comment body from {path}: {e}",
                config_key="path",
                config_value=path
            ) from e

        if not body.strip():
            raise ConfigurationError("Comment body is empty", config_key="path", config_value=path)

        return body

    def print_dry_run(self, body: str) -> None:
        """Print the body that would have been posted."""
        print(body, file=self.stdout or sys.stdout)

    def print_summary(self, posted: bool, platform: str) -> None:
        """
        Print a one-line summary to stdout for CI/CD integration.

        Args:
            posted: Whether a comment was created or updated
            platform: Platform name
        """
        if posted:
            print(f"Comment posted to {platform}", file=self.stdout or sys.stdout)
        else:
            print("Comment not posted (no changes to report)", file=self.stdout or sys.stdout)
