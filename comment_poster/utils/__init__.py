"""
Utilities module for the PR comment poster.
"""

from .logger import setup_logging, get_logger, set_log_context, clear_log_context
from .exceptions import (
    CommentPosterError,
    ConfigurationError,
    BehaviorError,
    PlatformAPIError,
    NotSupportedError,
    PlatformError,
    RetryExhaustedError
)
from .retry import retry_with_backoff, RetryConfig

__all__ = [
    "setup_logging",
    "get_logger",
    "set_log_context",
    "clear_log_context",
    "CommentPosterError",
    "ConfigurationError",
    "BehaviorError",
    "PlatformAPIError",
    "NotSupportedError",
    "PlatformError",
    "RetryExhaustedError",
    "retry_with_backoff",
    "RetryConfig"
]
