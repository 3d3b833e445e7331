"""
Retry mechanism with exponential backoff for the PR comment poster.

Provides a decorator and utilities for retrying platform API operations
with configurable backoff strategies. The comment publisher itself never
retries; only platform handlers wrap their requests with this.
"""

import time
import random
import functools
import asyncio
from dataclasses import dataclass
from typing import Any, Optional, List, Tuple, Type, TypeVar

from .exceptions import (
    CommentPosterError,
    NotSupportedError,
    PlatformAPIError,
    RetryExhaustedError,
)
from .logger import get_logger

T = TypeVar('T')

logger = get_logger("retry")


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay between retries in seconds
        backoff_factor: Multiplier for exponential backoff
        max_delay: Maximum delay between retries in seconds
        jitter: Whether to add random jitter to delays
        retryable_exceptions: Exception types that should trigger retries
        non_retryable_exceptions: Exception types that should NOT trigger retries
    """
    max_retries: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 60.0
    jitter: bool = True
    retryable_exceptions: Tuple[Type[Exception], ...] = (
        PlatformAPIError,
        ConnectionError,
        TimeoutError,
        OSError,
    )
    non_retryable_exceptions: Tuple[Type[Exception], ...] = (
        NotSupportedError,
        ValueError,
        TypeError,
        KeyError,
        NotImplementedError,
    )

    def should_retry(self, exception: Exception) -> bool:
        """
        Determine if an exception should trigger a retry.

        Args:
            exception: Exception to evaluate

        Returns:
            True if the exception should trigger a retry
        """
        # Check non-retryable exceptions first
        for exc_type in self.non_retryable_exceptions:
            if isinstance(exception, exc_type):
                return False

        # Client errors (4xx other than 429) will fail the same way again
        if isinstance(exception, PlatformAPIError) and not exception.retryable:
            return False

        for exc_type in self.retryable_exceptions:
            if isinstance(exception, exc_type):
                return True

        # Default to not retrying unknown exceptions
        return False

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay for a given retry attempt.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        delay = self.initial_delay * (self.backoff_factor ** attempt)
        delay = min(delay, self.max_delay)

        if self.jitter:
            # +/-25% random jitter
            jitter_factor = 0.75 + (random.random() * 0.5)
            delay *= jitter_factor

        return delay

    @classmethod
    def from_settings(cls, settings: Any) -> "RetryConfig":
        """Build the platform request retry configuration from settings."""
        return cls(
            max_retries=getattr(settings, "max_retries", 3),
            initial_delay=getattr(settings, "retry_delay", 1.0),
            backoff_factor=getattr(settings, "retry_backoff_factor", 2.0),
            max_delay=30.0,
        )


class RetryState:
    """
    State tracking for retry operations.

    Maintains information about retry attempts,
    timing, and error history.
    """

    def __init__(self, config: RetryConfig):
        """Initialize retry state."""
        self.config = config
        self.attempts: List[Tuple[int, float, Exception]] = []  # (attempt, timestamp, exception)
        self.start_time = time.time()

    def record_attempt(self, attempt: int, exception: Exception):
        """Record a failed attempt."""
        self.attempts.append((attempt, time.time(), exception))

    def should_continue(self, attempt: int, exception: Exception) -> bool:
        """Determine if retrying should continue."""
        return attempt < self.config.max_retries and self.config.should_retry(exception)

    def get_next_delay(self, attempt: int) -> float:
        """Get delay for next retry attempt."""
        return self.config.calculate_delay(attempt)


def _log_retry(func_name: str, attempt: int, config: RetryConfig, error: Exception, next_delay: float) -> None:
    logger.warning(
        f"Operation failed, retrying... (attempt {attempt}/{config.max_retries})",
        extra={
            "function": func_name,
            "attempt": attempt,
            "max_retries": config.max_retries,
            "error_type": type(error).__name__,
            "error_message": str(error),
            "next_delay": next_delay
        }
    )


def _log_recovered(func_name: str, attempt: int, state: RetryState) -> None:
    logger.info(
        f"Operation succeeded after {attempt} retries",
        extra={
            "function": func_name,
            "attempts": attempt + 1,
            "duration_seconds": time.time() - state.start_time
        }
    )


def _exhausted(func_name: str, config: RetryConfig, last_error: Exception) -> RetryExhaustedError:
    return RetryExhaustedError(
        f"Operation '{func_name}' failed after {config.max_retries} retries: {last_error}",
        attempts=config.max_retries,
        last_error=last_error
    )


def retry_with_backoff(
    config: Optional[RetryConfig] = None,
    **config_kwargs
):
    """
    Decorator for retrying functions with exponential backoff.

    Wraps coroutine functions only. Errors the config considers
    non-retryable are re-raised unchanged on the first failure; errors that
    keep failing raise RetryExhaustedError.

    Args:
        config: Retry configuration (if not provided, created from config_kwargs)
        **config_kwargs: Configuration options for RetryConfig

    Returns:
        Decorated function that retries on failures
    """
    if config is None:
        config = RetryConfig(**config_kwargs)

    def decorator(func):
        """Decorator function."""

        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"retry_with_backoff expects a coroutine function, got {func!r}")

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> T:
            """Async wrapper with retry logic."""
            state = RetryState(config)

            for attempt in range(config.max_retries + 1):
                if attempt > 0:
                    await asyncio.sleep(state.get_next_delay(attempt - 1))

                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    state.record_attempt(attempt, e)
                    if not config.should_retry(e):
                        raise
                    if not state.should_continue(attempt, e):
                        if attempt == 0:
                            raise
                        raise _exhausted(func.__name__, config, e) from e
                    _log_retry(func.__name__, attempt + 1, config, e, state.get_next_delay(attempt))
                    continue

                if attempt > 0:
                    _log_recovered(func.__name__, attempt, state)
                return result

            # Unreachable: the final attempt either returns or raises
            raise CommentPosterError(f"Operation '{func.__name__}' did not run")

        return async_wrapper

    return decorator
