"""
Custom exception classes for the PR comment poster.

Provides specific exception types for different error scenarios
with appropriate error codes and messages.
"""

from typing import Optional, Dict, Any


DEFAULT_TROUBLESHOOTING_URL = "https://infracost.io/docs/troubleshooting/#5-posting-comments"

PLATFORM_ERROR_EXPLANATION = (
    "The pull request comment was generated successfully but could not be posted:"
)


class CommentPosterError(Exception):
    """
    Base exception for the PR comment poster.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            details: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary representation."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


class ConfigurationError(CommentPosterError):
    """
    Raised when there's a configuration error.

    This includes missing environment variables,
    invalid configuration values, etc.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[str] = None
    ):
        """Initialize configuration error."""
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_value:
            details["config_value"] = config_value

        super().__init__(
            message=message,
            error_code="CONFIG_ERROR",
            details=details
        )


class BehaviorError(CommentPosterError):
    """Raised when an unknown comment behavior is requested."""

    def __init__(self, behavior: Any):
        super().__init__(
            message=f"Unable to perform unknown behavior: {behavior}",
            error_code="BEHAVIOR_ERROR",
            details={"behavior": behavior}
        )
        self.behavior = behavior


class PlatformAPIError(CommentPosterError):
    """
    Raised when a code hosting platform API call fails.

    This includes network errors, authentication errors, permission
    issues, resource not found, unexpected responses, etc.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[Any] = None,
        endpoint: Optional[str] = None,
        platform: Optional[str] = None,
        error_code: str = "PLATFORM_API_ERROR",
        retryable: Optional[bool] = None
    ):
        """Initialize platform API error."""
        details = {}
        if status_code:
            details["status_code"] = status_code
        if response_body:
            details["response_body"] = response_body
        if endpoint:
            details["endpoint"] = endpoint
        if platform:
            details["platform"] = platform

        super().__init__(
            message=message,
            error_code=error_code,
            details=details
        )
        self.status_code = status_code
        self.endpoint = endpoint
        self.platform = platform
        self._retryable = retryable

    @property
    def retryable(self) -> bool:
        """Network failures, rate limiting and server errors are worth retrying."""
        if self._retryable is not None:
            return self._retryable
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class NotSupportedError(PlatformAPIError):
    """
    Raised when a platform does not support the requested operation.

    Hiding (minimizing) comments is only available on some platforms;
    handlers must raise this instead of silently doing nothing.
    """

    def __init__(self, operation: str, platform: Optional[str] = None):
        """Initialize not supported error."""
        where = f" on {platform}" if platform else ""
        super().__init__(
            message=f"{operation} is not supported{where}",
            platform=platform,
            error_code="NOT_SUPPORTED_ERROR"
        )
        self.operation = operation
        self.details["operation"] = operation

    @property
    def retryable(self) -> bool:
        return False


class PlatformError(CommentPosterError):
    """
    Raised by the comment publisher when any platform call fails.

    The message is meant to be shown to the user verbatim: an explanation
    that the comment could not be posted, the underlying error and a link
    to the troubleshooting docs.
    """

    def __init__(
        self,
        cause: Exception,
        troubleshooting_url: str = DEFAULT_TROUBLESHOOTING_URL
    ):
        """Initialize platform error wrapping the underlying failure."""
        message = (
            f"{PLATFORM_ERROR_EXPLANATION}\n"
            f"{cause}\n\n"
            f"See {troubleshooting_url} for help."
        )
        super().__init__(
            message=message,
            error_code="PLATFORM_ERROR",
            details={
                "cause_type": type(cause).__name__,
                "cause_message": str(cause)
            }
        )
        self.cause = cause


class RetryExhaustedError(CommentPosterError):
    """
    Raised when all retry attempts are exhausted.

    This indicates that an operation failed repeatedly
    despite retry attempts.
    """

    def __init__(
        self,
        message: str,
        attempts: Optional[int] = None,
        last_error: Optional[Exception] = None
    ):
        """Initialize retry exhausted error."""
        details = {}
        if attempts:
            details["attempts"] = attempts
        if last_error:
            details["last_error_type"] = type(last_error).__name__
            details["last_error_message"] = str(last_error)

        super().__init__(
            message=message,
            error_code="RETRY_EXHAUSTED_ERROR",
            details=details
        )
        self.last_error = last_error
