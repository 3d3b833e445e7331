"""
Logging infrastructure for the PR comment poster.

Provides structured logging with configurable formats and levels.

This module offers:
- JSON and text formatters with customizable output
- Context-aware logging (platform, repository, pull request)
- Secure logging with sensitive data redaction

Example:
    >>> from comment_poster.utils.logger import get_logger, setup_logging
    >>> setup_logging(level="DEBUG", format_type="json")
    >>> logger = get_logger(__name__)
    >>> logger.info("Comment posted", extra={"ref": "https://..."})
"""

import logging
import sys
import json
import re
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Union, List, Pattern
from pathlib import Path
from enum import Enum


class LogLevel(Enum):
    """Supported logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(Enum):
    """Supported log formats."""
    JSON = "json"
    TEXT = "text"


class Colors:
    """ANSI color codes for console output."""
    CYAN = '\033[36m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    RED = '\033[31m'
    MAGENTA = '\033[35m'
    RESET = '\033[0m'

    LEVEL_COLORS = {
        LogLevel.DEBUG.value: CYAN,
        LogLevel.INFO.value: GREEN,
        LogLevel.WARNING.value: YELLOW,
        LogLevel.ERROR.value: RED,
        LogLevel.CRITICAL.value: MAGENTA,
    }


# Field names whose values are always redacted
SENSITIVE_FIELDS = {
    'authorization', 'token', 'password', 'secret', 'api_key',
    'private_key', 'access_token', 'refresh_token', 'bearer',
    'credential', 'credentials', 'session_token', 'jwt',
    'client_secret', 'github_token', 'gitlab_token',
    'bitbucket_token', 'azure_devops_token', 'system_accesstoken'
}

DEFAULT_TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'

# Standard log record fields to exclude when copying extra fields
STANDARD_LOG_FIELDS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'taskName'
}

# Values injected into every record by ContextFilter
_log_context: Dict[str, Any] = {}


def set_log_context(**context: Any) -> None:
    """
    Set the context attached to every log record.

    Passing None for a key removes it.
    """
    for key, value in context.items():
        if value is None:
            _log_context.pop(key, None)
        else:
            _log_context[key] = value


def clear_log_context() -> None:
    """Remove all log context."""
    _log_context.clear()


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the current log context."""
    return dict(_log_context)


# ============================================================================
# Sensitive Data Redaction
# ============================================================================

class RedactionLevel(Enum):
    """Different levels of data redaction for security."""
    NONE = "none"
    BASIC = "basic"
    STANDARD = "standard"


class SensitiveDataRedactor:
    """
    Sensitive data redaction for log output.

    Field names listed in SENSITIVE_FIELDS always have their values
    redacted. At STANDARD level, credential-shaped substrings
    (bearer/basic auth headers, token assignments, well-known personal
    access token prefixes) are also redacted from free text.
    """

    def __init__(self, level: RedactionLevel = RedactionLevel.STANDARD):
        self.level = level
        self.redaction_placeholder = "***REDACTED***"
        self._compile_patterns()

    def _compile_patterns(self) -> None:
        """Compile regex patterns for sensitive data detection."""
        self.patterns: List[Pattern] = []

        if self.level == RedactionLevel.STANDARD:
            self.patterns.extend([
                re.compile(r'(bearer\s+)([a-zA-Z0-9_\-\.=]{8,})', re.IGNORECASE),
                re.compile(r'(\bbasic\s+)([a-zA-Z0-9+/]{16,}={0,2})', re.IGNORECASE),
                re.compile(r'(token["\s]*[:=]["\s]*)([a-zA-Z0-9_\-]{8,})', re.IGNORECASE),
                re.compile(r'(api[_-]?key["\s]*[:=]["\s]*)([a-zA-Z0-9_\-]+)', re.IGNORECASE),
                # GitHub and GitLab personal access tokens
                re.compile(r'()((?:ghp|gho|ghs|ghu|github_pat)_[a-zA-Z0-9_]{20,})'),
                re.compile(r'()(glpat-[a-zA-Z0-9_\-]{20,})'),
            ])

    def redact_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively redact sensitive data in a dictionary."""
        if not isinstance(data, dict):
            return data
        return {key: self._redact_value(key, value) for key, value in data.items()}

    def redact_string(self, text: str) -> str:
        """
        Redact sensitive information from a string.

        Args:
            text: String to redact

        Returns:
            Redacted string
        """
        if not isinstance(text, str):
            return text

        def replacement(match):
            return f"{match.group(1)}{self.redaction_placeholder}"

        redacted_text = text
        for pattern in self.patterns:
            redacted_text = pattern.sub(replacement, redacted_text)
        return redacted_text

    def _is_sensitive_key(self, key: str) -> bool:
        lowered = key.lower()
        return lowered in SENSITIVE_FIELDS or any(sensitive in lowered for sensitive in SENSITIVE_FIELDS)

    def _redact_value(self, key: str, value: Any) -> Any:
        """
        Redact a value based on its key and content.

        Args:
            key: The field key
            value: The value to potentially redact

        Returns:
            Original value or redacted version
        """
        if value is None or self.level == RedactionLevel.NONE:
            return value

        if isinstance(value, dict):
            return self.redact_dict(value)
        if isinstance(value, list):
            return [self._redact_value(f"{key}[]", item) for item in value]
        if isinstance(value, tuple):
            return tuple(self._redact_value(f"{key}[]", item) for item in value)

        if isinstance(value, str):
            if self._is_sensitive_key(key):
                return self.redaction_placeholder
            return self.redact_string(value)

        if self._is_sensitive_key(key):
            return self.redaction_placeholder

        return value


# ============================================================================
# Formatters
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Example output:
        {
            "timestamp": "2024-05-01T10:30:45.123456Z",
            "level": "INFO",
            "logger": "comment_publisher",
            "message": "Found 2 matching comments",
            "platform": "github",
            "pull_request": "12"
        }
    """

    def __init__(self, ensure_ascii: bool = False, sort_keys: bool = True):
        super().__init__()
        self.ensure_ascii = ensure_ascii
        self.sort_keys = sort_keys

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        log_entry.update(_log_context)
        self._add_extra_fields(log_entry, record)

        if record.exc_info:
            redactor = SensitiveDataRedactor(RedactionLevel.STANDARD)
            log_entry["exception"] = redactor.redact_string(self.formatException(record.exc_info))

        return json.dumps(
            log_entry,
            default=str,
            ensure_ascii=self.ensure_ascii,
            sort_keys=self.sort_keys
        )

    def _add_extra_fields(self, log_entry: Dict[str, Any], record: logging.LogRecord) -> None:
        """Add extra fields from the record while excluding standard fields."""
        redactor = SensitiveDataRedactor(RedactionLevel.STANDARD)
        for key, value in record.__dict__.items():
            if key not in STANDARD_LOG_FIELDS and not key.startswith("_"):
                log_entry[key] = redactor._redact_value(key, value)


class TextFormatter(logging.Formatter):
    """
    Text formatter for human-readable logging with optional colors.

    Example output:
        [2024-05-01 10:30:45] INFO     comment_publisher:88 - Found 1 matching comment (platform=github, pr=12)
    """

    def __init__(self, use_colors: bool = True, timestamp_format: Optional[str] = None):
        super().__init__()
        self.use_colors = use_colors and self._supports_color()
        self.timestamp_format = timestamp_format or DEFAULT_TIMESTAMP_FORMAT

    def _supports_color(self) -> bool:
        """Check if the terminal supports color output."""
        return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime(self.timestamp_format)

        message = (
            f"[{timestamp}] {record.levelname:8} "
            f"{record.name}:{record.lineno} - {record.getMessage()}"
        )
        context_str = self._build_context_string()
        if context_str:
            message = f"{message}{context_str}"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        if self.use_colors:
            color = Colors.LEVEL_COLORS.get(record.levelname, '')
            message = f"{color}{message}{Colors.RESET}"

        return message

    def _build_context_string(self) -> str:
        context_parts = []
        if _log_context.get("platform"):
            context_parts.append(f"platform={_log_context['platform']}")
        if _log_context.get("repository"):
            context_parts.append(f"repo={_log_context['repository']}")
        if _log_context.get("pull_request"):
            context_parts.append(f"pr={_log_context['pull_request']}")

        return f" ({', '.join(context_parts)})" if context_parts else ""


# ============================================================================
# Filters
# ============================================================================

class ContextFilter(logging.Filter):
    """Filter that copies the current log context onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class SensitiveDataFilter(logging.Filter):
    """
    Filter to sanitize sensitive data in log records.

    Redacts credentials from log messages, their arguments and
    extra fields.
    """

    def __init__(
        self,
        redaction_level: Union[RedactionLevel, str] = RedactionLevel.STANDARD
    ):
        super().__init__()
        if isinstance(redaction_level, str):
            redaction_level = RedactionLevel(redaction_level.lower())

        self.redactor = SensitiveDataRedactor(redaction_level)

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.redactor.redact_string(record.msg)

        if isinstance(record.args, tuple) and record.args:
            record.args = tuple(
                self.redactor.redact_string(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        for key in list(record.__dict__.keys()):
            if key in STANDARD_LOG_FIELDS:
                continue
            if self.redactor._is_sensitive_key(key):
                setattr(record, key, self.redactor._redact_value(key, getattr(record, key)))

        return True


# ============================================================================
# Logger Setup and Configuration
# ============================================================================

def validate_log_level(level: str) -> str:
    """
    Validate and normalize log level string.

    Raises:
        ValueError: If the log level is not supported
    """
    if not level:
        raise ValueError("Log level cannot be empty")

    level_upper = level.upper()
    valid_levels = {log_level.value for log_level in LogLevel}

    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level: {level}. Valid levels: {', '.join(sorted(valid_levels))}")

    return level_upper


def validate_log_format(format_type: str) -> str:
    """
    Validate and normalize log format string.

    Raises:
        ValueError: If the log format is not supported
    """
    if not format_type:
        raise ValueError("Log format cannot be empty")

    format_lower = format_type.lower()
    valid_formats = {log_format.value for log_format in LogFormat}

    if format_lower not in valid_formats:
        raise ValueError(f"Invalid log format: {format_type}. Valid formats: {', '.join(sorted(valid_formats))}")

    return format_lower


def setup_logging(
    level: Optional[Union[str, LogLevel]] = None,
    format_type: Optional[Union[str, LogFormat]] = None,
    log_file: Optional[str] = None,
    use_colors: Optional[bool] = None,
    sanitize_sensitive_data: bool = True,
    redaction_level: Union[RedactionLevel, str] = RedactionLevel.STANDARD,
    stream=None
) -> logging.Logger:
    """
    Set up logging with sensitive data protection.

    Configures the root logger with a console handler and, optionally,
    a JSON file handler.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Log format ('json' or 'text')
        log_file: Optional log file path
        use_colors: Whether to use colors in text output (auto-detected if None)
        sanitize_sensitive_data: Whether to filter sensitive information
        redaction_level: Level of sensitive data redaction
        stream: Console stream (defaults to stderr so stdout stays clean for summaries)

    Returns:
        Configured root logger

    Raises:
        ValueError: If validation fails for level or format
    """
    if isinstance(level, LogLevel):
        level = level.value
    if isinstance(format_type, LogFormat):
        format_type = format_type.value

    validated_level = validate_log_level(level or LogLevel.INFO.value)
    validated_format = validate_log_format(format_type or LogFormat.TEXT.value)
    numeric_level = getattr(logging, validated_level, logging.INFO)

    logger = logging.getLogger()
    logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicate logs
    logger.handlers.clear()
    logger.filters.clear()

    if isinstance(redaction_level, str):
        redaction_level = RedactionLevel(redaction_level.lower())

    filters: List[logging.Filter] = [ContextFilter()]
    if sanitize_sensitive_data:
        filters.append(SensitiveDataFilter(redaction_level=redaction_level))

    if validated_format == LogFormat.JSON.value:
        console_formatter: logging.Formatter = JSONFormatter()
    else:
        console_formatter = TextFormatter(
            use_colors=use_colors if use_colors is not None else True
        )

    logger.addHandler(_create_console_handler(numeric_level, console_formatter, filters, stream))

    if log_file:
        try:
            logger.addHandler(_create_file_handler(log_file, numeric_level, JSONFormatter(), filters))
        except OSError as e:
            print(f"Warning: Failed to create file handler: {e}", file=sys.stderr)

    for filter_obj in filters:
        logger.addFilter(filter_obj)

    # Keep per-request noise out of INFO output
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))
    logging.getLogger("httpcore").setLevel(max(numeric_level, logging.WARNING))

    return logger


def _create_console_handler(
    level: int,
    formatter: logging.Formatter,
    filters: List[logging.Filter],
    stream=None
) -> logging.StreamHandler:
    """Create and configure a console log handler."""
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)

    for filter_obj in filters:
        handler.addFilter(filter_obj)

    return handler


def _create_file_handler(
    log_file: str,
    level: int,
    formatter: logging.Formatter,
    filters: List[logging.Filter]
) -> logging.FileHandler:
    """Create and configure a file log handler."""
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(log_file, encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(formatter)

    for filter_obj in filters:
        handler.addFilter(filter_obj)

    return handler


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


__all__ = [
    "setup_logging",
    "get_logger",
    "set_log_context",
    "clear_log_context",
    "get_log_context",
    "JSONFormatter",
    "TextFormatter",
    "ContextFilter",
    "SensitiveDataFilter",
    "SensitiveDataRedactor",
    "RedactionLevel",
]
