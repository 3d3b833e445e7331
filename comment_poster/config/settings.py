"""
Configuration management for the PR comment poster.

Settings are read from environment variables (optionally loaded from a
.env file). Each platform has CI-native fallbacks so the poster works
without extra configuration inside GitHub Actions, GitLab CI,
Bitbucket Pipelines and Azure Pipelines.
"""

import base64
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

from dotenv import load_dotenv

from ..utils.exceptions import ConfigurationError, DEFAULT_TROUBLESHOOTING_URL

# Load environment variables from .env file
load_dotenv()


DEFAULT_TAG = "infracost-comment"

PLATFORMS = ("github", "gitlab", "bitbucket", "azure-devops")

BEHAVIORS = ("update", "new", "hide-and-new", "delete-and-new")

DEFAULT_API_URLS = {
    "github": "https://api.github.com",
    "gitlab": "https://gitlab.com/api/v4",
    "bitbucket": "https://api.bitbucket.org/2.0",
    "azure-devops": "",
}

# CI-native variables consulted when the COMMENT_* variable is not set
PLATFORM_ENV_FALLBACKS = {
    "github": {
        "token": "GITHUB_TOKEN",
        "api_url": "GITHUB_API_URL",
        "repository": "GITHUB_REPOSITORY",
        "pull_request": "GITHUB_PULL_REQUEST_NUMBER",
    },
    "gitlab": {
        "token": "GITLAB_TOKEN",
        "api_url": "CI_API_V4_URL",
        "repository": "CI_PROJECT_ID",
        "pull_request": "CI_MERGE_REQUEST_IID",
    },
    "bitbucket": {
        "token": "BITBUCKET_TOKEN",
        "repository": "BITBUCKET_REPO_FULL_NAME",
        "pull_request": "BITBUCKET_PR_ID",
    },
    "azure-devops": {
        "token": "SYSTEM_ACCESSTOKEN",
        "repository": "BUILD_REPOSITORY_NAME",
        "pull_request": "SYSTEM_PULLREQUEST_PULLREQUESTID",
    },
}

TRUE_VALUES = ("true", "1", "yes", "on")


@dataclass
class Settings:
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults where applicable and
    are validated on instantiation. Credentials are only required
    when a comment is actually posted, see validate_for_posting().
    """

    # Platform Configuration
    platform: str = field(default="github")
    token: str = field(default="")
    api_url: str = field(default="")
    repository: str = field(default="")
    pull_request: str = field(default="")

    # Comment Configuration
    tag: str = field(default=DEFAULT_TAG)
    behavior: str = field(default="update")
    skip_no_diff: bool = field(default=False)

    # Timeouts
    timeout_seconds: float = field(default=60.0)
    request_timeout_seconds: float = field(default=30.0)

    # Retry Configuration
    max_retries: int = field(default=3)
    retry_delay: float = field(default=1.0)
    retry_backoff_factor: float = field(default=2.0)

    # Logging Configuration
    log_level: str = field(default="INFO")
    log_format: str = field(default="text")
    log_file: Optional[str] = field(default=None)

    troubleshooting_url: str = field(default=DEFAULT_TROUBLESHOOTING_URL)

    def __post_init__(self):
        """Validate settings after initialization."""
        self.platform = (self.platform or "").lower()
        if self.platform not in PLATFORMS:
            raise ConfigurationError(
                f"platform must be one of: {', '.join(PLATFORMS)}",
                config_key="platform",
                config_value=self.platform
            )

        if not self.tag:
            self.tag = DEFAULT_TAG

        if self.behavior not in BEHAVIORS:
            raise ConfigurationError(
                f"behavior must be one of: {', '.join(BEHAVIORS)}",
                config_key="behavior",
                config_value=self.behavior
            )

        self.log_level = (self.log_level or "").upper()
        if self.log_level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ConfigurationError(
                "log_level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL",
                config_key="log_level",
                config_value=self.log_level
            )

        self.log_format = (self.log_format or "").lower()
        if self.log_format not in ["text", "json"]:
            raise ConfigurationError(
                "log_format must be one of: text, json",
                config_key="log_format",
                config_value=self.log_format
            )

        if self.timeout_seconds <= 0 or self.request_timeout_seconds <= 0:
            raise ConfigurationError("timeouts must be greater than 0")

        if self.max_retries < 0:
            raise ConfigurationError("max_retries must not be negative", config_key="max_retries")

        if not self.api_url:
            self.api_url = DEFAULT_API_URLS[self.platform]
        self.api_url = self.api_url.rstrip("/")

        # Ensure string types for API compatibility
        self.pull_request = str(self.pull_request)
        self.repository = str(self.repository)

    def validate_for_posting(self) -> None:
        """
        Check that everything needed to talk to the platform is present.

        Raises:
            ConfigurationError: If a required value is missing
        """
        fallbacks = PLATFORM_ENV_FALLBACKS[self.platform]
        required = {
            "token": self.token,
            "repository": self.repository,
            "pull_request": self.pull_request,
            "api_url": self.api_url,
        }
        for key, value in required.items():
            if not value:
                env_hint = f"COMMENT_{key.upper()}"
                if key in fallbacks:
                    env_hint += f" or {fallbacks[key]}"
                raise ConfigurationError(
                    f"{key} is required to post comments to {self.platform} (set {env_hint})",
                    config_key=key
                )

    def get_auth_headers(self) -> Dict[str, str]:
        """Get authentication headers for the configured platform."""
        if self.platform == "azure-devops":
            encoded = base64.b64encode(f":{self.token}".encode()).decode()
            return {"Authorization": f"Basic {encoded}"}
        if self.platform == "bitbucket" and ":" in self.token:
            # username:app_password
            encoded = base64.b64encode(self.token.encode()).decode()
            return {"Authorization": f"Basic {encoded}"}
        return {"Authorization": f"Bearer {self.token}"}

    @classmethod
    def from_env(cls, **kwargs) -> "Settings":
        """
        Create Settings instance from environment variables with optional overrides.

        Overrides whose value is None are ignored so CLI flags that were not
        given leave the environment values in place.
        """
        env_vars: Dict[str, Any] = {}

        env_mapping = {
            "COMMENT_PLATFORM": "platform",
            "COMMENT_TOKEN": "token",
            "COMMENT_API_URL": "api_url",
            "COMMENT_REPOSITORY": "repository",
            "COMMENT_PULL_REQUEST": "pull_request",
            "COMMENT_TAG": "tag",
            "COMMENT_BEHAVIOR": "behavior",
            "COMMENT_SKIP_NO_DIFF": "skip_no_diff",
            "TIMEOUT_SECONDS": "timeout_seconds",
            "REQUEST_TIMEOUT_SECONDS": "request_timeout_seconds",
            "MAX_RETRIES": "max_retries",
            "RETRY_DELAY": "retry_delay",
            "RETRY_BACKOFF_FACTOR": "retry_backoff_factor",
            "LOG_LEVEL": "log_level",
            "LOG_FORMAT": "log_format",
            "LOG_FILE": "log_file",
            "TROUBLESHOOTING_URL": "troubleshooting_url",
        }

        for env_var, field_name in env_mapping.items():
            if env_var in os.environ:
                env_vars[field_name] = os.environ[env_var]

        overrides = {key: value for key, value in kwargs.items() if value is not None}
        platform = str(overrides.get("platform") or env_vars.get("platform") or "github").lower()

        # Fill gaps from the platform's CI-native variables
        for field_name, env_var in PLATFORM_ENV_FALLBACKS.get(platform, {}).items():
            if not env_vars.get(field_name) and os.environ.get(env_var):
                env_vars[field_name] = os.environ[env_var]

        if platform == "azure-devops" and not env_vars.get("api_url"):
            collection_uri = os.environ.get("SYSTEM_COLLECTIONURI", "")
            team_project = os.environ.get("SYSTEM_TEAMPROJECT", "")
            if collection_uri and team_project:
                env_vars["api_url"] = f"{collection_uri.rstrip('/')}/{team_project}"

        # Convert boolean and numeric strings
        for key, value in env_vars.items():
            if key == "skip_no_diff":
                env_vars[key] = value.lower() in TRUE_VALUES
            elif key in ["timeout_seconds", "request_timeout_seconds", "retry_delay", "retry_backoff_factor"]:
                env_vars[key] = _parse_number(key, value, float)
            elif key == "max_retries":
                env_vars[key] = _parse_number(key, value, int)

        env_vars.update(overrides)

        return cls(**env_vars)


def _parse_number(key: str, value: str, cast):
    try:
        return cast(value)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be a number", config_key=key, config_value=value) from e


class SettingsProtocol(Protocol):
    """Protocol for settings interface."""
    platform: str
    token: str
    api_url: str
    repository: str
    pull_request: str
    tag: str
    behavior: str
    skip_no_diff: bool
    timeout_seconds: float
    request_timeout_seconds: float
    max_retries: int
    retry_delay: float
    retry_backoff_factor: float
    log_level: str
    log_format: str
    log_file: Optional[str]
    troubleshooting_url: str

    def validate_for_posting(self) -> None: ...
    def get_auth_headers(self) -> Dict[str, str]: ...
