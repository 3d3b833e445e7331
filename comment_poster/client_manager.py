"""
Client Manager for the PR comment poster.

Maps the configured platform name to its handler class and wires the
handler into a comment publisher.
"""

from typing import Dict, Optional, Type

import httpx

from .azure_devops_client import AzureDevOpsHandler
from .bitbucket_client import BitbucketHandler
from .comment_publisher import CommentPublisher
from .config.settings import SettingsProtocol
from .github_client import GitHubHandler
from .gitlab_client import GitLabHandler
from .platform_client import HTTPPlatformHandler
from .utils.exceptions import ConfigurationError
from .utils.logger import get_logger

PLATFORM_HANDLERS: Dict[str, Type[HTTPPlatformHandler]] = {
    GitHubHandler.platform_name: GitHubHandler,
    GitLabHandler.platform_name: GitLabHandler,
    BitbucketHandler.platform_name: BitbucketHandler,
    AzureDevOpsHandler.platform_name: AzureDevOpsHandler,
}

logger = get_logger("client_manager")


def create_platform_handler(
    settings: SettingsProtocol,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> HTTPPlatformHandler:
    """
    Create the platform handler for the configured platform.

    Args:
        settings: Application settings
        transport: Optional httpx transport passed through to the handler

    Returns:
        Platform handler instance

    Raises:
        ConfigurationError: If the platform is unknown or its settings are incomplete
    """
    handler_class = PLATFORM_HANDLERS.get(settings.platform)
    if handler_class is None:
        raise ConfigurationError(
            f"Unsupported platform: {settings.platform}",
            config_key="platform",
            config_value=settings.platform
        )

    settings.validate_for_posting()

    logger.debug(f"Creating {handler_class.__name__} for {settings.platform}")
    return handler_class(settings, transport=transport)


def create_comment_publisher(settings: SettingsProtocol, handler: HTTPPlatformHandler) -> CommentPublisher:
    """Create a comment publisher bound to the given handler."""
    return CommentPublisher(
        handler,
        tag=settings.tag,
        troubleshooting_url=settings.troubleshooting_url
    )
