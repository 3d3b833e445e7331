"""
Shared HTTP plumbing for platform handlers.

Provides the async httpx client lifecycle, error mapping and retry
wrapping used by every concrete platform handler.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .comment import PlatformHandler
from .config.settings import SettingsProtocol
from .utils.exceptions import PlatformAPIError
from .utils.logger import get_logger
from .utils.retry import RetryConfig, retry_with_backoff

ModelT = TypeVar("ModelT", bound=BaseModel)

USER_AGENT = "pr-comment-poster"


class HTTPPlatformHandler(PlatformHandler):
    """
    Base class for platform handlers talking to a REST/GraphQL API.

    Can be used as an async context manager to share one connection
    pool across all calls of a run; otherwise each request opens a
    short-lived client.
    """

    platform_name = "platform"

    def __init__(
        self,
        settings: SettingsProtocol,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_config: Optional[RetryConfig] = None
    ):
        """
        Initialize the handler with configuration settings.

        Args:
            settings: Application settings (token, API URL, repository, pull request)
            transport: Optional httpx transport, used by tests to stub the API
            retry_config: Retry behavior for requests (built from settings if omitted)
        """
        self.logger = get_logger(f"{self.platform_name}_client")
        self.settings = settings
        self.api_url = settings.api_url.rstrip("/")
        self.repository = settings.repository
        self.pull_request = settings.pull_request
        self.timeout = settings.request_timeout_seconds
        self.transport = transport
        self.retry_config = retry_config or RetryConfig.from_settings(settings)

        self.headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        self.headers.update(self.default_headers())
        self.headers.update(settings.get_auth_headers())

        self._client: Optional[httpx.AsyncClient] = None

        self.logger.debug(
            f"{self.platform_name} handler initialized",
            extra={
                "api_url": self.api_url,
                "repository": self.repository,
                "pull_request": self.pull_request,
                "timeout": self.timeout
            }
        )

    def default_headers(self) -> Dict[str, str]:
        """Extra headers sent with every request."""
        return {}

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers=self.headers,
            transport=self.transport
        )

    async def __aenter__(self):
        """Async context manager entry."""
        self._client = self._new_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @asynccontextmanager
    async def get_client(self):
        """Yield the shared client, or a temporary one outside a context."""
        if self._client is not None:
            yield self._client
        else:
            async with self._new_client() as client:
                yield client

    async def request(
        self,
        method: str,
        url: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        retry: bool = True
    ) -> Any:
        """
        Send a request, retrying transient failures.

        Pass retry=False for requests that are not idempotent, such as
        creating a comment.

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            PlatformAPIError: If the request fails
            RetryExhaustedError: If a transient failure persists
        """
        if not retry:
            return await self._send(method, url, json=json, params=params)

        send = retry_with_backoff(self.retry_config)(self._send)
        return await send(method, url, json=json, params=params)

    async def _send(
        self,
        method: str,
        url: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        self.logger.debug(f"{method} {url}")

        try:
            async with self.get_client() as client:
                response = await client.request(method, url, json=json, params=params)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            error_msg = f"{method} {url} failed with status {status_code}: {_error_text(e.response)}"
            self.logger.error(
                error_msg,
                extra={
                    "url": url,
                    "method": method,
                    "status_code": status_code
                }
            )
            raise PlatformAPIError(
                error_msg,
                status_code=status_code,
                endpoint=url,
                platform=self.platform_name
            ) from e
        except httpx.RequestError as e:
            error_msg = f"{method} {url} failed: {type(e).__name__}: {e}"
            self.logger.error(
                error_msg,
                extra={
                    "url": url,
                    "method": method,
                    "error_type": type(e).__name__
                }
            )
            raise PlatformAPIError(error_msg, endpoint=url, platform=self.platform_name) from e

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise PlatformAPIError(
                f"{method} {url} returned a response that is not JSON",
                status_code=response.status_code,
                endpoint=url,
                platform=self.platform_name,
                retryable=False
            ) from e

    def parse(self, model: Type[ModelT], data: Any, endpoint: str = "") -> ModelT:
        """
        Validate an API payload against a pydantic model.

        Raises:
            PlatformAPIError: If the payload does not have the expected shape
        """
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise PlatformAPIError(
                f"Unexpected {self.platform_name} API response: {e.error_count()} validation error(s)",
                endpoint=endpoint or None,
                platform=self.platform_name,
                retryable=False
            ) from e


def _error_text(response: httpx.Response) -> str:
    """Best-effort error message from an API error response."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase

    if isinstance(data, dict):
        for key in ("message", "error_description", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]
    return response.reason_phrase
