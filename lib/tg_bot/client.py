"""
Telegram Bot Async Client

This module provides the TelegramBotClient class, the outbound request layer
of the update runtime. It wraps the Bot API methods the runtime needs
(getMe, getUpdates and webhook management) using httpx with retries and
error classification.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from lib import utils

from .constants import (
    API_BASE_URL,
    CONTENT_TYPE_JSON,
    DEFAULT_POLL_LIMIT,
    DEFAULT_POLL_TIMEOUT,
    DEFAULT_TIMEOUT,
    HTTP_POST,
    LONG_POLL_READ_MARGIN,
    MAX_RETRIES,
    METHOD_DELETE_WEBHOOK,
    METHOD_GET_ME,
    METHOD_GET_UPDATES,
    METHOD_GET_WEBHOOK_INFO,
    METHOD_SET_WEBHOOK,
    RETRY_BACKOFF_FACTOR,
    VERSION,
)
from .exceptions import (
    APIError,
    AuthenticationError,
    BotError,
    NetworkError,
    RateLimitError,
    ValidationError,
    parseApiError,
)
from .models import UpdateList, User

logger = logging.getLogger(__name__)

# Enable extended debug. Useful only for Client debugging
EXTENDED_DEBUG: bool = False


class TelegramBotClient:
    """Async client for the Telegram Bot API with error handling, dood!

    The client supports async context manager usage for proper resource cleanup:

    Example:
        >>> async with TelegramBotClient("123:abc") as client:
        ...     me = await client.getMe()
        ...     print(me.username)

    Attributes:
        token: Bot token issued by @BotFather
        baseUrl: Base URL for the API (default: https://api.telegram.org)
        timeout: Request timeout in seconds (default: 30)
        maxRetries: Maximum number of retry attempts for regular requests (default: 3)
        retryBackoffFactor: Backoff factor for retry delays (default: 1.0)
    """

    __slots__ = (
        "token",
        "baseUrl",
        "timeout",
        "maxRetries",
        "retryBackoffFactor",
        "_httpClient",
        "_transport",
        "_me",
    )

    def __init__(
        self,
        token: str,
        baseUrl: str = API_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT,
        maxRetries: int = MAX_RETRIES,
        retryBackoffFactor: float = RETRY_BACKOFF_FACTOR,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            token: Bot token
            baseUrl: Base URL for the API
            timeout: Request timeout in seconds
            maxRetries: Maximum number of retry attempts
            retryBackoffFactor: Backoff factor for retry delays
            transport: Custom httpx transport (tests use httpx.MockTransport)

        Raises:
            ValidationError: If token is empty
        """
        if not token or not token.strip():
            raise ValidationError("Bot token cannot be empty")

        self.token = token.strip()
        self.baseUrl = baseUrl.rstrip("/")
        self.timeout = timeout
        self.maxRetries = maxRetries
        self.retryBackoffFactor = retryBackoffFactor
        self._httpClient: Optional[httpx.AsyncClient] = None
        self._transport = transport
        self._me: Optional[User] = None

        logger.debug(f"TelegramBotClient initialized for {self.baseUrl}")

    async def __aenter__(self) -> "TelegramBotClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _getHttpClient(self) -> httpx.AsyncClient:
        """Get or create the HTTP client with proper configuration.

        Returns:
            Configured httpx.AsyncClient instance
        """
        if self._httpClient is None or self._httpClient.is_closed:
            self._httpClient = httpx.AsyncClient(
                base_url=self.baseUrl,
                timeout=httpx.Timeout(self.timeout),
                headers={
                    "User-Agent": f"tg-bot-runtime/{VERSION}",
                    "Accept": CONTENT_TYPE_JSON,
                },
                transport=self._transport,
            )
            logger.debug("Created new HTTP client")

        return self._httpClient

    async def aclose(self) -> None:
        """Close the HTTP client and cleanup resources."""
        if self._httpClient and not self._httpClient.is_closed:
            await self._httpClient.aclose()
            logger.debug("HTTP client closed")

    def _buildPath(self, method: str) -> str:
        # Token is part of the path, never log the result
        return f"/bot{self.token}/{method}"

    async def _makeRequest(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        files: Optional[Dict[str, Any]] = None,
        maxRetries: Optional[int] = None,
        timeout: Optional[httpx.Timeout] = None,
    ) -> Any:
        """Call a Bot API method with retry logic and error handling.

        Args:
            method: Bot API method name, e.g. ``getMe``
            params: Method parameters, sent as JSON (or as form fields with files)
            files: Files to upload as multipart/form-data
            maxRetries: Override for the number of retries, 0 disables retrying
            timeout: Override for the request timeout

        Returns:
            The ``result`` field of the API response

        Raises:
            AuthenticationError: If the token is rejected
            RateLimitError: If retries are exhausted on HTTP 429
            APIError: Other API errors
            NetworkError: For network-related issues
        """
        client = self._getHttpClient()
        path = self._buildPath(method)
        retries = self.maxRetries if maxRetries is None else maxRetries
        params = {k: v for k, v in (params or {}).items() if v is not None}

        if EXTENDED_DEBUG:
            logger.debug(f"Calling {method} with {utils.jsonDumps(params)}")

        requestKwargs: Dict[str, Any] = {}
        if files:
            # multipart fields must be strings, complex values are JSON-serialized
            requestKwargs["data"] = {
                k: v if isinstance(v, str) else json.dumps(v) for k, v in params.items()
            }
            requestKwargs["files"] = files
        else:
            requestKwargs["json"] = params
        if timeout is not None:
            requestKwargs["timeout"] = timeout

        lastException: Optional[BotError] = None
        attempt = 0
        while attempt < retries + 1:
            retryAfter: Optional[float] = None
            try:
                response = await client.request(HTTP_POST, path, **requestKwargs)

                try:
                    data = response.json()
                except ValueError:
                    data = {"ok": False, "description": response.text or "Invalid JSON response"}

                if response.status_code == 200 and isinstance(data, dict) and data.get("ok"):
                    logger.debug(f"Request successful: {method}")
                    return data.get("result")

                if not isinstance(data, dict):
                    data = {"ok": False, "description": str(data)}
                raise parseApiError(response.status_code, data)

            except AuthenticationError as e:
                logger.error(f"Authentication error on {method}: {e}")
                raise e

            except RateLimitError as e:
                lastException = e
                retryAfter = e.retryAfter
                logger.warning(f"Rate limited on {method}, attempt {attempt + 1}: {e}")

            except APIError as e:
                if e.code is not None and 400 <= e.code < 500:
                    # 4xx other than 429 are final
                    logger.error(f"API error on {method}: {e}")
                    raise e
                lastException = e
                logger.warning(f"API error on {method}, attempt {attempt + 1}: {type(e).__name__}#{e}")

            except httpx.TimeoutException as e:
                lastException = NetworkError(f"Timeout: {type(e).__name__}#{e}")
                logger.warning(f"Timeout on {method}, attempt {attempt + 1}: {type(e).__name__}")

            except httpx.RequestError as e:
                lastException = NetworkError(f"Network error: {type(e).__name__}#{e}")
                logger.warning(f"Network error on {method}, attempt {attempt + 1}: {type(e).__name__}#{e}")

            # Retry logic with exponential backoff
            if attempt < retries:
                delay = retryAfter if retryAfter is not None else self.retryBackoffFactor * (2**attempt)
                logger.debug(f"Retrying {method} in {delay} seconds...")
                await asyncio.sleep(delay)
            attempt += 1

        if retries:
            logger.error(f"{method} failed after {retries + 1} attempts")
        raise lastException or NetworkError(f"{method} failed after all retries")

    async def getMe(self, useCache: bool = True) -> User:
        """Get information about the bot.

        Args:
            useCache: Return the previously fetched value if there is one

        Returns:
            The bot user
        """
        if useCache and self._me is not None:
            return self._me
        result = await self._makeRequest(METHOD_GET_ME)
        self._me = User.from_dict(result)
        return self._me

    async def getUpdates(
        self,
        offset: Optional[int] = None,
        timeout: int = DEFAULT_POLL_TIMEOUT,
        limit: int = DEFAULT_POLL_LIMIT,
        allowedUpdates: Optional[List[str]] = None,
    ) -> UpdateList:
        """Receive incoming updates using long polling.

        Never retries by itself, the polling ingestor owns the retry policy.

        Args:
            offset: Identifier of the first update to be returned, None for the
                oldest unconfirmed update
            timeout: Long polling timeout in seconds
            limit: Maximum number of updates (1-100)
            allowedUpdates: Update types to receive

        Returns:
            Parsed updates ordered by update_id

        Raises:
            AuthenticationError: If the token is rejected
            NetworkError: On transport failures and timeouts
            APIError: Other API errors
        """
        result = await self._makeRequest(
            METHOD_GET_UPDATES,
            {
                "offset": offset,
                "timeout": timeout,
                "limit": limit,
                "allowed_updates": allowedUpdates,
            },
            maxRetries=0,
            timeout=httpx.Timeout(self.timeout, read=timeout + LONG_POLL_READ_MARGIN),
        )
        if EXTENDED_DEBUG:
            logger.debug(f"Received updates: {utils.jsonDumps(result, indent=2)}")
        return UpdateList.from_list(result)

    async def setWebhook(
        self,
        url: str,
        certificate: Optional[str] = None,
        maxConnections: Optional[int] = None,
        allowedUpdates: Optional[List[str]] = None,
        secretToken: Optional[str] = None,
        dropPendingUpdates: Optional[bool] = None,
    ) -> bool:
        """Register the URL the platform pushes updates to.

        Args:
            url: HTTPS URL receiving updates
            certificate: Path of a public key certificate to upload (self-signed setups)
            maxConnections: Maximum simultaneous connections (1-100)
            allowedUpdates: Update types to receive
            secretToken: Value sent in the X-Telegram-Bot-Api-Secret-Token header
            dropPendingUpdates: Drop all pending updates

        Returns:
            True if the webhook was set
        """
        params = {
            "url": url,
            "max_connections": maxConnections,
            "allowed_updates": allowedUpdates,
            "secret_token": secretToken,
            "drop_pending_updates": dropPendingUpdates,
        }
        if certificate is not None:
            with open(certificate, "rb") as f:
                files = {"certificate": (certificate, f.read())}
            return bool(await self._makeRequest(METHOD_SET_WEBHOOK, params, files=files))
        return bool(await self._makeRequest(METHOD_SET_WEBHOOK, params))

    async def deleteWebhook(self, dropPendingUpdates: Optional[bool] = None) -> bool:
        """Remove webhook integration, switching the bot back to getUpdates."""
        return bool(await self._makeRequest(METHOD_DELETE_WEBHOOK, {"drop_pending_updates": dropPendingUpdates}))

    async def getWebhookInfo(self) -> Dict[str, Any]:
        """Get current webhook status.

        Returns:
            WebhookInfo object as a dictionary (url, pending_update_count, ...)
        """
        result = await self._makeRequest(METHOD_GET_WEBHOOK_INFO)
        return result if isinstance(result, dict) else {}
