"""
Telegram Bot Runtime Exceptions

This module contains the error taxonomy of the update runtime: registration
validation errors, ingestion errors (transient and fatal), handler errors and
malformed webhook deliveries.
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class BotError(Exception):
    """Base exception class for all bot runtime errors, dood!

    Attributes:
        message: Human-readable error message
        code: Bot API error code (if available)
        response: Raw API response data (if available)
    """

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        response: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.response = response
        logger.debug(f"{type(self).__name__}: {message} (code: {code})")

    def __str__(self) -> str:
        if self.code:
            return f"{self.message} (code: {self.code})"
        return self.message


class ValidationError(BotError, ValueError):
    """Raised synchronously when registration or construction input is malformed.

    Examples are a command without the leading marker, callback data longer
    than 64 characters or a blank bot token. The registry is left unchanged.
    """


class AlreadyRunningError(BotError):
    """Raised when ``start()`` is called on a session that is not stopped."""

    def __init__(self, message: str = "Bot session is already running") -> None:
        super().__init__(message)


class TransientIngestionError(BotError):
    """Recoverable failure while fetching updates, retried with backoff."""


class NetworkError(TransientIngestionError):
    """Raised when network-related errors occur.

    This includes connection failures, timeouts and other transport-level
    issues that prevent communication with the Bot API.
    """

    def __init__(
        self,
        message: str = "Network error occurred.",
        code: Optional[int] = None,
        response: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code, response)


class APIError(TransientIngestionError):
    """Raised when the Bot API answers with an error not covered by a narrower type."""


class RateLimitError(APIError):
    """Raised on HTTP 429. ``retryAfter`` holds the delay the API asked for."""

    def __init__(
        self,
        message: str = "Too Many Requests",
        code: Optional[int] = 429,
        response: Optional[Dict[str, Any]] = None,
        retryAfter: Optional[float] = None,
    ) -> None:
        super().__init__(message, code, response)
        self.retryAfter = retryAfter


class ServiceUnavailableError(APIError):
    """Raised on 5xx responses from the Bot API."""


class FatalIngestionError(BotError):
    """Failure that ends the ingestion session.

    Surfaced once to the embedding application through
    ``Bot.waitUntilStopped()``.
    """


class AuthenticationError(FatalIngestionError):
    """Raised when the Bot API rejects the token (HTTP 401/403)."""

    def __init__(
        self,
        message: str = "Authentication failed. Check your bot token.",
        code: Optional[int] = 401,
        response: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code, response)


class HandlerError(BotError):
    """Wraps an exception raised inside application handler code.

    Never propagated into ingestion, only reported to error callbacks and the
    dispatch observer.
    """

    def __init__(self, message: str, cause: BaseException) -> None:
        super().__init__(message)
        self.cause = cause


class MalformedDeliveryError(BotError):
    """Raised when an inbound payload cannot be parsed into an Update."""


def parseApiError(statusCode: int, responseData: Dict[str, Any]) -> BotError:
    """Parse Bot API error response and return appropriate exception.

    Args:
        statusCode: HTTP status code
        responseData: Parsed JSON response from API

    Returns:
        Appropriate exception instance based on error code and status

    Example:
        >>> parseApiError(401, {"ok": False, "error_code": 401, "description": "Unauthorized"})
        AuthenticationError('Unauthorized')
    """
    errorCode = responseData.get("error_code", statusCode)
    if not isinstance(errorCode, int):
        errorCode = statusCode
    description = responseData.get("description", "Unknown API error")

    if errorCode in (401, 403):
        return AuthenticationError(description, errorCode, responseData)
    elif errorCode == 429:
        parameters = responseData.get("parameters") or {}
        retryAfter = parameters.get("retry_after") if isinstance(parameters, dict) else None
        return RateLimitError(description, errorCode, responseData, retryAfter=retryAfter)
    elif 500 <= errorCode < 600:
        return ServiceUnavailableError(description, errorCode, responseData)

    return APIError(description, errorCode, responseData)
