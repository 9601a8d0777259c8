"""
Telegram Bot Runtime Constants

This module contains constants used across the update runtime: Bot API
endpoints, registration limits and ingestion defaults.
"""

from typing import Final

VERSION: Final[str] = "0.1.0"

# API Configuration
API_BASE_URL: Final[str] = "https://api.telegram.org"
DEFAULT_TIMEOUT: Final[int] = 30
MAX_RETRIES: Final[int] = 3
RETRY_BACKOFF_FACTOR: Final[float] = 1.0
# Extra read time on top of the long-poll timeout before httpx gives up
LONG_POLL_READ_MARGIN: Final[int] = 10

# HTTP Methods
HTTP_POST: Final[str] = "POST"

# Content Types
CONTENT_TYPE_JSON: Final[str] = "application/json"

# Bot API methods
METHOD_GET_ME: Final[str] = "getMe"
METHOD_GET_UPDATES: Final[str] = "getUpdates"
METHOD_SET_WEBHOOK: Final[str] = "setWebhook"
METHOD_DELETE_WEBHOOK: Final[str] = "deleteWebhook"
METHOD_GET_WEBHOOK_INFO: Final[str] = "getWebhookInfo"

# Registration limits
COMMAND_MARKER: Final[str] = "/"
MAX_COMMAND_LENGTH: Final[int] = 32
MIN_CALLBACK_DATA_LENGTH: Final[int] = 1
MAX_CALLBACK_DATA_LENGTH: Final[int] = 64
MIN_INLINE_QUERY_LENGTH: Final[int] = 0
MAX_INLINE_QUERY_LENGTH: Final[int] = 512

# Polling defaults
DEFAULT_POLL_TIMEOUT: Final[int] = 30
MAX_POLL_TIMEOUT: Final[int] = 50
DEFAULT_POLL_LIMIT: Final[int] = 100
MAX_POLL_LIMIT: Final[int] = 100
DEFAULT_BACKOFF_INITIAL: Final[float] = 1.0
DEFAULT_BACKOFF_MAXIMUM: Final[float] = 60.0
DEFAULT_BACKOFF_MULTIPLIER: Final[float] = 2.0

# Webhook defaults
DEFAULT_WEBHOOK_HOST: Final[str] = "0.0.0.0"
DEFAULT_WEBHOOK_PORT: Final[int] = 8443
DEFAULT_WEBHOOK_PATH: Final[str] = "/webhook"
DEFAULT_WEBHOOK_MAX_CONNECTIONS: Final[int] = 40
SECRET_TOKEN_HEADER: Final[str] = "X-Telegram-Bot-Api-Secret-Token"

# Dispatcher defaults
DEFAULT_WORKERS: Final[int] = 16
# Each handler should be done in at most 30 minutes
DEFAULT_HANDLER_TIMEOUT: Final[float] = 60 * 30
# Time stop() waits for queued handler work before cancelling it
DEFAULT_SHUTDOWN_TIMEOUT: Final[float] = 30.0
