"""
Telegram Bot Update Runtime

Receives updates from the Telegram Bot API either by long polling or through
a webhook listener and routes each of them to exactly one application
handler.

Basic usage:
    >>> from lib.tg_bot import Bot
    >>>
    >>> bot = Bot.createPolling("MyBot", "123:abc")
    >>> bot.onCommand("/start", lambda message, argument: print(argument))
    >>> bot.run()
"""

from .bot import Bot
from .client import TelegramBotClient
from .commands import ParsedCommand, parseCommand
from .constants import MAX_COMMAND_LENGTH, VERSION
from .dispatcher import Dispatcher, HandlerInvocation
from .exceptions import (
    AlreadyRunningError,
    APIError,
    AuthenticationError,
    BotError,
    FatalIngestionError,
    HandlerError,
    MalformedDeliveryError,
    NetworkError,
    RateLimitError,
    ServiceUnavailableError,
    TransientIngestionError,
    ValidationError,
)
from .handlers import HandlerRegistry
from .models import Update, UpdateType
from .observer import DispatchObserver, DispatchOutcome, StatsObserver
from .options import DispatcherOptions, PollingOptions, RetryBackoff, WebhookOptions
from .polling import PollingIngestor
from .session import IngestionMode, Session, SessionState
from .webhook import WebhookIngestor

# Public API
__all__ = [
    # Facade
    "Bot",
    "TelegramBotClient",
    # Core
    "Dispatcher",
    "HandlerInvocation",
    "HandlerRegistry",
    "ParsedCommand",
    "parseCommand",
    "PollingIngestor",
    "WebhookIngestor",
    "Session",
    "SessionState",
    "IngestionMode",
    # Models
    "Update",
    "UpdateType",
    # Options
    "DispatcherOptions",
    "PollingOptions",
    "RetryBackoff",
    "WebhookOptions",
    # Observability
    "DispatchObserver",
    "DispatchOutcome",
    "StatsObserver",
    # Constants
    "MAX_COMMAND_LENGTH",
    "VERSION",
    # Exceptions
    "BotError",
    "ValidationError",
    "AlreadyRunningError",
    "TransientIngestionError",
    "NetworkError",
    "APIError",
    "RateLimitError",
    "ServiceUnavailableError",
    "FatalIngestionError",
    "AuthenticationError",
    "HandlerError",
    "MalformedDeliveryError",
]
