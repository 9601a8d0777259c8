"""
Handler registry for the Telegram bot update runtime.

This module keeps every handler registration of a bot: at most one generic
handler per update type, exact-match tables for commands, callback data and
inline query text, and a fallback any-update handler. Registrations are
validated before any mutation and the registry is safe to mutate while
updates are being dispatched.
"""

import logging
import re
from threading import RLock
from typing import Any, Awaitable, Callable, Dict, Optional, TypeAlias, Union

from . import constants
from .exceptions import ValidationError
from .models import CallbackQuery, InlineQuery, Message, Update, UpdateType

logger = logging.getLogger(__name__)

HandlerResult: TypeAlias = Union[None, Awaitable[None]]
TypeHandler: TypeAlias = Callable[[Any], HandlerResult]
CommandHandler: TypeAlias = Callable[[Message, Optional[str]], HandlerResult]
CallbackQueryHandler: TypeAlias = Callable[[CallbackQuery], HandlerResult]
InlineQueryHandler: TypeAlias = Callable[[InlineQuery], HandlerResult]
AnyUpdateHandler: TypeAlias = Callable[[Update], HandlerResult]

COMMAND_TOKEN_RE = re.compile(r"^[A-Za-z0-9_]+$")


def normalizeCommand(command: str) -> str:
    """Validate a command registration key and return it without ``@botname`` suffix.

    Args:
        command: Command with the leading marker, e.g. ``/start`` or ``/start@MyBot``

    Returns:
        Registry key, e.g. ``/start``

    Raises:
        ValidationError: If the marker is missing, the token is empty, longer
            than 32 characters or contains anything but letters, digits and underscores
    """
    if not isinstance(command, str) or not command.startswith(constants.COMMAND_MARKER):
        raise ValidationError(f"Command must start with '{constants.COMMAND_MARKER}': {command!r}")

    token = command[len(constants.COMMAND_MARKER) :]
    if "@" in token:
        token, botName = token.split("@", 1)
        if not botName or not COMMAND_TOKEN_RE.match(botName):
            raise ValidationError(f"Invalid bot username suffix in command {command!r}")

    if not token:
        raise ValidationError(f"Command is empty after '{constants.COMMAND_MARKER}': {command!r}")
    if len(token) > constants.MAX_COMMAND_LENGTH:
        raise ValidationError(f"Command {command!r} exceeds {constants.MAX_COMMAND_LENGTH} characters")
    if not COMMAND_TOKEN_RE.match(token):
        raise ValidationError(f"Command {command!r} may contain only letters, digits and underscores")

    return constants.COMMAND_MARKER + token


def validateCallbackData(data: str) -> None:
    """Raise ValidationError unless data length is in [1, 64]."""
    if not isinstance(data, str) or not (
        constants.MIN_CALLBACK_DATA_LENGTH <= len(data) <= constants.MAX_CALLBACK_DATA_LENGTH
    ):
        raise ValidationError(
            f"Callback data length must be in [{constants.MIN_CALLBACK_DATA_LENGTH}, "
            f"{constants.MAX_CALLBACK_DATA_LENGTH}]: {data!r}"
        )


def validateInlineQuery(query: str) -> None:
    """Raise ValidationError unless query length is in [0, 512]."""
    if not isinstance(query, str) or not (
        constants.MIN_INLINE_QUERY_LENGTH <= len(query) <= constants.MAX_INLINE_QUERY_LENGTH
    ):
        raise ValidationError(
            f"Inline query length must be in [{constants.MIN_INLINE_QUERY_LENGTH}, "
            f"{constants.MAX_INLINE_QUERY_LENGTH}]"
        )


def _validateHandler(handler: Any) -> None:
    if not callable(handler):
        raise ValidationError(f"Handler must be callable, got {type(handler).__name__}")


class HandlerRegistry:
    """Registry for managing update handlers.

    All mutations and lookups go through one re-entrant lock, so a lookup
    observes either the previous or the new handler for a key and never a
    half-applied change. The lock is held only for a single dict operation.
    """

    def __init__(self):
        """Initialize the handler registry."""
        self._lock = RLock()
        self._typeHandlers: Dict[UpdateType, TypeHandler] = {}
        self._commandHandlers: Dict[str, CommandHandler] = {}
        self._callbackHandlers: Dict[str, CallbackQueryHandler] = {}
        self._inlineQueryHandlers: Dict[str, InlineQueryHandler] = {}
        self._anyUpdateHandler: Optional[AnyUpdateHandler] = None

    # Generic per-type handlers

    def setTypeHandler(self, updateType: UpdateType, handler: TypeHandler) -> None:
        """Register the generic handler for an update type, replacing the previous one."""
        _validateHandler(handler)
        updateType = UpdateType(updateType)
        if updateType == UpdateType.UNKNOWN:
            raise ValidationError("Cannot register a type handler for unknown updates, use onAnyUpdate")
        with self._lock:
            self._typeHandlers[updateType] = handler
        logger.debug(f"Registered {updateType} handler")

    def clearTypeHandler(self, updateType: UpdateType) -> None:
        """Remove the generic handler for an update type, no-op if absent."""
        with self._lock:
            self._typeHandlers.pop(updateType, None)

    def getTypeHandler(self, updateType: UpdateType) -> Optional[TypeHandler]:
        with self._lock:
            return self._typeHandlers.get(updateType)

    # Commands

    def setCommandHandler(self, command: str, handler: CommandHandler) -> str:
        """Register a handler for an exact command.

        Args:
            command: Command with the leading marker, e.g. ``/start``
            handler: Called with (message, argument-or-None)

        Returns:
            The registry key the handler is stored under

        Raises:
            ValidationError: If the command is malformed
        """
        key = normalizeCommand(command)
        _validateHandler(handler)
        with self._lock:
            self._commandHandlers[key] = handler
        logger.debug(f"Registered command handler for {key}")
        return key

    def clearCommandHandler(self, command: str) -> None:
        """Remove a command handler, no-op if absent or if the command is malformed."""
        try:
            key = normalizeCommand(command)
        except ValidationError:
            return
        with self._lock:
            self._commandHandlers.pop(key, None)

    def getCommandHandler(self, command: str) -> Optional[CommandHandler]:
        with self._lock:
            return self._commandHandlers.get(command)

    # Callback data

    def setCallbackHandler(self, data: str, handler: CallbackQueryHandler) -> None:
        """Register a handler for callback queries whose data equals ``data``."""
        validateCallbackData(data)
        _validateHandler(handler)
        with self._lock:
            self._callbackHandlers[data] = handler
        logger.debug(f"Registered callback handler for {data!r}")

    def clearCallbackHandler(self, data: str) -> None:
        with self._lock:
            self._callbackHandlers.pop(data, None)

    def getCallbackHandler(self, data: str) -> Optional[CallbackQueryHandler]:
        with self._lock:
            return self._callbackHandlers.get(data)

    # Inline query text

    def setInlineQueryHandler(self, query: str, handler: InlineQueryHandler) -> None:
        """Register a handler for inline queries whose text equals ``query``."""
        validateInlineQuery(query)
        _validateHandler(handler)
        with self._lock:
            self._inlineQueryHandlers[query] = handler
        logger.debug(f"Registered inline query handler for {query!r}")

    def clearInlineQueryHandler(self, query: str) -> None:
        with self._lock:
            self._inlineQueryHandlers.pop(query, None)

    def getInlineQueryHandler(self, query: str) -> Optional[InlineQueryHandler]:
        with self._lock:
            return self._inlineQueryHandlers.get(query)

    # Fallback

    def setAnyUpdateHandler(self, handler: AnyUpdateHandler) -> None:
        """Register the handler called when nothing else matched."""
        _validateHandler(handler)
        with self._lock:
            self._anyUpdateHandler = handler

    def clearAnyUpdateHandler(self) -> None:
        with self._lock:
            self._anyUpdateHandler = None

    def getAnyUpdateHandler(self) -> Optional[AnyUpdateHandler]:
        with self._lock:
            return self._anyUpdateHandler

    def clearAll(self) -> None:
        """Remove every registration."""
        with self._lock:
            self._typeHandlers.clear()
            self._commandHandlers.clear()
            self._callbackHandlers.clear()
            self._inlineQueryHandlers.clear()
            self._anyUpdateHandler = None
        logger.debug("Cleared all handlers")

    def snapshot(self) -> Dict[str, int]:
        """Get number of registrations per table.

        Returns:
            Dictionary with registration counts
        """
        with self._lock:
            return {
                "type_handlers": len(self._typeHandlers),
                "commands": len(self._commandHandlers),
                "callbacks": len(self._callbackHandlers),
                "inline_queries": len(self._inlineQueryHandlers),
                "any_update": int(self._anyUpdateHandler is not None),
            }
