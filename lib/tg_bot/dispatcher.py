"""
Update dispatcher for the Telegram bot runtime.

This module routes every incoming update to at most one handler. Selection
follows a fixed priority order and happens synchronously when the update is
handed off, the selected handler then runs on the handler task queue so
ingestion never waits for application code.

Priority order:
    1. exact command (message updates)
    2. exact callback data (callback query updates)
    3. exact inline query text (inline query updates)
    4. generic handler for the update type
    5. any-update handler
    6. drop
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union

from .commands import parseCommand
from .exceptions import HandlerError
from .handlers import HandlerRegistry
from .models import Update, UpdateType
from .observer import DispatchObserver, DispatchOutcome, StatsObserver
from .options import DispatcherOptions
from .task_queue import HandlerTaskQueue

logger = logging.getLogger(__name__)

ErrorHandler = Union[
    Callable[[HandlerError, Update], None],
    Callable[[HandlerError, Update], Awaitable[None]],
]


@dataclass(frozen=True)
class HandlerInvocation:
    """
    Handler selected for an update together with its call arguments.

    Attributes:
        kind: Which priority level matched (command, callback, inline_query, type, any_update)
        handler: Application callable
        args: Positional arguments the handler is called with
    """

    kind: str
    handler: Callable[..., Any]
    args: Tuple[Any, ...]


class Dispatcher:
    """Update dispatcher that routes updates to handlers.

    The dispatcher is opened by the session before ingestion starts and closed
    before ingestion shuts down. While closed, ``dispatch()`` rejects every
    update, so nothing is scheduled after ``close()`` returns.
    """

    def __init__(
        self,
        registry: Optional[HandlerRegistry] = None,
        options: Optional[DispatcherOptions] = None,
        observer: Optional[DispatchObserver] = None,
        botUsername: Optional[str] = None,
    ):
        """Initialize the dispatcher.

        Args:
            registry: Handler registry to use (creates new one if not provided)
            options: Worker pool and timeout configuration
            observer: Receives every dispatch outcome (StatsObserver if not provided)
            botUsername: This bot's username, used to filter ``/command@botname``
        """
        self.registry = registry if registry is not None else HandlerRegistry()
        self.options = options or DispatcherOptions()
        self.observer = observer if observer is not None else StatsObserver()
        self.botUsername = botUsername
        self.errorHandlers: List[ErrorHandler] = []
        self._queue: Optional[HandlerTaskQueue] = None

    @property
    def isOpen(self) -> bool:
        return self._queue is not None and self._queue.accepting

    def open(self) -> None:
        """Start handler workers, must be called from a running event loop."""
        if self.isOpen:
            return
        self._queue = HandlerTaskQueue(self.options.workers, name="handler")
        self._queue.start()
        logger.debug("Dispatcher opened")

    def close(self) -> None:
        """Stop scheduling handlers, idempotent. Already scheduled work keeps running."""
        if self._queue is not None:
            self._queue.close()
            logger.debug("Dispatcher closed")

    async def join(self, timeout: Optional[float] = None) -> None:
        """Close and wait for scheduled handlers to finish."""
        queue = self._queue
        if queue is None:
            return
        await queue.join(timeout)

    def addErrorHandler(self, handler: ErrorHandler) -> None:
        """Add a callback receiving (HandlerError, update) for every failed handler."""
        self.errorHandlers.append(handler)
        logger.debug("Added error handler")

    def removeErrorHandler(self, handler: ErrorHandler) -> bool:
        """Remove an error handler.

        Returns:
            True if the handler was found and removed
        """
        if handler in self.errorHandlers:
            self.errorHandlers.remove(handler)
            logger.debug("Removed error handler")
            return True
        return False

    def selectHandler(self, update: Update) -> Optional[HandlerInvocation]:
        """Pick the single handler for an update.

        Returns:
            The invocation to run, or None if the update should be dropped
        """
        registry = self.registry
        updateType = update.update_type

        if updateType == UpdateType.MESSAGE:
            message = update.message
            parsed = parseCommand(message.text if message is not None else None, self.botUsername)
            if parsed is not None:
                handler = registry.getCommandHandler(parsed.command)
                if handler is not None:
                    return HandlerInvocation("command", handler, (message, parsed.argument))

        elif updateType == UpdateType.CALLBACK_QUERY:
            callbackQuery = update.callback_query
            if callbackQuery is not None and isinstance(callbackQuery.data, str):
                handler = registry.getCallbackHandler(callbackQuery.data)
                if handler is not None:
                    return HandlerInvocation("callback", handler, (callbackQuery,))

        elif updateType == UpdateType.INLINE_QUERY:
            inlineQuery = update.inline_query
            if inlineQuery is not None and isinstance(inlineQuery.query, str):
                handler = registry.getInlineQueryHandler(inlineQuery.query)
                if handler is not None:
                    return HandlerInvocation("inline_query", handler, (inlineQuery,))

        typeHandler = registry.getTypeHandler(updateType)
        if typeHandler is not None:
            return HandlerInvocation("type", typeHandler, (update.payload,))

        anyHandler = registry.getAnyUpdateHandler()
        if anyHandler is not None:
            return HandlerInvocation("any_update", anyHandler, (update,))

        return None

    def dispatch(self, update: Update) -> bool:
        """Hand an update off to its handler without waiting for it.

        Args:
            update: Parsed update

        Returns:
            True if a handler was scheduled, False if the update was dropped
            or the dispatcher is closed
        """
        queue = self._queue
        if queue is None or not queue.accepting:
            logger.debug(f"Dispatcher is closed, ignoring Update#{update.update_id}")
            return False

        invocation = self.selectHandler(update)
        if invocation is None:
            self.observer.onDispatch(update.update_type, DispatchOutcome.DROPPED)
            return False

        logger.debug(f"Dispatching Update#{update.update_id} ({update.update_type}) to {invocation.kind} handler")
        return queue.submit(lambda: self._invokeHandler(update, invocation))

    async def _invokeHandler(self, update: Update, invocation: HandlerInvocation) -> None:
        deadline = asyncio.timeout(self.options.handlerTimeout)
        try:
            # Runs in the worker task itself, so a handler may stop its own bot
            async with deadline:
                await self._callHandler(invocation)
        except TimeoutError as e:
            if not deadline.expired():
                # Raised by the handler itself, not by the deadline
                await self._reportFailure(update, invocation, e)
                return
            error = HandlerError(
                f"{invocation.kind} handler for Update#{update.update_id} timed out "
                f"after {self.options.handlerTimeout}s",
                e,
            )
            logger.error(str(error))
            self.observer.onDispatch(update.update_type, DispatchOutcome.TIMED_OUT, error)
            await self._handleError(error, update)
            return
        except Exception as e:
            await self._reportFailure(update, invocation, e)
            return

        self.observer.onDispatch(update.update_type, DispatchOutcome.HANDLED)

    async def _reportFailure(self, update: Update, invocation: HandlerInvocation, cause: Exception) -> None:
        error = HandlerError(
            f"Error in {invocation.kind} handler for Update#{update.update_id}: {type(cause).__name__}#{cause}", cause
        )
        logger.error(str(error))
        logger.exception(cause)
        self.observer.onDispatch(update.update_type, DispatchOutcome.FAILED, error)
        await self._handleError(error, update)

    async def _callHandler(self, invocation: HandlerInvocation) -> None:
        handler = invocation.handler
        if inspect.iscoroutinefunction(handler):
            await handler(*invocation.args)
            return

        # Plain callables run in a worker thread
        result = await asyncio.to_thread(handler, *invocation.args)
        if inspect.isawaitable(result):
            await result

    async def _handleError(self, error: HandlerError, update: Update) -> None:
        for errorHandler in list(self.errorHandlers):
            try:
                result = errorHandler(error, update)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error in error handler: {type(e).__name__}#{e}")
                logger.exception(e)
