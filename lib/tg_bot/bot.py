"""
Bot facade of the update runtime.

Bot ties together the handler registry, the dispatcher, one ingestor (long
polling or webhook) and the session lifecycle, and exposes the
application-facing registration and lifecycle API.

Example:
    >>> bot = Bot.createPolling("MyBot", token)
    >>> async def start(message, argument):
    ...     print(message.chat.id, argument)
    >>> bot.onCommand("/start", start)
    >>> bot.run()
"""

import asyncio
import logging
import signal
from typing import Optional, Set, Union

from .client import TelegramBotClient
from .constants import API_BASE_URL
from .dispatcher import Dispatcher, ErrorHandler
from .exceptions import AlreadyRunningError, FatalIngestionError, ValidationError
from .handlers import (
    AnyUpdateHandler,
    CallbackQueryHandler,
    CommandHandler,
    HandlerRegistry,
    InlineQueryHandler,
    TypeHandler,
)
from .models import UpdateType
from .observer import DispatchObserver, StatsObserver
from .options import DispatcherOptions, PollingOptions, WebhookOptions
from .polling import PollingIngestor
from .session import IngestionMode, Session, SessionState
from .webhook import WebhookIngestor

logger = logging.getLogger(__name__)


class Bot:
    """Telegram bot receiving updates through exactly one ingestor, dood!

    Use ``createPolling`` or ``createWebhook`` to build an instance.

    Attributes:
        username: Bot username without the leading ``@``
        client: Outbound Bot API client
        registry: Handler registrations
        dispatcher: Routes updates to handlers
        observer: Receives dispatch outcomes and ingestion errors
        session: Lifecycle state
    """

    def __init__(
        self,
        username: str,
        token: str,
        mode: IngestionMode,
        *,
        pollingOptions: Optional[PollingOptions] = None,
        webhookOptions: Optional[WebhookOptions] = None,
        dispatcherOptions: Optional[DispatcherOptions] = None,
        observer: Optional[DispatchObserver] = None,
        client: Optional[TelegramBotClient] = None,
        baseUrl: str = API_BASE_URL,
    ):
        """Initialize the bot.

        Args:
            username: Bot username without leading ``@``
            token: Bot token
            mode: Ingestion mode
            pollingOptions: Long polling configuration (polling mode)
            webhookOptions: Listener configuration (webhook mode)
            dispatcherOptions: Handler worker pool configuration
            observer: Observability collaborator (StatsObserver if not provided)
            client: Preconfigured API client
            baseUrl: Bot API base URL, used when no client is given

        Raises:
            ValidationError: If username or token is invalid
        """
        if not isinstance(username, str) or not username.strip() or username.startswith("@"):
            raise ValidationError("Invalid username. Expected non-blank username without leading '@'")
        if not isinstance(token, str) or not token.strip():
            raise ValidationError("Invalid token. Expected non-blank bot token")

        self.username = username.strip()
        self.client = client if client is not None else TelegramBotClient(token, baseUrl=baseUrl)
        self.observer = observer if observer is not None else StatsObserver()
        self.registry = HandlerRegistry()
        self.dispatcherOptions = dispatcherOptions or DispatcherOptions()
        self.dispatcher = Dispatcher(self.registry, self.dispatcherOptions, self.observer, self.username)
        self.session = Session(mode)

        self.ingestor: Union[PollingIngestor, WebhookIngestor]
        if self.session.mode == IngestionMode.POLLING:
            self.ingestor = PollingIngestor(self.client, self.dispatcher, pollingOptions, self.observer)
        else:
            self.ingestor = WebhookIngestor(self.dispatcher, webhookOptions, self.observer)

        self._lifecycleLock = asyncio.Lock()
        self._watchTask: Optional[asyncio.Task] = None
        self._signalTasks: Set[asyncio.Task] = set()

    @classmethod
    def createPolling(
        cls,
        username: str,
        token: str,
        pollingOptions: Optional[PollingOptions] = None,
        **kwargs,
    ) -> "Bot":
        """Create a bot receiving updates with getUpdates long polling."""
        return cls(username, token, IngestionMode.POLLING, pollingOptions=pollingOptions, **kwargs)

    @classmethod
    def createWebhook(
        cls,
        username: str,
        token: str,
        webhookOptions: Optional[WebhookOptions] = None,
        **kwargs,
    ) -> "Bot":
        """Create a bot receiving updates on a local webhook listener.

        The webhook itself must be registered with the platform
        (``bot.client.setWebhook``) before ``start()``.
        """
        return cls(username, token, IngestionMode.WEBHOOK, webhookOptions=webhookOptions, **kwargs)

    ###
    # Registration API
    ###

    def onMessage(self, handler: TypeHandler) -> None:
        self.registry.setTypeHandler(UpdateType.MESSAGE, handler)

    def onEditedMessage(self, handler: TypeHandler) -> None:
        self.registry.setTypeHandler(UpdateType.EDITED_MESSAGE, handler)

    def onChannelPost(self, handler: TypeHandler) -> None:
        self.registry.setTypeHandler(UpdateType.CHANNEL_POST, handler)

    def onEditedChannelPost(self, handler: TypeHandler) -> None:
        self.registry.setTypeHandler(UpdateType.EDITED_CHANNEL_POST, handler)

    def onInlineQuery(self, handler: InlineQueryHandler, query: Optional[str] = None) -> None:
        """Register an inline query handler.

        Args:
            handler: Called with the InlineQuery
            query: Exact query text to match, None registers the generic handler
        """
        if query is None:
            self.registry.setTypeHandler(UpdateType.INLINE_QUERY, handler)
        else:
            self.registry.setInlineQueryHandler(query, handler)

    def onChosenInlineResult(self, handler: TypeHandler) -> None:
        self.registry.setTypeHandler(UpdateType.CHOSEN_INLINE_RESULT, handler)

    def onCallbackQuery(self, handler: CallbackQueryHandler, data: Optional[str] = None) -> None:
        """Register a callback query handler.

        Args:
            handler: Called with the CallbackQuery
            data: Exact callback data to match, None registers the generic handler
        """
        if data is None:
            self.registry.setTypeHandler(UpdateType.CALLBACK_QUERY, handler)
        else:
            self.registry.setCallbackHandler(data, handler)

    def onShippingQuery(self, handler: TypeHandler) -> None:
        self.registry.setTypeHandler(UpdateType.SHIPPING_QUERY, handler)

    def onPreCheckoutQuery(self, handler: TypeHandler) -> None:
        self.registry.setTypeHandler(UpdateType.PRE_CHECKOUT_QUERY, handler)

    def onCommand(self, command: str, handler: CommandHandler) -> None:
        """Register a command handler called with (message, argument-or-None).

        Raises:
            ValidationError: If the command is malformed
        """
        self.registry.setCommandHandler(command, handler)

    def onAnyUpdate(self, handler: AnyUpdateHandler) -> None:
        """Register the handler for updates nothing else matched, called with the Update."""
        self.registry.setAnyUpdateHandler(handler)

    def removeMessageHandler(self) -> None:
        self.registry.clearTypeHandler(UpdateType.MESSAGE)

    def removeEditedMessageHandler(self) -> None:
        self.registry.clearTypeHandler(UpdateType.EDITED_MESSAGE)

    def removeChannelPostHandler(self) -> None:
        self.registry.clearTypeHandler(UpdateType.CHANNEL_POST)

    def removeEditedChannelPostHandler(self) -> None:
        self.registry.clearTypeHandler(UpdateType.EDITED_CHANNEL_POST)

    def removeInlineQueryHandler(self, query: Optional[str] = None) -> None:
        if query is None:
            self.registry.clearTypeHandler(UpdateType.INLINE_QUERY)
        else:
            self.registry.clearInlineQueryHandler(query)

    def removeChosenInlineResultHandler(self) -> None:
        self.registry.clearTypeHandler(UpdateType.CHOSEN_INLINE_RESULT)

    def removeCallbackQueryHandler(self, data: Optional[str] = None) -> None:
        if data is None:
            self.registry.clearTypeHandler(UpdateType.CALLBACK_QUERY)
        else:
            self.registry.clearCallbackHandler(data)

    def removeShippingQueryHandler(self) -> None:
        self.registry.clearTypeHandler(UpdateType.SHIPPING_QUERY)

    def removePreCheckoutQueryHandler(self) -> None:
        self.registry.clearTypeHandler(UpdateType.PRE_CHECKOUT_QUERY)

    def removeCommandHandler(self, command: str) -> None:
        self.registry.clearCommandHandler(command)

    def removeAnyUpdateHandler(self) -> None:
        self.registry.clearAnyUpdateHandler()

    def addErrorHandler(self, handler: ErrorHandler) -> None:
        """Add a callback receiving (HandlerError, update) when a handler fails."""
        self.dispatcher.addErrorHandler(handler)

    ###
    # Lifecycle API
    ###

    @property
    def isRunning(self) -> bool:
        return self.session.state == SessionState.RUNNING

    async def start(self) -> None:
        """Open the dispatcher and launch the configured ingestor.

        Raises:
            AlreadyRunningError: If the session is not stopped. Starting a
                running bot is an error, not a no-op
            FatalIngestionError: If the ingestor fails to start, the session
                is rolled back to stopped
        """
        async with self._lifecycleLock:
            if self.session.state != SessionState.STOPPED:
                raise AlreadyRunningError(f"Bot @{self.username} is {self.session.state}")

            self.session.transition(SessionState.STARTING)
            logger.info(f"Starting @{self.username} in {self.session.mode} mode")
            try:
                self.dispatcher.open()
                await self.ingestor.start()
            except Exception as e:
                logger.error(f"Failed to start @{self.username}: {type(e).__name__}#{e}")
                self.dispatcher.close()
                await self.dispatcher.join(self.dispatcherOptions.shutdownTimeout)
                self.session.transition(SessionState.STOPPED)
                raise

            self.session.transition(SessionState.RUNNING)
            self._watchTask = asyncio.create_task(self._watchIngestor(), name="tg-bot-watch")
            logger.info(f"@{self.username} is running")

    async def stop(self) -> None:
        """Stop ingestion, safe in any state, idempotent, never raises.

        After it returns no further handler is scheduled, handlers already
        scheduled get up to ``shutdownTimeout`` seconds to complete.
        """
        if self.session.state in (SessionState.STOPPED, SessionState.STOPPING):
            # Dispatcher is already closed, a handler stopping its own bot must not wait here
            logger.debug(f"stop() ignored, session is {self.session.state}")
            return

        async with self._lifecycleLock:
            if self.session.state != SessionState.RUNNING:
                logger.debug(f"stop() ignored, session is {self.session.state}")
                return

            self.session.transition(SessionState.STOPPING)
            logger.info(f"Stopping @{self.username}...")
            self.dispatcher.close()
            try:
                await self.ingestor.stop()
            except Exception as e:
                logger.error(f"Error while stopping {self.session.mode} ingestor: {type(e).__name__}#{e}")
                logger.exception(e)
            await self.dispatcher.join(self.dispatcherOptions.shutdownTimeout)
            self.session.transition(SessionState.STOPPED)
            logger.info(f"@{self.username} stopped")

    async def waitUntilStopped(self) -> None:
        """Wait for the session to stop.

        Raises:
            FatalIngestionError: If a fatal error ended the session, only to the
                first caller after it happened
        """
        await self.session.waitStopped()
        error = self.session.takeFatalError()
        if error is not None:
            raise error

    async def _watchIngestor(self) -> None:
        try:
            await self.ingestor.wait()
        except FatalIngestionError as e:
            self.session.setFatalError(e)
        except Exception as e:
            logger.exception(e)
            self.session.setFatalError(FatalIngestionError(f"Ingestor crashed: {type(e).__name__}#{e}"))

        if self.session.state == SessionState.RUNNING:
            logger.error(f"{self.session.mode} ingestion ended on its own, stopping @{self.username}")
            await self.stop()

    def _requestStop(self) -> None:
        task = asyncio.create_task(self.stop())
        self._signalTasks.add(task)
        task.add_done_callback(self._signalTasks.discard)

    async def runAsync(self) -> None:
        """Start, wait until stopped by a signal or a fatal error, then release resources."""
        loop = asyncio.get_running_loop()
        installedSignals = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._requestStop)
                installedSignals.append(sig)
            except NotImplementedError:
                logger.debug(f"Signal handlers are not supported, {sig.name} will not stop the bot")

        try:
            await self.start()
            await self.waitUntilStopped()
        finally:
            await self.stop()
            await self.client.aclose()
            for sig in installedSignals:
                loop.remove_signal_handler(sig)

    def run(self) -> None:
        """Blocking convenience wrapper around ``runAsync()``.

        Raises:
            FatalIngestionError: If a fatal error ended the session
        """
        asyncio.run(self.runAsync())
