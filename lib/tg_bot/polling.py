"""
Long polling ingestion.

The PollingIngestor runs one sequential fetch/hand-off loop: it requests the
updates after its cursor, hands the batch to the dispatcher in increasing
update_id order and only then advances the cursor. Transient failures are
retried with exponential backoff, fatal ones end the loop.
"""

import asyncio
import logging
from typing import List, Optional, Protocol

from .dispatcher import Dispatcher
from .exceptions import (
    AlreadyRunningError,
    BotError,
    FatalIngestionError,
    RateLimitError,
    TransientIngestionError,
)
from .models import UpdateList
from .observer import DispatchObserver
from .options import PollingOptions, RetryBackoff

logger = logging.getLogger(__name__)


class UpdatesSource(Protocol):
    """Anything that can fetch a batch of updates, TelegramBotClient in production."""

    async def getUpdates(
        self,
        offset: Optional[int] = None,
        timeout: int = ...,
        limit: int = ...,
        allowedUpdates: Optional[List[str]] = None,
    ) -> UpdateList: ...


class Backoff:
    """Exponential delay generator, reset after every success."""

    def __init__(self, config: RetryBackoff):
        self.config = config
        self.attempts = 0

    def nextDelay(self, override: Optional[float] = None) -> float:
        """Get delay before the next attempt and count the failure.

        Args:
            override: Delay requested by the server (retry_after), wins over
                the computed one
        """
        delay = min(self.config.maximum, self.config.initial * (self.config.multiplier**self.attempts))
        self.attempts += 1
        if override is not None and override >= 0:
            return float(override)
        return delay

    def reset(self) -> None:
        self.attempts = 0


class PollingIngestor:
    """Pull-based ingestor feeding the dispatcher from getUpdates.

    Attributes:
        cursor: Highest update_id already handed off, None before the first batch
        handedOff: Number of updates given to the dispatcher so far
    """

    def __init__(
        self,
        source: UpdatesSource,
        dispatcher: Dispatcher,
        options: Optional[PollingOptions] = None,
        observer: Optional[DispatchObserver] = None,
    ):
        self.source = source
        self.dispatcher = dispatcher
        self.options = options or PollingOptions()
        self.observer = observer if observer is not None else dispatcher.observer
        self.cursor: Optional[int] = None
        self.handedOff = 0
        self._task: Optional[asyncio.Task] = None
        self._stopping = False

    @property
    def isRunning(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Launch the polling loop as a background task."""
        if self.isRunning:
            raise AlreadyRunningError("Polling is already started")

        self._stopping = False
        self._task = asyncio.create_task(self._pollLoop(), name="tg-bot-polling")
        logger.info("Started polling for updates")

    async def stop(self) -> None:
        """Cancel the in-flight fetch or backoff sleep and wait for the loop to exit.

        Idempotent. A batch being handed off is always completed first since the
        hand-off contains no await point.
        """
        self._stopping = True
        task = self._task
        if task is None or task.done():
            return

        task.cancel()
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            # Already reported through wait(), stop() itself never fails
            logger.debug(f"Polling loop ended with {type(task.exception()).__name__} before stop")
        logger.info("Stopped polling for updates")

    async def wait(self) -> None:
        """Wait until the polling loop ends.

        Raises:
            FatalIngestionError: If the loop ended because of a fatal error
        """
        task = self._task
        if task is None:
            return
        await asyncio.wait({task})
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            raise error

    async def _pollLoop(self) -> None:
        backoff = Backoff(self.options.retryBackoff)
        failures = 0

        while not self._stopping:
            offset = self.cursor + 1 if self.cursor is not None else None
            try:
                batch = await self.source.getUpdates(
                    offset=offset,
                    timeout=self.options.timeout,
                    limit=self.options.limit,
                    allowedUpdates=self.options.allowedUpdates,
                )
            except FatalIngestionError as e:
                logger.error(f"Fatal error while fetching updates: {type(e).__name__}#{e}")
                self.observer.onIngestionError(e, True)
                raise
            except Exception as e:
                error: BotError = (
                    e
                    if isinstance(e, TransientIngestionError)
                    else TransientIngestionError(f"Unexpected error while fetching updates: {type(e).__name__}#{e}")
                )
                if not isinstance(e, BotError):
                    logger.exception(e)
                failures += 1
                self.observer.onIngestionError(error, False)

                retryLimit = self.options.retryLimit
                if retryLimit is not None and failures > retryLimit:
                    fatal = FatalIngestionError(f"Giving up after {failures} failed fetches, last error: {error}")
                    logger.error(str(fatal))
                    self.observer.onIngestionError(fatal, True)
                    raise fatal from e

                delay = backoff.nextDelay(e.retryAfter if isinstance(e, RateLimitError) else None)
                logger.warning(f"Fetching updates failed ({failures} in a row): {error}, retrying in {delay:.1f}s")
                await asyncio.sleep(delay)
                continue

            failures = 0
            backoff.reset()
            self._handOff(batch)

    def _handOff(self, batch: UpdateList) -> None:
        # No await in here: stop() can not interrupt a batch midway
        highest = self.cursor
        for update in batch.updates:
            if highest is not None and update.update_id <= highest:
                logger.debug(f"Skipping already handed off Update#{update.update_id}")
                continue
            self.dispatcher.dispatch(update)
            self.handedOff += 1
            highest = update.update_id

        if batch.maxUpdateId is not None and (highest is None or batch.maxUpdateId > highest):
            highest = batch.maxUpdateId
        if highest != self.cursor:
            logger.debug(f"Polling cursor advanced {self.cursor} -> {highest}")
            self.cursor = highest
