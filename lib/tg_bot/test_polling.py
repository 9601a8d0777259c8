"""
Unit tests for the long polling ingestor

This module tests cursor handling, ordered hand-off, retry with backoff,
fatal error propagation and stopping of the PollingIngestor against a
scripted updates source.
"""

import asyncio
import json
from typing import Any, List, Optional

import httpx
import pytest

from .client import TelegramBotClient
from .dispatcher import Dispatcher
from .exceptions import (
    AlreadyRunningError,
    AuthenticationError,
    FatalIngestionError,
    NetworkError,
    RateLimitError,
)
from .handlers import HandlerRegistry
from .models import UpdateList, UpdateType
from .observer import StatsObserver
from .options import DispatcherOptions, PollingOptions, RetryBackoff
from .polling import Backoff, PollingIngestor


def rawMessage(updateId: int) -> dict:
    return {
        "update_id": updateId,
        "message": {"message_id": updateId, "date": 0, "chat": {"id": 1, "type": "private"}, "text": str(updateId)},
    }


def batch(*updateIds: int) -> UpdateList:
    return UpdateList.from_list([rawMessage(updateId) for updateId in updateIds])


class ScriptedSource:
    """Updates source returning (or raising) scripted results, then blocking like a long poll."""

    def __init__(self, script: List[Any]):
        self.script = list(script)
        self.offsets: List[Optional[int]] = []
        self.exhausted = asyncio.Event()

    async def getUpdates(self, offset=None, timeout=30, limit=100, allowedUpdates=None):
        self.offsets.append(offset)
        if not self.script:
            self.exhausted.set()
            await asyncio.Event().wait()
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


FAST_RETRY = RetryBackoff(initial=0.001, maximum=0.01, multiplier=2)


@pytest.fixture
def observer():
    """Create stats observer."""
    return StatsObserver()


@pytest.fixture
async def dispatcher(observer):
    """Create an open dispatcher recording message texts."""
    registry = HandlerRegistry()
    dispatcher = Dispatcher(registry, DispatcherOptions(workers=1), observer)
    dispatcher.handled = []

    async def onMessage(message):
        dispatcher.handled.append(int(message.text))

    registry.setTypeHandler(UpdateType.MESSAGE, onMessage)
    dispatcher.open()
    yield dispatcher
    await dispatcher.join(1)


async def runUntilExhausted(ingestor: PollingIngestor, source: ScriptedSource) -> None:
    await ingestor.start()
    await asyncio.wait_for(source.exhausted.wait(), 2)
    await ingestor.stop()


class TestBackoff:
    """Test suite for the retry delay generator."""

    def test_exponential_growth_with_cap(self):
        """Test delays grow by multiplier and stop at maximum, dood!"""
        backoff = Backoff(RetryBackoff(initial=1, maximum=5, multiplier=2))

        assert [backoff.nextDelay() for _ in range(5)] == [1, 2, 4, 5, 5]

    def test_reset(self):
        """Test reset starts over from the initial delay, dood!"""
        backoff = Backoff(RetryBackoff(initial=1, maximum=60, multiplier=3))
        backoff.nextDelay()
        backoff.nextDelay()
        backoff.reset()

        assert backoff.nextDelay() == 1

    def test_override(self):
        """Test server-requested delay wins over the computed one, dood!"""
        backoff = Backoff(RetryBackoff(initial=1, maximum=60, multiplier=2))

        assert backoff.nextDelay(7) == 7.0
        assert backoff.nextDelay() == 2


class TestPollingIngestor:
    """Test suite for PollingIngestor."""

    async def test_hand_off_in_order_and_cursor(self, dispatcher):
        """Test updates reach the dispatcher in order and offsets follow the cursor, dood!"""
        source = ScriptedSource([batch(3, 1, 2), batch(4, 5)])
        ingestor = PollingIngestor(source, dispatcher, PollingOptions(retryBackoff=FAST_RETRY))

        await runUntilExhausted(ingestor, source)
        await dispatcher.join(1)

        assert dispatcher.handled == [1, 2, 3, 4, 5]
        assert source.offsets == [None, 4, 6]
        assert ingestor.cursor == 5
        assert ingestor.handedOff == 5

    async def test_no_duplicates_across_batches(self, dispatcher):
        """Test updates at or below the cursor are never handed off again, dood!"""
        source = ScriptedSource([batch(1, 2), batch(2, 3), batch(1)])
        ingestor = PollingIngestor(source, dispatcher, PollingOptions(retryBackoff=FAST_RETRY))

        await runUntilExhausted(ingestor, source)
        await dispatcher.join(1)

        assert dispatcher.handled == [1, 2, 3]
        assert ingestor.cursor == 3

    async def test_empty_batch_keeps_cursor(self, dispatcher):
        """Test an empty long poll result does not move the cursor, dood!"""
        source = ScriptedSource([batch(10), batch()])
        ingestor = PollingIngestor(source, dispatcher, PollingOptions(retryBackoff=FAST_RETRY))

        await runUntilExhausted(ingestor, source)

        assert source.offsets == [None, 11, 11]
        assert ingestor.cursor == 10

    async def test_cursor_skips_malformed_entries(self, dispatcher):
        """Test malformed entries are not refetched, dood!"""
        malformed = UpdateList.from_list([rawMessage(1), {"update_id": 2, "message": "broken"}])
        source = ScriptedSource([malformed])
        ingestor = PollingIngestor(source, dispatcher, PollingOptions(retryBackoff=FAST_RETRY))

        await runUntilExhausted(ingestor, source)
        await dispatcher.join(1)

        assert malformed.skipped == 1
        assert dispatcher.handled == [1]
        assert source.offsets == [None, 3]

    async def test_bad_nested_payload_does_not_block_later_updates(self, dispatcher, observer):
        """Test an update with a broken nested object is skipped over the real client, dood!"""
        poisoned = {"update_id": 5, "message": {"message_id": 5, "date": 0, "chat": "oops", "text": "5"}}
        offsets: List[Optional[int]] = []
        exhausted = asyncio.Event()

        async def answer(request: httpx.Request) -> httpx.Response:
            offsets.append(json.loads(request.content).get("offset", None))
            if len(offsets) > 1:
                exhausted.set()
                await asyncio.Event().wait()
            return httpx.Response(200, json={"ok": True, "result": [poisoned, rawMessage(6)]})

        client = TelegramBotClient("123456:TEST", baseUrl="https://api.test", transport=httpx.MockTransport(answer))
        ingestor = PollingIngestor(client, dispatcher, PollingOptions(retryBackoff=FAST_RETRY))

        await ingestor.start()
        await asyncio.wait_for(exhausted.wait(), 2)
        await ingestor.stop()
        await dispatcher.join(1)
        await client.aclose()

        assert dispatcher.handled == [6]
        assert offsets == [None, 7]
        assert observer.getStats()["transient_errors"] == 0

    async def test_transient_errors_are_retried(self, dispatcher, observer):
        """Test network and API failures are retried and the cursor is kept, dood!"""
        source = ScriptedSource([batch(1), NetworkError("down"), RuntimeError("weird"), batch(2)])
        ingestor = PollingIngestor(source, dispatcher, PollingOptions(retryBackoff=FAST_RETRY))

        await runUntilExhausted(ingestor, source)
        await dispatcher.join(1)

        assert dispatcher.handled == [1, 2]
        assert source.offsets == [None, 2, 2, 2, 3]
        assert observer.getStats()["transient_errors"] == 2

    async def test_rate_limit_uses_retry_after(self, dispatcher, monkeypatch):
        """Test retry_after from a 429 response is used as the delay, dood!"""
        delays = []
        realSleep = asyncio.sleep

        async def fakeSleep(delay):
            delays.append(delay)
            await realSleep(0)

        source = ScriptedSource([RateLimitError("slow down", retryAfter=3), batch(1)])
        ingestor = PollingIngestor(source, dispatcher, PollingOptions(retryBackoff=FAST_RETRY))
        await ingestor.start()
        monkeypatch.setattr("asyncio.sleep", fakeSleep)
        try:
            await asyncio.wait_for(source.exhausted.wait(), 2)
        finally:
            monkeypatch.undo()
            await ingestor.stop()

        assert 3.0 in delays

    async def test_fatal_error_ends_loop(self, dispatcher, observer):
        """Test authentication failure stops polling and is raised from wait, dood!"""
        source = ScriptedSource([batch(1), AuthenticationError("Unauthorized")])
        ingestor = PollingIngestor(source, dispatcher, PollingOptions(retryBackoff=FAST_RETRY))

        await ingestor.start()
        with pytest.raises(AuthenticationError):
            await asyncio.wait_for(ingestor.wait(), 2)

        assert ingestor.isRunning is False
        assert ingestor.cursor == 1
        assert observer.getStats()["fatal_errors"] == 1

    async def test_retry_limit(self, dispatcher):
        """Test too many consecutive failures become fatal, dood!"""
        source = ScriptedSource([NetworkError("down")] * 3)
        ingestor = PollingIngestor(source, dispatcher, PollingOptions(retryBackoff=FAST_RETRY, retryLimit=2))

        await ingestor.start()
        with pytest.raises(FatalIngestionError):
            await asyncio.wait_for(ingestor.wait(), 2)

        assert len(source.offsets) == 3

    async def test_retry_limit_counts_consecutive_failures(self, dispatcher):
        """Test a successful fetch resets the failure counter, dood!"""
        down = NetworkError("down")
        source = ScriptedSource([down, down, batch(1), down, down, batch(2)])
        ingestor = PollingIngestor(source, dispatcher, PollingOptions(retryBackoff=FAST_RETRY, retryLimit=2))

        await runUntilExhausted(ingestor, source)
        await dispatcher.join(1)

        assert dispatcher.handled == [1, 2]

    async def test_stop_interrupts_long_poll(self, dispatcher):
        """Test stop cancels an in-flight fetch promptly and is idempotent, dood!"""
        source = ScriptedSource([])
        ingestor = PollingIngestor(source, dispatcher)

        await ingestor.start()
        await asyncio.wait_for(source.exhausted.wait(), 1)
        await asyncio.wait_for(ingestor.stop(), 1)
        await ingestor.stop()

        assert ingestor.isRunning is False
        await ingestor.wait()

    async def test_start_twice(self, dispatcher):
        """Test second start while polling is an error, dood!"""
        ingestor = PollingIngestor(ScriptedSource([]), dispatcher)

        await ingestor.start()
        try:
            with pytest.raises(AlreadyRunningError):
                await ingestor.start()
        finally:
            await ingestor.stop()

    async def test_options_are_passed_to_source(self, dispatcher):
        """Test timeout, limit and allowed updates reach getUpdates, dood!"""
        calls = []

        class RecordingSource(ScriptedSource):
            async def getUpdates(self, offset=None, timeout=30, limit=100, allowedUpdates=None):
                calls.append((timeout, limit, allowedUpdates))
                return await super().getUpdates(offset, timeout, limit, allowedUpdates)

        source = RecordingSource([])
        options = PollingOptions(timeout=5, limit=10, allowedUpdates=["message"])
        ingestor = PollingIngestor(source, dispatcher, options)

        await runUntilExhausted(ingestor, source)

        assert calls == [(5, 10, ["message"])]
