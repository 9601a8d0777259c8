"""
Ingestion session state.

A Session belongs to one bot instance and tracks its lifecycle
(stopped -> starting -> running -> stopping -> stopped), the chosen
ingestion mode and the fatal error that ended the last run, if any.
"""

import asyncio
import logging
from enum import StrEnum
from typing import Dict, FrozenSet, Optional

from .exceptions import BotError, FatalIngestionError

logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    """Lifecycle states of a bot session"""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class IngestionMode(StrEnum):
    """How updates reach the bot"""

    POLLING = "polling"
    WEBHOOK = "webhook"


ALLOWED_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.STOPPED: frozenset({SessionState.STARTING}),
    # STARTING -> STOPPED is the rollback of a failed start
    SessionState.STARTING: frozenset({SessionState.RUNNING, SessionState.STOPPED}),
    SessionState.RUNNING: frozenset({SessionState.STOPPING}),
    SessionState.STOPPING: frozenset({SessionState.STOPPED}),
}


class Session:
    """Lifecycle state of one bot instance.

    Attributes:
        mode: Ingestion mode chosen at bot construction
        state: Current lifecycle state
    """

    def __init__(self, mode: IngestionMode):
        self.mode = IngestionMode(mode)
        self.state = SessionState.STOPPED
        self._fatalError: Optional[FatalIngestionError] = None
        self._stoppedEvent: Optional[asyncio.Event] = None

    def __repr__(self) -> str:
        return f"Session(mode={self.mode}, state={self.state})"

    @property
    def fatalError(self) -> Optional[FatalIngestionError]:
        """Fatal error that ended the current or last run, not consumed by reading"""
        return self._fatalError

    def transition(self, newState: SessionState) -> None:
        """Move to ``newState``.

        Raises:
            BotError: If the transition is not allowed from the current state
        """
        if newState not in ALLOWED_TRANSITIONS[self.state]:
            raise BotError(f"Illegal session transition {self.state} -> {newState}")

        logger.debug(f"Session {self.mode}: {self.state} -> {newState}")
        self.state = newState
        if newState == SessionState.STARTING:
            self._fatalError = None
            self._stoppedEvent = asyncio.Event()
        elif newState == SessionState.STOPPED and self._stoppedEvent is not None:
            self._stoppedEvent.set()

    def setFatalError(self, error: FatalIngestionError) -> None:
        """Remember the error that ends this run, the first one wins."""
        if self._fatalError is None:
            self._fatalError = error

    def takeFatalError(self) -> Optional[FatalIngestionError]:
        """Return the fatal error once, subsequent calls get None."""
        error, self._fatalError = self._fatalError, None
        return error

    async def waitStopped(self) -> None:
        """Wait until the session reaches STOPPED."""
        while self.state != SessionState.STOPPED:
            event = self._stoppedEvent
            if event is None:
                return
            await event.wait()
