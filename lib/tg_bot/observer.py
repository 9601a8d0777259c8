"""
Observability hooks of the update runtime.

The dispatcher reports every update outcome and the ingestors report every
fetch or listener failure to a DispatchObserver. StatsObserver is the default
implementation: it logs and keeps counters.
"""

import logging
from collections import Counter
from enum import StrEnum
from threading import Lock
from typing import Any, Dict, Optional

from .exceptions import BotError
from .models import UpdateType

logger = logging.getLogger(__name__)


class DispatchOutcome(StrEnum):
    """Result of routing one update"""

    HANDLED = "handled"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    DROPPED = "dropped"
    """No handler matched at any priority level, not an error"""


class DispatchObserver:
    """Base observer, every hook is a no-op.

    Hooks are called from the event loop and must not block.
    """

    def onDispatch(self, updateType: UpdateType, outcome: DispatchOutcome, error: Optional[BotError] = None) -> None:
        pass

    def onIngestionError(self, error: BotError, fatal: bool) -> None:
        pass


class StatsObserver(DispatchObserver):
    """Observer counting outcomes per update type and ingestion errors."""

    def __init__(self):
        self._lock = Lock()
        self._outcomes: Counter = Counter()
        self._byType: Counter = Counter()
        self._transientErrors = 0
        self._fatalErrors = 0

    def onDispatch(self, updateType: UpdateType, outcome: DispatchOutcome, error: Optional[BotError] = None) -> None:
        with self._lock:
            self._outcomes[outcome] += 1
            self._byType[(updateType, outcome)] += 1

        if outcome == DispatchOutcome.DROPPED:
            logger.debug(f"No handler for {updateType} update, dropped")

    def onIngestionError(self, error: BotError, fatal: bool) -> None:
        with self._lock:
            if fatal:
                self._fatalErrors += 1
            else:
                self._transientErrors += 1

        if fatal:
            logger.error(f"Fatal ingestion error: {type(error).__name__}#{error}")
        else:
            logger.warning(f"Transient ingestion error: {type(error).__name__}#{error}")

    def getStats(self) -> Dict[str, Any]:
        """Get collected counters.

        Returns:
            Dictionary with outcome totals, per-type breakdown and ingestion error counts
        """
        with self._lock:
            return {
                "outcomes": {str(outcome): self._outcomes[outcome] for outcome in DispatchOutcome},
                "by_type": {f"{updateType}:{outcome}": count for (updateType, outcome), count in self._byType.items()},
                "transient_errors": self._transientErrors,
                "fatal_errors": self._fatalErrors,
            }

    def resetStats(self) -> None:
        with self._lock:
            self._outcomes.clear()
            self._byType.clear()
            self._transientErrors = 0
            self._fatalErrors = 0
