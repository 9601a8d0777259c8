"""
Unit tests for dispatch observers
"""

from .exceptions import FatalIngestionError, HandlerError, NetworkError
from .models import UpdateType
from .observer import DispatchObserver, DispatchOutcome, StatsObserver


class TestStatsObserver:
    """Test suite for StatsObserver."""

    def test_counts_outcomes(self):
        """Test outcomes are counted in total and per update type, dood!"""
        observer = StatsObserver()
        error = HandlerError("failed", RuntimeError("boom"))

        observer.onDispatch(UpdateType.MESSAGE, DispatchOutcome.HANDLED)
        observer.onDispatch(UpdateType.MESSAGE, DispatchOutcome.HANDLED)
        observer.onDispatch(UpdateType.CALLBACK_QUERY, DispatchOutcome.FAILED, error)
        observer.onDispatch(UpdateType.UNKNOWN, DispatchOutcome.DROPPED)

        stats = observer.getStats()
        assert stats["outcomes"] == {"handled": 2, "failed": 1, "timed_out": 0, "dropped": 1}
        assert stats["by_type"] == {
            "message:handled": 2,
            "callback_query:failed": 1,
            "unknown:dropped": 1,
        }

    def test_counts_ingestion_errors(self):
        """Test transient and fatal ingestion errors are counted apart, dood!"""
        observer = StatsObserver()

        observer.onIngestionError(NetworkError("down"), False)
        observer.onIngestionError(NetworkError("down"), False)
        observer.onIngestionError(FatalIngestionError("gone"), True)

        stats = observer.getStats()
        assert stats["transient_errors"] == 2
        assert stats["fatal_errors"] == 1

    def test_reset(self):
        """Test counters reset, dood!"""
        observer = StatsObserver()
        observer.onDispatch(UpdateType.MESSAGE, DispatchOutcome.HANDLED)
        observer.onIngestionError(NetworkError("down"), False)

        observer.resetStats()

        stats = observer.getStats()
        assert set(stats["outcomes"].values()) == {0}
        assert stats["by_type"] == {}
        assert stats["transient_errors"] == 0


class TestDispatchObserver:
    """Test suite for the no-op base observer."""

    def test_hooks_do_nothing(self):
        """Test base observer accepts every call, dood!"""
        observer = DispatchObserver()

        assert observer.onDispatch(UpdateType.MESSAGE, DispatchOutcome.HANDLED) is None
        assert observer.onIngestionError(NetworkError("down"), False) is None
