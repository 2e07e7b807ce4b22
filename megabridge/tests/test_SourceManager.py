"""Unit tests for SourceManager."""

from unittest.mock import patch

import pytest

from megabridge.src.SourceManager import SourceManager, SourceStatus


class TestSourceManagerInit:
    """Test SourceManager initialization."""

    def test_init_with_sources(self) -> None:
        """Sources should be tracked from init."""
        manager = SourceManager(["a", "b", "c"])
        assert manager.sources == ["a", "b", "c"]
        assert len(manager.get_all_status()) == 3

    def test_init_empty_sources(self) -> None:
        """Empty sources list should work."""
        manager = SourceManager([])
        assert manager.sources == []
        assert manager.get_active_sources() == []

    def test_backoff_disabled_by_default(self) -> None:
        """Without a base backoff, failing sources are retried every refresh."""
        manager = SourceManager(["a"])
        assert not manager.backoff_enabled
        assert manager.base_backoff_seconds == 0

    def test_negative_backoff_rejected(self) -> None:
        with pytest.raises(ValueError):
            SourceManager(["a"], base_backoff_seconds=-1)

    def test_initial_status(self) -> None:
        """Initial status should have zero failures."""
        manager = SourceManager(["a"])
        status = manager.get_source_status("a")

        assert status is not None
        assert status.consecutive_failures == 0
        assert status.backoff_until == 0.0
        assert status.total_failures == 0
        assert status.total_successes == 0
        assert status.last_success_at is None


class TestPassiveRetry:
    """Test the default mode where failures only update statistics."""

    def test_failure_keeps_source_active(self) -> None:
        manager = SourceManager(["a", "b"])
        assert manager.record_failure("a") == 0.0
        assert manager.record_failure("a") == 0.0

        assert manager.is_source_active("a")
        assert manager.get_active_sources() == ["a", "b"]
        assert manager.get_source_status("a").consecutive_failures == 2
        assert manager.get_backoff_remaining("a") == 0.0


class TestSourceManagerFailures:
    """Test failure recording and backoff."""

    def test_first_failure_backoff(self) -> None:
        """First failure should use base backoff."""
        manager = SourceManager(["a"], base_backoff_seconds=5.0)
        backoff = manager.record_failure("a")

        assert backoff == 5.0
        status = manager.get_source_status("a")
        assert status.consecutive_failures == 1
        assert status.total_failures == 1
        assert status.last_failure_at is not None

    def test_exponential_backoff(self) -> None:
        """Backoff should double with each consecutive failure."""
        manager = SourceManager(["a"], base_backoff_seconds=5.0)

        assert manager.record_failure("a") == 5.0
        assert manager.record_failure("a") == 10.0
        assert manager.record_failure("a") == 20.0
        assert manager.record_failure("a") == 40.0

    def test_max_backoff_cap(self) -> None:
        """Backoff should be capped at max_backoff_seconds."""
        manager = SourceManager(
            ["a"],
            base_backoff_seconds=100.0,
            max_backoff_seconds=150.0,
        )
        assert manager.record_failure("a") == 100.0
        assert manager.record_failure("a") == 150.0
        assert manager.record_failure("a") == 150.0

    def test_source_inactive_during_backoff(self) -> None:
        """A source in backoff is excluded until the backoff expires."""
        with patch("megabridge.src.SourceManager.time.time", return_value=1000.0):
            manager = SourceManager(["a", "b"], base_backoff_seconds=10.0)
            manager.record_failure("a")
            assert not manager.is_source_active("a")
            assert manager.get_active_sources() == ["b"]
            assert manager.get_backoff_remaining("a") == 10.0

        with patch("megabridge.src.SourceManager.time.time", return_value=1010.0):
            assert manager.is_source_active("a")
            assert manager.get_active_sources() == ["a", "b"]


class TestSourceManagerSuccess:
    """Test success recording."""

    def test_success_resets_backoff(self) -> None:
        manager = SourceManager(["a"], base_backoff_seconds=5.0)
        manager.record_failure("a")
        manager.record_failure("a")
        manager.record_success("a")

        status = manager.get_source_status("a")
        assert status.consecutive_failures == 0
        assert status.backoff_until == 0.0
        assert status.total_failures == 2
        assert status.total_successes == 1
        assert manager.is_source_active("a")

        # Next failure starts from the base again
        assert manager.record_failure("a") == 5.0


class TestUnknownSources:
    """Test handling of sources not declared at init."""

    def test_unknown_source_is_active(self) -> None:
        manager = SourceManager(["a"])
        assert manager.is_source_active("zzz")
        assert manager.get_source_status("zzz") is None

    def test_unknown_source_tracked_on_record(self) -> None:
        manager = SourceManager(["a"])
        manager.record_success("b")
        assert manager.sources == ["a", "b"]
        assert manager.get_source_status("b").total_successes == 1


class TestStatusViews:
    """Test status reporting."""

    def test_to_dict(self) -> None:
        status = SourceStatus(consecutive_failures=1, total_failures=3)
        data = status.to_dict()
        assert data["consecutive_failures"] == 1
        assert data["total_failures"] == 3
        assert data["last_success_at"] is None

    def test_reset_all(self) -> None:
        manager = SourceManager(["a", "b"], base_backoff_seconds=5.0)
        manager.record_failure("a")
        manager.record_success("b")
        manager.reset_all()

        for status in manager.get_all_status().values():
            assert status == SourceStatus()
        assert manager.get_active_sources() == ["a", "b"]
