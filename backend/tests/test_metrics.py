"""Unit tests for aggregate stats derivation."""

import math
from datetime import timedelta

import pytest

from viewership.services.metrics import compute_stats, peak_concurrent_viewers
from viewership.services.sessions import ViewerSession, build_sessions


@pytest.fixture
def make_session(t0):
    def _make(
        client_id: str,
        start: int,
        end: int,
        watch: int = 0,
        buffer: int = 0,
        errors: int = 0,
        country: str = "nl",
        device_type: str = "desktop",
    ) -> ViewerSession:
        started_at = t0 + timedelta(seconds=start)
        ended_at = t0 + timedelta(seconds=end)
        return ViewerSession(
            client_id=client_id,
            country=country,
            device_type=device_type,
            started_at=started_at,
            ended_at=ended_at,
            last_seen_at=ended_at,
            watch_seconds=watch,
            buffer_seconds=buffer,
            error_count=errors,
        )

    return _make


class TestPeakConcurrency:
    """Tests for the interval sweep."""

    def test_no_sessions(self):
        assert peak_concurrent_viewers([]) == 0

    def test_single_instant_session(self, make_session):
        assert peak_concurrent_viewers([make_session("c1", 0, 0)]) == 1

    def test_overlapping_sessions(self, make_session):
        """Three staggered sessions all overlap between +20s and +60s."""
        sessions = [
            make_session("c1", 0, 60),
            make_session("c2", 10, 70),
            make_session("c3", 20, 80),
        ]
        assert peak_concurrent_viewers(sessions) == 3

    def test_disjoint_sessions(self, make_session):
        sessions = [make_session("c1", 0, 10), make_session("c2", 100, 110)]
        assert peak_concurrent_viewers(sessions) == 1

    def test_end_is_inclusive_of_last_second(self, make_session):
        """A session starting on another's last covered second overlaps it."""
        sessions = [make_session("c1", 0, 10), make_session("c2", 10, 20)]
        assert peak_concurrent_viewers(sessions) == 2

    def test_close_applied_before_open_at_same_instant(self, make_session):
        """A start coinciding with another's nudged end does not overlap it."""
        sessions = [make_session("c1", 0, 10), make_session("c2", 11, 20)]
        assert peak_concurrent_viewers(sessions) == 1

    def test_tie_break_independent_of_input_order(self, make_session):
        sessions = [
            make_session("c2", 11, 20),
            make_session("c1", 0, 10),
            make_session("c3", 11, 11),
        ]
        assert peak_concurrent_viewers(sessions) == 2
        assert peak_concurrent_viewers(list(reversed(sessions))) == 2

    def test_peak_within_bounds(self, make_session):
        sessions = [make_session(f"c{i}", i * 7, i * 7 + 30) for i in range(20)]
        peak = peak_concurrent_viewers(sessions)
        assert 1 <= peak <= len(sessions)


class TestComputeStats:
    """Tests for totals, averages and ratios."""

    def test_empty_session_set(self):
        stats = compute_stats([])
        assert stats.unique_viewers == 0
        assert stats.total_watch_seconds == 0
        assert stats.avg_watch_seconds == 0
        assert stats.peak_concurrent_viewers == 0
        assert stats.top_countries == {}
        assert stats.device_breakdown == {}
        assert stats.buffer_ratio == 0.0
        assert stats.error_rate == 0.0

    def test_single_viewer_example(self, make_event):
        events = [
            make_event("c1", "play", 0),
            make_event("c1", "heartbeat", 15),
            make_event("c1", "ended", 30),
        ]
        stats = compute_stats(build_sessions(events, heartbeat_seconds=15))
        assert stats.unique_viewers == 1
        assert stats.total_watch_seconds == 45
        assert stats.avg_watch_seconds == 45
        assert stats.peak_concurrent_viewers == 1
        assert stats.buffer_ratio == 0.0
        assert stats.error_rate == 0.0

    def test_average_floored(self, make_session):
        sessions = [
            make_session("c1", 0, 10, watch=15),
            make_session("c2", 0, 10, watch=30),
        ]
        stats = compute_stats(sessions)
        assert stats.total_watch_seconds == 45
        assert stats.avg_watch_seconds == 22

    def test_buffer_ratio(self, make_session):
        stats = compute_stats([make_session("c1", 0, 45, watch=60, buffer=5)])
        assert stats.buffer_seconds == 5
        assert stats.buffer_ratio == pytest.approx(0.083, abs=0.001)

    def test_buffer_ratio_zero_watch(self, make_session):
        """Buffering without any watch credit stays finite."""
        stats = compute_stats([make_session("c1", 0, 5, watch=0, buffer=5)])
        assert stats.buffer_ratio == 0.0
        assert math.isfinite(stats.buffer_ratio)

    def test_error_rate_counts_sessions_not_errors(self, make_session):
        sessions = [make_session(f"c{i}", 0, 10, watch=15) for i in range(8)]
        sessions.append(make_session("c8", 0, 10, watch=15, errors=3))
        sessions.append(make_session("c9", 0, 10, watch=15, errors=1))
        assert compute_stats(sessions).error_rate == pytest.approx(0.2)

    def test_breakdowns_count_sessions(self, make_session):
        sessions = [
            make_session("c1", 0, 10, country="nl", device_type="desktop"),
            make_session("c2", 0, 10, country="nl", device_type="mobile"),
            make_session("c3", 0, 10, country="be", device_type="mobile"),
            make_session("c1", 3600, 3610, country="nl", device_type="desktop"),
        ]
        stats = compute_stats(sessions)
        assert stats.unique_viewers == 4
        assert stats.top_countries == {"nl": 3, "be": 1}
        assert stats.device_breakdown == {"desktop": 2, "mobile": 2}

    def test_idle_resume_counts_as_extra_viewer(self, make_event):
        """Unique viewers equals session count, not distinct clients."""
        events = [
            make_event("c1", "play", 0),
            make_event("c2", "play", 5),
            make_event("c1", "heartbeat", 10),
            make_event("c1", "play", 45 * 60),
        ]
        stats = compute_stats(build_sessions(events))
        assert stats.unique_viewers == 3
        assert stats.peak_concurrent_viewers == 2
