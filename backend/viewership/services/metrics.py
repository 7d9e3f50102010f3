from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timedelta

from viewership.schemas.stats import ViewershipMetrics
from viewership.services.sessions import ViewerSession

# A session counts as concurrent through the end of its last covered second.
CLOSE_NUDGE = timedelta(seconds=1)


def peak_concurrent_viewers(sessions: Sequence[ViewerSession]) -> int:
    """Maximum number of simultaneously open sessions, via an interval sweep.

    Deltas are ordered by ``(timestamp, delta)``: at equal timestamps every
    close (-1) is applied before any open (+1).
    """
    deltas: list[tuple[datetime, int]] = []
    for session in sessions:
        deltas.append((session.started_at, 1))
        deltas.append((session.ended_at + CLOSE_NUDGE, -1))
    deltas.sort()

    current = 0
    peak = 0
    for _, delta in deltas:
        current += delta
        if current > peak:
            peak = current
    return peak


def compute_stats(sessions: Sequence[ViewerSession]) -> ViewershipMetrics:
    """Derive aggregate viewership and QoE metrics from a stream's sessions."""
    unique_viewers = len(sessions)
    total_watch = sum(s.watch_seconds for s in sessions)
    total_buffer = sum(s.buffer_seconds for s in sessions)
    error_sessions = sum(1 for s in sessions if s.error_count > 0)

    return ViewershipMetrics(
        unique_viewers=unique_viewers,
        total_watch_seconds=total_watch,
        avg_watch_seconds=total_watch // unique_viewers if unique_viewers else 0,
        peak_concurrent_viewers=peak_concurrent_viewers(sessions),
        top_countries=dict(Counter(s.country for s in sessions)),
        device_breakdown=dict(Counter(s.device_type for s in sessions)),
        buffer_seconds=total_buffer,
        buffer_ratio=total_buffer / total_watch if total_watch > 0 else 0.0,
        error_rate=error_sessions / unique_viewers if unique_viewers else 0.0,
    )
