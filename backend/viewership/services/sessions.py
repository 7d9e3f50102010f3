"""Reconstruct per-viewer sessions from a stream's playback telemetry.

Each client gets one open session at a time. A session is closed when the
same client shows up again after more than ``idle_timeout`` of silence, or
when the event feed runs out. Watch time is approximated by crediting a
fixed ``heartbeat_seconds`` slice for every play, heartbeat and ended event.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from viewership.schemas.playback import PlaybackEventRecord

DEFAULT_HEARTBEAT_SECONDS = 15
DEFAULT_IDLE_TIMEOUT = timedelta(minutes=30)

WATCH_EVENT_TYPES = frozenset({"play", "heartbeat", "ended"})


def _whole_seconds(delta: timedelta) -> int:
    return int(delta.total_seconds())


@dataclass
class ViewerSession:
    """One viewing occasion of a single client on a single stream."""

    client_id: str
    country: str
    device_type: str
    started_at: datetime
    ended_at: datetime
    last_seen_at: datetime
    watch_seconds: int = 0
    buffer_seconds: int = 0
    error_count: int = 0
    buffer_started_at: datetime | None = None

    @classmethod
    def open(cls, event: PlaybackEventRecord) -> "ViewerSession":
        return cls(
            client_id=event.client_id,
            country=event.country,
            device_type=event.device_type,
            started_at=event.created_at,
            ended_at=event.created_at,
            last_seen_at=event.created_at,
        )

    def apply(self, event: PlaybackEventRecord, heartbeat_seconds: int) -> None:
        """Fold one event into the running session state."""
        event_type = event.event_type
        if event_type in WATCH_EVENT_TYPES:
            self.watch_seconds += heartbeat_seconds
        elif event_type == "buffer_start":
            if self.buffer_started_at is None:
                self.buffer_started_at = event.created_at
        elif event_type == "buffer_end":
            if self.buffer_started_at is not None:
                self.buffer_seconds += _whole_seconds(event.created_at - self.buffer_started_at)
                self.buffer_started_at = None
        elif event_type == "error":
            self.error_count += 1

        self.last_seen_at = event.created_at

    def close(self) -> None:
        """Flush any open buffering interval and pin the end time to last activity."""
        if self.buffer_started_at is not None:
            self.buffer_seconds += _whole_seconds(self.last_seen_at - self.buffer_started_at)
            self.buffer_started_at = None
        self.ended_at = self.last_seen_at


def build_sessions(
    events: Iterable[PlaybackEventRecord],
    heartbeat_seconds: int = DEFAULT_HEARTBEAT_SECONDS,
    idle_timeout: timedelta = DEFAULT_IDLE_TIMEOUT,
) -> list[ViewerSession]:
    """Build the complete session set for one stream.

    ``events`` must be in non-decreasing ``created_at`` order; this is not
    checked. Sessions closed by an idle gap come first, in the order they were
    closed, followed by the sessions still open at end of input in order of
    their client's first appearance.
    """
    sessions: list[ViewerSession] = []
    open_by_client: dict[str, ViewerSession] = {}

    for event in events:
        session = open_by_client.get(event.client_id)
        if session is None or event.created_at - session.last_seen_at > idle_timeout:
            if session is not None:
                session.close()
                sessions.append(session)
            session = ViewerSession.open(event)
            open_by_client[event.client_id] = session

        session.apply(event, heartbeat_seconds)

    for session in open_by_client.values():
        session.close()
        sessions.append(session)

    return sessions
