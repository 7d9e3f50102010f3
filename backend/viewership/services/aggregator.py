import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

from viewership.core.config import settings
from viewership.core.exceptions import NoDataError
from viewership.schemas.playback import PlaybackEventRecord
from viewership.schemas.stats import StreamStatsRecord
from viewership.services.metrics import compute_stats
from viewership.services.sessions import build_sessions

logger = logging.getLogger(__name__)


class EventSource(Protocol):
    """Supplies a stream's playback events in ascending timestamp order."""

    async def list_events_since(
        self, stream_id: str, since: datetime | None = None
    ) -> list[PlaybackEventRecord]: ...


class StatsStore(Protocol):
    """Durable home of per-stream statistics, keyed by stream id."""

    async def upsert(self, record: StreamStatsRecord) -> None: ...

    async def get_by_stream_id(self, stream_id: str) -> StreamStatsRecord | None: ...


class StreamAggregator:
    """Builds sessions and per-stream stats from playback events, then persists them.

    Holds no state between calls. Concurrent calls for the same stream are not
    serialized here; callers that share a store must do that themselves.
    """

    def __init__(
        self,
        source: EventSource,
        store: StatsStore,
        heartbeat_seconds: int | None = None,
        idle_timeout: timedelta | None = None,
    ):
        self.source = source
        self.store = store
        self.heartbeat_seconds = (
            heartbeat_seconds if heartbeat_seconds is not None else settings.HEARTBEAT_SECONDS
        )
        self.idle_timeout = (
            idle_timeout
            if idle_timeout is not None
            else timedelta(minutes=settings.SESSION_IDLE_MINUTES)
        )

    async def aggregate(self, stream_id: str, since: datetime | None = None) -> StreamStatsRecord:
        """Compute stats for a single stream and persist them.

        Raises ``NoDataError`` when the stream has no events at or after
        ``since``. Source and store failures propagate unchanged; nothing is
        retried.
        """
        events = await self.source.list_events_since(stream_id, since)
        if not events:
            raise NoDataError(stream_id)

        sessions = build_sessions(
            events,
            heartbeat_seconds=self.heartbeat_seconds,
            idle_timeout=self.idle_timeout,
        )
        metrics = compute_stats(sessions)
        record = StreamStatsRecord(
            stream_id=stream_id,
            last_calculated_at=datetime.now(timezone.utc),
            **metrics.model_dump(),
        )

        await self.store.upsert(record)
        logger.info(
            "Aggregated stream %s: %d events, %d sessions, peak %d",
            stream_id,
            len(events),
            record.unique_viewers,
            record.peak_concurrent_viewers,
        )
        return record
