import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from viewership.models.playback import PlaybackEvent
from viewership.schemas.playback import PlaybackEventBatch, PlaybackEventRecord

logger = logging.getLogger(__name__)


def detect_device_type(user_agent: str | None) -> str:
    """Classify a User-Agent string into a coarse device class."""
    ua = (user_agent or "").lower()
    if not ua:
        return "unknown"
    if "ipad" in ua or "tablet" in ua:
        return "tablet"
    if "mobi" in ua or "android" in ua:
        return "mobile"
    if "smart-tv" in ua or "hbbtv" in ua or "tv" in ua:
        return "tv"
    return "desktop"


def normalize_country(country: str | None) -> str:
    """Lower-case a country tag, defaulting to ``unknown``."""
    country = (country or "").strip()
    return country.lower() if country else "unknown"


class EventService:
    """Service for playback event ingestion and querying."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_events(self, events: Iterable[PlaybackEvent]) -> int:
        """Stage playback events for insertion. The caller owns the commit."""
        count = 0
        for event in events:
            self.db.add(event)
            count += 1

        await self.db.flush()
        return count

    async def ingest_batch(
        self,
        batch: PlaybackEventBatch,
        user_agent: str | None = None,
        country: str | None = None,
    ) -> int:
        """Ingest a client's batch of player events, stamped with a single receive time."""
        now = datetime.now(timezone.utc)
        device_type = detect_device_type(user_agent)
        country_tag = normalize_country(country)

        count = await self.add_events(
            PlaybackEvent(
                stream_id=batch.stream_id,
                client_id=batch.client_id,
                event_type=event_in.type,
                video_time_seconds=event_in.video_time_seconds,
                country=country_tag,
                device_type=device_type,
                extra=event_in.extra,
                created_at=now,
            )
            for event_in in batch.events
        )
        logger.debug(
            "Ingested %d events for stream %s client %s", count, batch.stream_id, batch.client_id
        )
        return count

    async def list_events_since(
        self, stream_id: str, since: datetime | None = None
    ) -> list[PlaybackEventRecord]:
        """Return a stream's events at or after ``since``, oldest first."""
        stmt = select(PlaybackEvent).where(PlaybackEvent.stream_id == stream_id)
        if since is not None:
            stmt = stmt.where(PlaybackEvent.created_at >= since)
        stmt = stmt.order_by(PlaybackEvent.created_at, PlaybackEvent.id)

        result = await self.db.execute(stmt)
        return [PlaybackEventRecord.model_validate(row) for row in result.scalars().all()]

    async def list_stream_ids_since(self, since: datetime) -> list[str]:
        """Return the ids of streams that received events at or after ``since``."""
        result = await self.db.execute(
            select(PlaybackEvent.stream_id)
            .distinct()
            .where(PlaybackEvent.created_at >= since)
            .order_by(PlaybackEvent.stream_id)
        )
        return list(result.scalars().all())

    async def delete_older_than(self, cutoff: datetime) -> int:
        """Remove events older than ``cutoff``. Run only after aggregation."""
        result = await self.db.execute(
            delete(PlaybackEvent)
            .where(PlaybackEvent.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        return result.rowcount or 0
