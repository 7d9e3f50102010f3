import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from viewership.models.playback import PlaybackEvent
from viewership.models.stats import StreamStats
from viewership.schemas.stats import StreamStatsRecord

logger = logging.getLogger(__name__)


class StreamStatsService:
    """Service for reading and writing persisted per-stream statistics."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def upsert(self, record: StreamStatsRecord) -> None:
        """Insert or replace the stats row for ``record.stream_id`` in one transaction.

        On failure the transaction is rolled back and the error re-raised, so
        either the whole row is written or nothing is.
        """
        values = record.model_dump()
        try:
            existing = await self.db.execute(
                select(StreamStats).where(StreamStats.stream_id == record.stream_id)
            )
            row = existing.scalar_one_or_none()

            if row:
                for field, value in values.items():
                    setattr(row, field, value)
            else:
                self.db.add(StreamStats(**values))

            await self.db.commit()
            logger.debug("Upserted stats for stream %s", record.stream_id)
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def get_by_stream_id(self, stream_id: str) -> StreamStatsRecord | None:
        """Get the persisted stats for a stream, or None if never aggregated."""
        result = await self.db.execute(
            select(StreamStats).where(StreamStats.stream_id == stream_id)
        )
        row = result.scalar_one_or_none()
        return StreamStatsRecord.model_validate(row) if row else None

    async def stale_streams(self, cutoff: datetime) -> list[str]:
        """Return ids of streams last calculated before ``cutoff`` that have newer events.

        Streams with no events after their last calculation are left out, so a
        stream whose events were all pruned is not picked up on every run.
        """
        unaggregated = (
            select(PlaybackEvent.id)
            .where(
                PlaybackEvent.stream_id == StreamStats.stream_id,
                PlaybackEvent.created_at > StreamStats.last_calculated_at,
            )
            .exists()
        )
        result = await self.db.execute(
            select(StreamStats.stream_id)
            .where(StreamStats.last_calculated_at < cutoff, unaggregated)
            .order_by(StreamStats.stream_id)
        )
        return list(result.scalars().all())
