"""Downstream reconciliation of engine output with externally reported figures.

CDN providers report their own watch time for a stream. That figure is not an
input to the aggregation engine; it is merged afterwards by keeping the larger
of the two totals on the persisted stats row.
"""

import logging

from viewership.schemas.stats import StreamStatsRecord
from viewership.services.aggregator import StatsStore

logger = logging.getLogger(__name__)


async def reconcile_watch_time(
    store: StatsStore, stream_id: str, external_watch_seconds: int
) -> StreamStatsRecord | None:
    """Floor a stream's persisted total watch time at an externally reported value.

    Returns the updated record, or None when the stream has never been
    aggregated. Only ``total_watch_seconds`` changes.
    """
    existing = await store.get_by_stream_id(stream_id)
    if existing is None:
        logger.info("No stats row for stream %s, skipping watch-time reconciliation", stream_id)
        return None

    merged = existing.model_copy(
        update={
            "total_watch_seconds": max(existing.total_watch_seconds, external_watch_seconds)
        }
    )
    await store.upsert(merged)
    return merged
