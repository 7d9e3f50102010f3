"""Refresh job: re-aggregates active and stale streams.

Runs once and exits; schedule it externally (cron, k8s CronJob, ...):
    python -m viewership.worker
    python -m viewership.worker <STREAM_ID> [<STREAM_ID> ...] --since 2026-10-01T00:00:00Z
    python -m viewership.worker --prune

Streams are aggregated one after another, each in its own database session,
so a single job never has two writers for the same stream row.

Aggregation always recomputes from the stored events, so ``--prune`` is a
separate operator command and never runs as part of a refresh. Pruned history
is gone for good: re-aggregating a stream after its old events were deleted
only counts what is left.
"""

import argparse
import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from viewership.core.config import settings, setup_logging
from viewership.core.exceptions import NoDataError
from viewership.schemas.stats import StreamStatsRecord
from viewership.services.aggregator import StreamAggregator
from viewership.services.event_service import EventService
from viewership.services.stats_service import StreamStatsService

logger = logging.getLogger(__name__)


async def select_stream_ids(
    session_factory: async_sessionmaker[AsyncSession],
    stale_after: timedelta,
    now: datetime | None = None,
) -> list[str]:
    """Streams with recent events plus stale streams that have events not yet aggregated."""
    cutoff = (now or datetime.now(timezone.utc)) - stale_after
    async with session_factory() as session:
        active = await EventService(session).list_stream_ids_since(cutoff)
        stale = await StreamStatsService(session).stale_streams(cutoff)
    return sorted(set(active) | set(stale))


async def refresh_streams(
    session_factory: async_sessionmaker[AsyncSession],
    stream_ids: Sequence[str],
    since: datetime | None = None,
) -> list[StreamStatsRecord]:
    """Aggregate each stream in turn, skipping streams without data or that fail.

    Returns the records that were computed and persisted.
    """
    results: list[StreamStatsRecord] = []

    for stream_id in stream_ids:
        async with session_factory() as session:
            aggregator = StreamAggregator(EventService(session), StreamStatsService(session))
            try:
                results.append(await aggregator.aggregate(stream_id, since))
            except NoDataError:
                logger.info("No playback events for stream %s, skipping", stream_id)
            except Exception:
                logger.exception("Aggregation failed for stream %s", stream_id)

    return results


async def prune_events(
    session_factory: async_sessionmaker[AsyncSession],
    retention_days: int,
    now: datetime | None = None,
) -> int:
    """Delete playback events older than the retention window."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=retention_days)
    async with session_factory() as session:
        pruned = await EventService(session).delete_older_than(cutoff)
        await session.commit()

    if pruned:
        logger.info("Pruned %d playback events older than %s", pruned, cutoff.isoformat())
    return pruned


async def run_job(
    session_factory: async_sessionmaker[AsyncSession],
    stream_ids: Sequence[str] | None = None,
    since: datetime | None = None,
) -> list[StreamStatsRecord]:
    """Run one refresh pass over the given streams, or over active and stale ones."""
    if not stream_ids:
        stream_ids = await select_stream_ids(
            session_factory, timedelta(minutes=settings.STATS_STALE_MINUTES)
        )
    logger.info("Refreshing stats for %d streams", len(stream_ids))

    results = await refresh_streams(session_factory, stream_ids, since)
    logger.info("Refreshed %d/%d streams", len(results), len(stream_ids))
    return results


def parse_since(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Recompute per-stream viewership stats")
    parser.add_argument("stream_ids", nargs="*", help="Streams to aggregate (default: active and stale)")
    parser.add_argument(
        "--since", type=parse_since, default=None, help="Only use events at or after this time"
    )
    parser.add_argument(
        "--prune",
        action="store_true",
        help="Delete playback events older than EVENT_RETENTION_DAYS instead of refreshing",
    )
    return parser


async def _main(args: argparse.Namespace) -> None:
    from viewership.db.session import AsyncSessionLocal, engine

    try:
        if args.prune:
            await prune_events(AsyncSessionLocal, settings.EVENT_RETENTION_DAYS)
        else:
            await run_job(AsyncSessionLocal, args.stream_ids, args.since)
    finally:
        await engine.dispose()


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.prune and (args.stream_ids or args.since):
        parser.error("--prune takes no stream ids or --since")
    if args.prune and settings.EVENT_RETENTION_DAYS == 0:
        parser.error("--prune requires EVENT_RETENTION_DAYS > 0")

    setup_logging()
    logger.info("Starting stats refresh job")
    asyncio.run(_main(args))
    logger.info("Stats refresh job finished")


if __name__ == "__main__":
    main()
