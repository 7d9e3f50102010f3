"""Generate realistic fake player telemetry for development and demos.

Usage:
    python -m scripts.seed_events --stream-id <STREAM_ID> [--clients 50] [--hours 3]
    python -m scripts.seed_events --stream-id demo-stream --clients 200 --aggregate
"""

import argparse
import asyncio
import random
from datetime import datetime, timedelta, timezone

from viewership.core.config import settings
from viewership.models.playback import PlaybackEvent
from viewership.services.aggregator import StreamAggregator
from viewership.services.event_service import EventService, detect_device_type
from viewership.services.stats_service import StreamStatsService

COUNTRIES = [
    ("nl", 30),
    ("be", 15),
    ("de", 20),
    ("fr", 15),
    ("gb", 10),
    ("us", 10),
]

USER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) Chrome/120.0.0.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0.0.0",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Safari/605.1.15",
    "Mozilla/5.0 (Linux; Android 14) Chrome/120.0.0.0 Mobile",
    "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) Safari/605.1.15",
    "Mozilla/5.0 (SMART-TV; Linux; Tizen 7.0) SamsungBrowser/5.0",
]

BUFFER_PROBABILITY = 0.02  # per heartbeat
ERROR_PROBABILITY = 0.05  # per client


def generate_client_events(
    stream_id: str,
    client_id: str,
    start: datetime,
    watch_minutes: int,
    rng: random.Random,
    heartbeat_seconds: int = 15,
) -> list[PlaybackEvent]:
    """Generate one client's play -> heartbeats -> ended telemetry."""
    country = rng.choices([c[0] for c in COUNTRIES], weights=[c[1] for c in COUNTRIES], k=1)[0]
    device_type = detect_device_type(rng.choice(USER_AGENTS))
    end = start + timedelta(minutes=watch_minutes)

    def event(event_type: str, ts: datetime, position: int) -> PlaybackEvent:
        return PlaybackEvent(
            stream_id=stream_id,
            client_id=client_id,
            event_type=event_type,
            video_time_seconds=position,
            country=country,
            device_type=device_type,
            created_at=ts,
        )

    events = [event("play", start, 0)]
    ts = start + timedelta(seconds=heartbeat_seconds)
    while ts < end:
        position = int((ts - start).total_seconds())
        if rng.random() < BUFFER_PROBABILITY:
            stall = rng.randint(1, heartbeat_seconds - 1) if heartbeat_seconds > 1 else 0
            events.append(event("buffer_start", ts, position))
            events.append(event("buffer_end", ts + timedelta(seconds=stall), position))
            ts += timedelta(seconds=stall)
        events.append(event("heartbeat", ts, position))
        ts += timedelta(seconds=heartbeat_seconds)

    final_ts = max(end, events[-1].created_at)
    position = int((final_ts - start).total_seconds())
    final_type = "error" if rng.random() < ERROR_PROBABILITY else "ended"
    events.append(event(final_type, final_ts, position))
    return events


def generate_events(
    stream_id: str,
    clients: int,
    hours: int,
    rng: random.Random | None = None,
    heartbeat_seconds: int = 15,
) -> list[PlaybackEvent]:
    """Generate telemetry for ``clients`` viewers over the last ``hours``, oldest first."""
    rng = rng or random.Random()
    now = datetime.now(timezone.utc)
    window_start = now - timedelta(hours=hours)

    events: list[PlaybackEvent] = []
    for i in range(clients):
        start = window_start + timedelta(seconds=rng.randint(0, max(hours * 3600 - 60, 0)))
        watch_minutes = rng.randint(1, 45)
        events.extend(
            generate_client_events(
                stream_id, f"client_{i:05d}", start, watch_minutes, rng, heartbeat_seconds
            )
        )

    # Sort by timestamp for realistic ordering
    events.sort(key=lambda e: e.created_at)
    return events


async def seed(stream_id: str, clients: int, hours: int, aggregate: bool) -> None:
    from viewership.db.session import AsyncSessionLocal, engine

    events = generate_events(
        stream_id, clients, hours, heartbeat_seconds=settings.HEARTBEAT_SECONDS
    )
    print(f"Generated {len(events)} events for {clients} clients over {hours}h")

    try:
        async with AsyncSessionLocal() as session:
            event_service = EventService(session)
            total = await event_service.add_events(events)
            await session.commit()
            print(f"Seeded {total} events into stream {stream_id}")

            if aggregate:
                aggregator = StreamAggregator(event_service, StreamStatsService(session))
                stats = await aggregator.aggregate(stream_id)
                print(stats.model_dump_json(indent=2))
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Seed playback telemetry")
    parser.add_argument("--stream-id", required=True, help="Stream to seed")
    parser.add_argument("--clients", type=int, default=50, help="Number of viewers")
    parser.add_argument("--hours", type=int, default=3, help="Hours of history")
    parser.add_argument("--aggregate", action="store_true", help="Aggregate after seeding")
    args = parser.parse_args()

    asyncio.run(seed(args.stream_id, args.clients, args.hours, args.aggregate))


if __name__ == "__main__":
    main()
