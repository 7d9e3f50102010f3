from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

KNOWN_EVENT_TYPES = frozenset(
    {"play", "pause", "heartbeat", "ended", "error", "buffer_start", "buffer_end"}
)


class PlaybackEventIn(BaseModel):
    """Schema for a single player event in an ingest payload."""

    type: str = Field(..., min_length=1, max_length=32)
    video_time_seconds: int | None = Field(None, ge=0)
    extra: dict[str, Any] | None = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        event_type = v.lower()
        if event_type not in KNOWN_EVENT_TYPES:
            raise ValueError(f"invalid event type: {v}")
        return event_type


class PlaybackEventBatch(BaseModel):
    """Schema for player event ingestion: one client, one stream, batched."""

    stream_id: str = Field(..., min_length=1, max_length=64)
    client_id: str = Field(..., min_length=1, max_length=255)
    events: list[PlaybackEventIn] = Field(..., min_length=1, max_length=100)


class PlaybackEventRecord(BaseModel):
    """Immutable view of a stored playback event, as fed to the aggregation engine."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int | None = None
    stream_id: str
    client_id: str
    event_type: str
    country: str = "unknown"
    device_type: str = "unknown"
    video_time_seconds: int | None = None
    extra: dict[str, Any] | None = None
    created_at: datetime
