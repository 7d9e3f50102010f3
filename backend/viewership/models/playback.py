from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from viewership.db.base import Base


class PlaybackEvent(Base):
    """Raw player telemetry event. Append-only, high volume."""

    __tablename__ = "playback_events"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    stream_id: Mapped[str] = mapped_column(String(64), nullable=False)
    client_id: Mapped[str] = mapped_column(String(255), nullable=False)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    video_time_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    country: Mapped[str] = mapped_column(String(64), nullable=False, default="unknown")
    device_type: Mapped[str] = mapped_column(String(32), nullable=False, default="unknown")
    extra: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True, server_default=func.now()
    )

    __table_args__ = (Index("ix_playback_events_stream_created", "stream_id", "created_at"),)
