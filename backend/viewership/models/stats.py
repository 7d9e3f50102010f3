from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from viewership.db.base import Base
from viewership.models.base import TimestampMixin


class StreamStats(Base, TimestampMixin):
    """Per-stream viewership statistics, one row per stream, upserted by aggregation."""

    __tablename__ = "stream_stats"

    stream_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    unique_viewers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_watch_seconds: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    avg_watch_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    peak_concurrent_viewers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    top_countries: Mapped[dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
    device_breakdown: Mapped[dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
    buffer_seconds: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    buffer_ratio: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    error_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
