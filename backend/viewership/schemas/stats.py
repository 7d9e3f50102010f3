from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ViewershipMetrics(BaseModel):
    """Aggregate viewership and QoE figures derived from a stream's sessions."""

    unique_viewers: int = Field(0, ge=0)
    total_watch_seconds: int = Field(0, ge=0)
    avg_watch_seconds: int = Field(0, ge=0)
    peak_concurrent_viewers: int = Field(0, ge=0)
    top_countries: dict[str, int] = Field(default_factory=dict)
    device_breakdown: dict[str, int] = Field(default_factory=dict)
    buffer_seconds: int = Field(0, ge=0)
    buffer_ratio: float = Field(0.0, ge=0.0)
    error_rate: float = Field(0.0, ge=0.0)


class StreamStatsRecord(ViewershipMetrics):
    """Persisted statistics row for one stream."""

    model_config = ConfigDict(from_attributes=True)

    stream_id: str
    last_calculated_at: datetime
