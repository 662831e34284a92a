"""Persisted occupancy sensor state and transition log."""

import enum
from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class OccupancyEvent(enum.StrEnum):
    occupied = "occupied"
    vacant = "vacant"


class OccupancySensor(SQLModel, table=True):
    sink_id: str = Field(primary_key=True)
    display_name: str
    occupied: bool = False
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class OccupancyLog(SQLModel, table=True):
    """Time-series log of sensor state changes."""

    id: int | None = Field(default=None, primary_key=True)
    sink_id: str = Field(index=True, foreign_key="occupancysensor.sink_id")
    event_type: OccupancyEvent
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
