"""Database sink and sensor history queries."""

import logging
from datetime import UTC, datetime

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from unifi_presence.sensors.base import PresenceSink
from unifi_presence.sensors.models import OccupancyEvent, OccupancyLog, OccupancySensor

logger = logging.getLogger(__name__)


def record_state(
    session: Session, sink_id: str, display_name: str, occupied: bool
) -> OccupancyLog | None:
    """Upsert a sensor row; log an event if its state changed.

    A sensor seen for the first time logs an event only when occupied.
    Returns the log entry written, if any.
    """
    sensor = session.get(OccupancySensor, sink_id)
    changed = False
    if sensor is None:
        sensor = OccupancySensor(sink_id=sink_id, display_name=display_name, occupied=occupied)
        session.add(sensor)
        changed = occupied
    else:
        changed = sensor.occupied != occupied
        sensor.display_name = display_name
        sensor.occupied = occupied
        if changed:
            sensor.updated_at = datetime.now(UTC)

    entry = None
    if changed:
        event = OccupancyEvent.occupied if occupied else OccupancyEvent.vacant
        entry = OccupancyLog(sink_id=sink_id, event_type=event)
        session.add(entry)

    session.commit()
    if entry is not None:
        session.refresh(entry)
    return entry


def get_sensors(session: Session) -> list[OccupancySensor]:
    stmt = select(OccupancySensor).order_by(OccupancySensor.sink_id)
    return list(session.exec(stmt).all())


def get_sensor(session: Session, sink_id: str) -> OccupancySensor | None:
    return session.get(OccupancySensor, sink_id)


def get_occupancy_history(
    session: Session, sink_id: str | None = None, limit: int = 100
) -> list[OccupancyLog]:
    """Most recent state changes first, optionally for one sensor."""
    stmt = select(OccupancyLog)
    if sink_id is not None:
        stmt = stmt.where(OccupancyLog.sink_id == sink_id)
    stmt = stmt.order_by(OccupancyLog.timestamp.desc(), OccupancyLog.id.desc()).limit(limit)  # type: ignore[attr-defined, union-attr]
    return list(session.exec(stmt).all())


class DatabaseSink(PresenceSink):
    """Persists sensor state to the database."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def notify(self, sink_id: str, display_name: str, occupied: bool) -> None:
        with Session(self.engine) as session:
            entry = record_state(session, sink_id, display_name, occupied)
        if entry is not None:
            logger.debug("Logged %s for %s", entry.event_type, sink_id)
