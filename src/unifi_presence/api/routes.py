"""REST API endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlmodel import Session

from unifi_presence.controller.connection import check_connection
from unifi_presence.database import get_session
from unifi_presence.refresher import PresenceRefresher
from unifi_presence.sensors.models import OccupancyLog, OccupancySensor
from unifi_presence.sensors.store import get_occupancy_history, get_sensor, get_sensors

router = APIRouter(prefix="/api")


# Response models
class SensorStatus(BaseModel):
    id: str
    name: str
    occupied: bool
    summary: str


class DeviceState(BaseModel):
    name: str
    mac: str | None
    ip: str | None
    hostname: str | None
    online: bool
    last_seen: datetime | None
    current_location_id: str | None
    traffic_bytes: int


class ResidentState(BaseModel):
    name: str
    is_home: bool
    devices: list[DeviceState]


class LocationState(BaseModel):
    name: str
    mac: str | None
    resolved_mac: str | None
    occupied: bool


class ConnectionReport(BaseModel):
    success: bool
    message: str
    base_url: str
    client_count: int | None = None


def get_refresher(request: Request) -> PresenceRefresher:
    refresher = getattr(request.app.state, "refresher", None)
    if refresher is None:
        raise HTTPException(status_code=503, detail="Presence refresh is not configured")
    return refresher


@router.get("/status")
def sensor_status(refresher: PresenceRefresher = Depends(get_refresher)) -> list[SensorStatus]:
    return [
        SensorStatus(
            id=h.sink_id,
            name=h.display_name,
            occupied=h.occupied,
            summary=h.status_summary(),
        )
        for h in refresher.handlers
    ]


@router.get("/residents")
def list_residents(refresher: PresenceRefresher = Depends(get_refresher)) -> list[ResidentState]:
    return [
        ResidentState(
            name=r.name,
            is_home=r.is_home,
            devices=[
                DeviceState(
                    name=d.name,
                    mac=d.mac,
                    ip=d.ip,
                    hostname=d.hostname,
                    online=d.online,
                    last_seen=d.last_seen,
                    current_location_id=d.current_location_id,
                    traffic_bytes=d.traffic_bytes,
                )
                for d in r.devices
            ],
        )
        for r in refresher.residents
    ]


@router.get("/locations")
def list_locations(refresher: PresenceRefresher = Depends(get_refresher)) -> list[LocationState]:
    return [
        LocationState(
            name=loc.name,
            mac=loc.mac,
            resolved_mac=loc.resolved_mac,
            occupied=loc.occupied,
        )
        for loc in refresher.locations
    ]


@router.get("/connection")
async def connection_report(
    refresher: PresenceRefresher = Depends(get_refresher),
) -> ConnectionReport:
    result = await check_connection(refresher.controller)
    return ConnectionReport(
        success=result.success,
        message=result.message,
        base_url=result.base_url,
        client_count=result.client_count,
    )


# --- Persisted sensor state ---


@router.get("/sensors")
def list_sensors(session: Session = Depends(get_session)) -> list[OccupancySensor]:
    return get_sensors(session)


@router.get("/sensors/{sink_id}")
def sensor_detail(sink_id: str, session: Session = Depends(get_session)) -> OccupancySensor:
    sensor = get_sensor(session, sink_id)
    if sensor is None:
        raise HTTPException(status_code=404, detail="Sensor not found")
    return sensor


@router.get("/history")
def occupancy_history(
    sink_id: str | None = None,
    limit: int = 100,
    session: Session = Depends(get_session),
) -> list[OccupancyLog]:
    return get_occupancy_history(session, sink_id=sink_id, limit=limit)
