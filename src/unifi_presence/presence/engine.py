"""Per-cycle presence state mutation."""

import logging
from datetime import UTC, datetime
from typing import Any

from unifi_presence.controller.base import TrafficSample
from unifi_presence.presence.matcher import matches_access_point, matches_client, normalize_mac
from unifi_presence.presence.models import Device, Location, Resident

logger = logging.getLogger(__name__)

# Order matters: controller generations expose the association differently
_ASSOCIATION_FIELDS = ("ap_mac", "sw_mac", "uplink_mac", "access_point_mac")


def find_matching_client(device: Device, clients: list[dict[str, Any]]) -> dict[str, Any] | None:
    """Return the first client record matching ``device``, if any."""
    for client in clients:
        if matches_client(device, client):
            return client
    return None


def associated_access_point(client: dict[str, Any]) -> str | None:
    """Return the normalized MAC of the AP/switch a client is attached to."""
    for key in _ASSOCIATION_FIELDS:
        value = client.get(key)
        if value and isinstance(value, str):
            return normalize_mac(value)
    return None


def update_device(
    device: Device,
    client: dict[str, Any] | None,
    sample: TrafficSample | None = None,
    now: datetime | None = None,
) -> Device:
    """Apply one cycle's observation to ``device``.

    Without a matching client the device goes offline but keeps its last
    ``last_seen`` and ``traffic_bytes``. With a traffic threshold, a missing
    sample counts as zero traffic.
    """
    if client is None:
        device.online = False
        device.current_location_id = None
        return device

    device.online = True
    device.last_seen = now or datetime.now(UTC)
    device.current_location_id = associated_access_point(client)

    if device.requires_traffic:
        device.traffic_bytes = sample.total_bytes if sample is not None else 0
        traffic_kb = device.traffic_bytes / 1024
        if traffic_kb < device.min_traffic_amount:  # type: ignore[operator]
            logger.debug(
                "%s below traffic threshold (%.1f KB < %s KB)",
                device.name,
                traffic_kb,
                device.min_traffic_amount,
            )
            device.online = False

    return device


def update_resident(resident: Resident) -> Resident:
    resident.is_home = any(d.online for d in resident.devices)
    return resident


def resolve_location(location: Location, access_points: list[dict[str, Any]]) -> Location:
    """Bind ``location`` to the first fetched access point it matches.

    Once resolved, the MAC is kept for the lifetime of the location.
    """
    if location.resolved_mac:
        return location
    for ap in access_points:
        mac = ap.get("mac")
        if mac and isinstance(mac, str) and matches_access_point(location, ap):
            location.resolved_mac = normalize_mac(mac)
            logger.info("Location %s resolved to %s", location.name, location.resolved_mac)
            break
    return location


def update_location(location: Location, residents: list[Resident]) -> Location:
    if not location.resolved_mac:
        location.occupied = False
        return location
    location.occupied = bool(location.residents_present(residents))
    return location
