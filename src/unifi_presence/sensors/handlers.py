"""Occupancy handlers for global, per-resident and per-location sensors."""

import logging
import re

from unifi_presence.presence.models import Location, Resident
from unifi_presence.sensors.base import OccupancyHandler

logger = logging.getLogger(__name__)

GLOBAL_SINK_ID = "global-presence"


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class GlobalPresenceHandler(OccupancyHandler):
    """Occupied while any resident is home."""

    sink_id = GLOBAL_SINK_ID

    def __init__(self, residents: list[Resident]) -> None:
        self.residents = residents
        self._occupied = False

    @property
    def display_name(self) -> str:
        return "Global Presence"

    @property
    def occupied(self) -> bool:
        return self._occupied

    def refresh(self) -> None:
        self._occupied = any(r.is_home for r in self.residents)
        logger.debug("Global presence %s", "detected" if self._occupied else "not detected")

    def status_summary(self) -> str:
        home = [r.name for r in self.residents if r.is_home]
        if home:
            return f"Home: {', '.join(home)}"
        return "Nobody home"


class ResidentPresenceHandler(OccupancyHandler):
    """Occupied while the resident is home."""

    def __init__(self, resident: Resident) -> None:
        self.resident = resident
        self.sink_id = f"resident-{_slug(resident.name)}"
        self._occupied = False

    @property
    def display_name(self) -> str:
        return self.resident.name

    @property
    def occupied(self) -> bool:
        return self._occupied

    def refresh(self) -> None:
        previous = self._occupied
        self._occupied = self.resident.is_home
        if previous != self._occupied:
            logger.info("%s is %s", self.resident.name, "home" if self._occupied else "away")

    def status_summary(self) -> str:
        if not self.resident.is_home:
            return "Away"
        online = [d.name for d in self.resident.devices if d.online]
        return f"Home ({', '.join(online)})"


class LocationPresenceHandler(OccupancyHandler):
    """Occupied while any resident has an online device on the WiFi point."""

    def __init__(self, location: Location, residents: list[Resident]) -> None:
        self.location = location
        self.residents = residents
        self.sink_id = f"wifi-point-{_slug(location.name)}"
        self._occupied = False

    @property
    def display_name(self) -> str:
        return f"{self.location.name} Presence"

    @property
    def occupied(self) -> bool:
        return self._occupied

    def refresh(self) -> None:
        previous = self._occupied
        self._occupied = self.location.occupied
        if previous != self._occupied:
            status = "detected" if self._occupied else "not detected"
            logger.info("%s presence %s", self.location.name, status)

    def status_summary(self) -> str:
        present = [r.name for r in self.location.residents_present(self.residents)]
        if self._occupied and present:
            return f"Present: {', '.join(present)}"
        return "No one present"
