"""Presence state: configured devices, residents and WiFi points."""

from dataclasses import dataclass, field
from datetime import datetime

from unifi_presence.config import DeviceConfig, ResidentConfig, WifiPointConfig


@dataclass
class Device:
    """A configured device and its derived online state.

    Identity fields (mac, ip, hostname) come from configuration and are
    matched conjunctively against controller client records. The remaining
    fields are rewritten once per refresh cycle.
    """

    name: str
    mac: str | None = None
    ip: str | None = None
    hostname: str | None = None
    min_traffic_amount: float | None = None  # KB, 0/None disables the check

    online: bool = False
    last_seen: datetime | None = None
    current_location_id: str | None = None  # MAC of the serving AP/switch
    traffic_bytes: int = 0

    @classmethod
    def from_config(cls, cfg: DeviceConfig) -> "Device":
        return cls(
            name=cfg.name,
            mac=cfg.mac or None,
            ip=cfg.ip or None,
            hostname=cfg.hostname or None,
            min_traffic_amount=cfg.min_traffic_amount,
        )

    @property
    def has_identity(self) -> bool:
        return bool(self.mac or self.ip or self.hostname)

    @property
    def requires_traffic(self) -> bool:
        return bool(self.min_traffic_amount and self.min_traffic_amount > 0)


@dataclass
class Resident:
    """A person owning one or more devices."""

    name: str
    devices: list[Device] = field(default_factory=list)
    is_home: bool = False

    @classmethod
    def from_config(cls, cfg: ResidentConfig) -> "Resident":
        return cls(name=cfg.name, devices=[Device.from_config(d) for d in cfg.devices])

    def devices_at(self, location_mac: str) -> list[Device]:
        """Online devices associated with the access point ``location_mac``."""
        return [
            d for d in self.devices if d.online and d.current_location_id == location_mac
        ]


@dataclass
class Location:
    """A WiFi point used as a coarse location signal.

    ``resolved_mac`` is only set once the location has been matched against an
    access point actually reported by the controller.
    """

    name: str
    mac: str | None = None
    ip: str | None = None
    resolved_mac: str | None = None
    occupied: bool = False

    @classmethod
    def from_config(cls, cfg: WifiPointConfig) -> "Location":
        return cls(name=cfg.name, mac=cfg.mac or None, ip=cfg.ip or None)

    def residents_present(self, residents: list[Resident]) -> list[Resident]:
        if not self.resolved_mac:
            return []
        return [r for r in residents if r.devices_at(self.resolved_mac)]
