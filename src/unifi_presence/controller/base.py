"""Base interface for UniFi controller backends."""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from unifi_presence.config import BackendKind

ClientRecord = dict[str, Any]
DeviceRecord = dict[str, Any]


class FailureKind(enum.StrEnum):
    transport = "transport"  # DNS, connection refused, timeout
    http_status = "http_status"  # HTTP >= 400 or an error envelope
    parse = "parse"  # undecodable body or unexpected payload shape


class ControllerError(Exception):
    """Base class for controller client errors."""


class ControllerRequestError(ControllerError):
    """A single HTTP exchange with the controller failed."""

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        url: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(f"{message} | Request: {url}")
        self.kind = kind
        self.url = url
        self.status_code = status_code


class EndpointUnavailable(ControllerError):
    """Every candidate endpoint for a resource failed."""

    def __init__(self, resource: str, errors: list[ControllerRequestError]) -> None:
        message = f"No working endpoint for {resource} ({len(errors)} tried)"
        if errors:
            message += f", last error: {errors[-1]}"
        super().__init__(message)
        self.resource = resource
        self.errors = errors


@dataclass(frozen=True)
class ControllerSession:
    """Immutable connection settings for one controller."""

    api_key: str
    controller: str | None = None
    site: str = "default"
    verify_tls: bool = False
    backend: BackendKind = BackendKind.local
    host_id: str | None = None
    request_timeout: float = 10.0


@dataclass
class BackendProfile:
    """What discovery learned about the controller, cached per instance."""

    base_url: str
    endpoints: dict[str, str] = field(default_factory=dict)  # resource -> path template


@dataclass
class TrafficSample:
    """Recent traffic counters for one client."""

    rx_bytes: int = 0
    tx_bytes: int = 0

    @property
    def total_bytes(self) -> int:
        return self.rx_bytes + self.tx_bytes


class BaseController(ABC):
    """Abstract base for all controller API backends.

    Listing operations never raise: a resource that cannot be fetched
    yields an empty list.
    """

    def __init__(self, session: ControllerSession, profile: BackendProfile) -> None:
        self.session = session
        self.profile = profile

    @property
    def base_url(self) -> str:
        return self.profile.base_url

    @abstractmethod
    async def list_active_clients(self) -> list[ClientRecord]:
        """Return the clients currently connected to the network."""

    @abstractmethod
    async def list_access_points(self) -> list[DeviceRecord]:
        """Return the access points (and switches) known to the controller."""

    @abstractmethod
    async def get_short_window_traffic(self, mac: str) -> TrafficSample | None:
        """Return recent rx/tx counters for a client, or None if unavailable."""

    @abstractmethod
    async def probe(self) -> bool:
        """Return True if the controller answers with usable data."""

    async def aclose(self) -> None:
        """Release any open connections to the controller."""
