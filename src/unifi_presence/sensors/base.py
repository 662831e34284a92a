"""Base interfaces for occupancy sensors and the sinks they report to."""

from abc import ABC, abstractmethod


class PresenceSink(ABC):
    """Receives the occupancy state of every sensor after each refresh."""

    @abstractmethod
    def notify(self, sink_id: str, display_name: str, occupied: bool) -> None:
        """Record the current state of one sensor."""


class OccupancyHandler(ABC):
    """Derives one binary occupancy sensor from presence state."""

    sink_id: str

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable sensor name."""

    @property
    @abstractmethod
    def occupied(self) -> bool:
        """Current occupancy, as of the last refresh."""

    @abstractmethod
    def refresh(self) -> None:
        """Recompute state after a refresh cycle."""

    @abstractmethod
    def status_summary(self) -> str:
        """One-line diagnostic description of the current state."""
