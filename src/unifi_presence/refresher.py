"""Periodic presence refresh against a UniFi controller.

One refresh cycle runs to completion before the next sleep starts, so
presence state is only ever touched by a single task.
"""

import asyncio
import logging
from typing import Any

from unifi_presence.config import MAX_INTERVAL, MIN_INTERVAL
from unifi_presence.controller.base import BaseController, TrafficSample
from unifi_presence.controller.connection import find_reachable_controller
from unifi_presence.presence.engine import (
    find_matching_client,
    resolve_location,
    update_device,
    update_location,
    update_resident,
)
from unifi_presence.presence.models import Location, Resident
from unifi_presence.sensors.base import OccupancyHandler, PresenceSink

logger = logging.getLogger(__name__)


class PresenceRefresher:
    """Polls the controller and pushes derived occupancy to sinks."""

    def __init__(
        self,
        controller: BaseController,
        residents: list[Resident],
        locations: list[Location],
        handlers: list[OccupancyHandler] | None = None,
        sinks: list[PresenceSink] | None = None,
        interval: int = 180,
    ) -> None:
        self.controller = controller
        self.residents = residents
        self.locations = locations
        self.handlers = handlers or []
        self.sinks = sinks or []
        self.interval = max(MIN_INTERVAL, min(MAX_INTERVAL, interval))
        self.initialized = False
        self.cycles = 0
        self._running = False
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        logger.info("Starting presence refresh every %ds", self.interval)
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        logger.info("Stopping presence refresh")
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        await self.controller.aclose()

    async def bootstrap(self) -> bool:
        """Probe the controller, falling back to alternate base URLs.

        Returns True once a probe has succeeded. Polling proceeds either way.
        """
        try:
            controller, ok = await find_reachable_controller(self.controller)
        except Exception:
            logger.exception("Controller probe raised")
            return False
        if ok:
            if controller is not self.controller:
                logger.info("Using controller at %s", controller.base_url)
                await self.controller.aclose()
            self.controller = controller
            self.initialized = True
        else:
            logger.error(
                "Could not reach the UniFi controller at %s, will keep retrying every %ds",
                self.controller.base_url,
                self.interval,
            )
        return ok

    async def _poll_loop(self) -> None:
        await self.bootstrap()
        while self._running:
            await self.refresh()
            await asyncio.sleep(self.interval)

    async def _fetch_records(self) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        """Fetch clients and access points.

        A failing call yields []; entries that are not JSON objects are dropped.
        """
        clients, access_points = await asyncio.gather(
            self.controller.list_active_clients(),
            self.controller.list_access_points(),
            return_exceptions=True,
        )
        if isinstance(clients, BaseException):
            logger.warning("Client fetch failed: %s", clients)
            clients = []
        if isinstance(access_points, BaseException):
            logger.warning("Access point fetch failed: %s", access_points)
            access_points = []
        return (
            [c for c in clients if isinstance(c, dict)],
            [a for a in access_points if isinstance(a, dict)],
        )

    async def _traffic_sample(self, mac: str) -> TrafficSample | None:
        try:
            return await self.controller.get_short_window_traffic(mac)
        except Exception:
            logger.warning("Traffic sample for %s failed", mac, exc_info=True)
            return None

    async def _update_residents(self, clients: list[Any]) -> None:
        for resident in self.residents:
            for device in resident.devices:
                client = find_matching_client(device, clients)
                sample = None
                if client is not None and device.requires_traffic and client.get("mac"):
                    sample = await self._traffic_sample(client["mac"])
                update_device(device, client, sample)
            update_resident(resident)

    def _notify_sinks(self) -> None:
        for handler in self.handlers:
            handler.refresh()
            for sink in self.sinks:
                try:
                    sink.notify(handler.sink_id, handler.display_name, handler.occupied)
                except Exception:
                    logger.exception("Sink %s failed for %s", type(sink).__name__, handler.sink_id)

    async def refresh(self) -> None:
        """Run one refresh cycle. Never raises."""
        try:
            logger.debug("Refreshing device presence...")
            clients, access_points = await self._fetch_records()
            if not self.initialized and (clients or access_points):
                logger.info(
                    "Controller answered at %s, presence polling established",
                    self.controller.base_url,
                )
                self.initialized = True

            await self._update_residents(clients)

            for location in self.locations:
                resolve_location(location, access_points)
                update_location(location, self.residents)

            self._notify_sinks()
            self.cycles += 1

            home = [r.name for r in self.residents if r.is_home]
            if home:
                logger.info("Residents at home: %s", ", ".join(home))
            else:
                logger.info("No residents detected at home")
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Error refreshing device presence")
