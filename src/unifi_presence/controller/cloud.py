"""UniFi Site Manager (cloud) backend.

The Site Manager API only exposes managed devices grouped by host. There is
no active-client or traffic resource, so clients are approximated by the
host's networking devices.
"""

import logging
import re
from typing import Any

import httpx

from unifi_presence.controller.base import (
    BackendProfile,
    BaseController,
    ClientRecord,
    ControllerRequestError,
    ControllerSession,
    DeviceRecord,
    FailureKind,
    TrafficSample,
)
from unifi_presence.controller.http import ControllerHttp

logger = logging.getLogger(__name__)

SITE_MANAGER_URL = "https://api.ui.com"

_ACCESS_POINT_MODEL_RE = re.compile(r"AP|Switch|^U[67]|^USW")


class CloudController(BaseController):
    """Reads device data for one console through the Site Manager API."""

    def __init__(
        self,
        session: ControllerSession,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(session, BackendProfile(base_url=SITE_MANAGER_URL))
        self.http = ControllerHttp(
            SITE_MANAGER_URL,
            headers={"X-API-Key": session.api_key},
            verify=True,
            timeout=session.request_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    async def _hosts(self) -> list[dict[str, Any]]:
        params = {"hostIds[]": self.session.host_id} if self.session.host_id else None
        payload = await self.http.get("/v1/devices", params=params)
        if not isinstance(payload, list):
            raise ControllerRequestError(
                FailureKind.parse,
                f"Expected a JSON list, got {type(payload).__name__}",
                f"GET {SITE_MANAGER_URL}/v1/devices",
            )
        return [h for h in payload if isinstance(h, dict)]

    async def _network_devices(self) -> list[dict[str, Any]]:
        hosts = await self._hosts()
        return [
            device
            for host in hosts
            for device in host.get("devices") or []
            if isinstance(device, dict) and device.get("productLine") == "network"
        ]

    async def list_active_clients(self) -> list[ClientRecord]:
        try:
            return await self._network_devices()
        except ControllerRequestError as e:
            logger.warning("Site Manager device listing failed: %s", e)
            return []

    async def list_access_points(self) -> list[DeviceRecord]:
        try:
            devices = await self._network_devices()
        except ControllerRequestError as e:
            logger.warning("Site Manager device listing failed: %s", e)
            return []
        return [d for d in devices if _ACCESS_POINT_MODEL_RE.search(d.get("model") or "")]

    async def get_short_window_traffic(self, mac: str) -> TrafficSample | None:
        return None

    async def probe(self) -> bool:
        try:
            await self._hosts()
            return True
        except ControllerRequestError as e:
            logger.warning("Site Manager probe failed: %s", e)
            return False
