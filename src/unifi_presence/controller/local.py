"""Local (on-premises) UniFi controller backend.

The same API lives under different paths depending on the hardware and
firmware generation: UniFi OS consoles proxy it under ``/proxy/network``,
cloud keys and software controllers serve it directly, and some builds only
expose the legacy ``stat`` resources or ignore the site. Each resource is
therefore fetched from an ordered list of candidate endpoints; the first one
that answers with a JSON list is remembered for the lifetime of the instance.
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
    EndpointUnavailable,
    FailureKind,
    TrafficSample,
)
from unifi_presence.controller.http import ControllerHttp

logger = logging.getLogger(__name__)

CLIENT_ENDPOINTS = (
    "/api/s/{site}/clients/active",
    "/api/s/{site}/stat/alluser",
    "/api/s/{site}/stat/sta",
    "/api/stat/sta",
    "/api/clients/active",
    "/api/stat/alluser",
    "/api/s/default/clients/active",
    "/api/s/default/stat/alluser",
    "/api/s/default/stat/sta",
)

DEVICE_ENDPOINTS = (
    "/api/s/{site}/stat/device",
    "/api/s/{site}/device",
    "/api/stat/device",
    "/api/device",
    "/api/s/default/stat/device",
    "/api/s/default/device",
)

# Legacy station listing, last resort when checking reachability
RAW_CLIENT_ENDPOINTS = (
    "/api/s/{site}/stat/sta",
    "/api/stat/sta",
)

TRAFFIC_ENDPOINTS = (
    "/api/s/{site}/stat/sta/{mac}",
    "/api/site/{site}/stat/client/{mac}",
)

PROXY_PREFIX = "/proxy/network"

_BARE_IP_URL_RE = re.compile(r"^https?://\d+\.\d+\.\d+\.\d+$")


def _with_scheme(controller: str) -> str:
    controller = controller.strip().rstrip("/")
    if "://" not in controller:
        controller = "https://" + controller
    return controller


def local_base_url(controller: str) -> str:
    """Guess the API base URL for a user-supplied controller address.

    UniFi OS consoles addressed by IP, ``.local`` name or ``unifi.ui.com`` get
    the network proxy prefix unless a port or the prefix is already given.
    """
    url = _with_scheme(controller)
    if PROXY_PREFIX in url or ":8443" in url or ":8080" in url:
        return url
    if _BARE_IP_URL_RE.match(url) or ".local" in url or "unifi.ui.com" in url:
        return url + PROXY_PREFIX
    return url


def alternate_base_urls(controller: str) -> list[str]:
    """Other plausible base URLs for the controller host, in trial order."""
    primary = local_base_url(controller)
    host = httpx.URL(_with_scheme(controller)).host
    candidates = [
        f"https://{host}{PROXY_PREFIX}",
        f"https://{host}:8443",
        f"https://{host}",
        f"http://{host}:8080",
    ]
    result: list[str] = []
    for url in candidates:
        if url != primary and url not in result:
            result.append(url)
    return result


def _expand(templates: tuple[str, ...], **values: str) -> list[tuple[str, str]]:
    """Format templates, dropping later duplicates. Returns (template, path) pairs."""
    seen: set[str] = set()
    expanded = []
    for template in templates:
        path = template.format(**values)
        if path in seen:
            continue
        seen.add(path)
        expanded.append((template, path))
    return expanded


class LocalController(BaseController):
    """Talks to a UniFi Network application reachable on the local network."""

    def __init__(
        self,
        session: ControllerSession,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if base_url is None:
            if not session.controller:
                raise ValueError("A controller address is required for the local backend")
            base_url = local_base_url(session.controller)
        super().__init__(session, BackendProfile(base_url=base_url.rstrip("/")))
        self._transport = transport
        self.http = ControllerHttp(
            self.profile.base_url,
            headers={"X-API-KEY": session.api_key},
            verify=session.verify_tls,
            timeout=session.request_timeout,
            transport=transport,
        )

    def with_base_url(self, base_url: str) -> "LocalController":
        """Return a fresh controller for the same session at another base URL."""
        return LocalController(self.session, base_url=base_url, transport=self._transport)

    async def aclose(self) -> None:
        await self.http.aclose()

    async def _get_list(self, path: str) -> list[dict[str, Any]]:
        """GET a JSON list, keeping only its object entries."""
        payload = await self.http.get(path)
        if not isinstance(payload, list):
            raise ControllerRequestError(
                FailureKind.parse,
                f"Expected a JSON list, got {type(payload).__name__}",
                f"GET {self.base_url}{path}",
            )
        return [r for r in payload if isinstance(r, dict)]

    async def _fetch(
        self, resource: str, templates: tuple[str, ...], **values: str
    ) -> list[dict[str, Any]]:
        """Fetch ``resource`` via the remembered endpoint or by discovery.

        A remembered endpoint that fails is forgotten and not retried during
        the rediscovery that follows. Raises EndpointUnavailable if no
        candidate answers.
        """
        values.setdefault("site", self.session.site)

        errors: list[ControllerRequestError] = []
        failed_path = None
        cached = self.profile.endpoints.get(resource)
        if cached is not None:
            try:
                return await self._get_list(cached.format(**values))
            except ControllerRequestError as e:
                logger.warning("Remembered %s endpoint %s failed: %s", resource, cached, e)
                del self.profile.endpoints[resource]
                errors.append(e)
                failed_path = cached.format(**values)

        for template, path in _expand(templates, **values):
            if path == failed_path:
                continue
            try:
                result = await self._get_list(path)
            except ControllerRequestError as e:
                logger.debug("Failed to fetch %s from %s: %s", resource, path, e)
                errors.append(e)
                continue
            logger.info("Fetched %s from %s", resource, path)
            self.profile.endpoints[resource] = template
            return result

        raise EndpointUnavailable(resource, errors)

    async def list_active_clients(self) -> list[ClientRecord]:
        try:
            return await self._fetch("clients", CLIENT_ENDPOINTS)
        except EndpointUnavailable as e:
            logger.warning("All client endpoints failed on %s: %s", self.base_url, e)
            return []

    async def list_access_points(self) -> list[DeviceRecord]:
        try:
            return await self._fetch("devices", DEVICE_ENDPOINTS)
        except EndpointUnavailable as e:
            logger.warning("All device endpoints failed on %s: %s", self.base_url, e)
            return []

    async def get_short_window_traffic(self, mac: str) -> TrafficSample | None:
        try:
            stats = await self._fetch("traffic", TRAFFIC_ENDPOINTS, mac=mac.lower())
        except EndpointUnavailable:
            logger.debug("No traffic statistics available for %s", mac)
            return None
        if not stats:
            return None
        record = stats[0]
        return TrafficSample(
            rx_bytes=int(record.get("rx_bytes") or 0),
            tx_bytes=int(record.get("tx_bytes") or 0),
        )

    async def probe(self) -> bool:
        checks = (
            ("clients", CLIENT_ENDPOINTS),
            ("devices", DEVICE_ENDPOINTS),
            ("clients", RAW_CLIENT_ENDPOINTS),
        )
        for resource, templates in checks:
            try:
                await self._fetch(resource, templates)
                return True
            except EndpointUnavailable as e:
                logger.info("Probe via %s failed: %s", resource, e)
        logger.warning("Controller probe failed, base URL used: %s", self.base_url)
        return False
