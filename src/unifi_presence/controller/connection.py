"""Connection checks for controller backends.

Used at startup and by the diagnostics endpoint to validate the
configuration before committing to a polling cadence.
"""

import logging
from dataclasses import dataclass

from unifi_presence.config import BackendKind, Settings
from unifi_presence.controller.base import BaseController, ControllerSession
from unifi_presence.controller.cloud import CloudController
from unifi_presence.controller.local import LocalController, alternate_base_urls

logger = logging.getLogger(__name__)


@dataclass
class ConnectionResult:
    """Result of a connection test attempt."""

    success: bool
    message: str
    base_url: str
    client_count: int | None = None


def session_from_settings(cfg: Settings) -> ControllerSession:
    return ControllerSession(
        api_key=cfg.api_key or "",
        controller=cfg.controller,
        site=cfg.site,
        verify_tls=cfg.verify_tls,
        backend=cfg.backend,
        host_id=cfg.host_id,
        request_timeout=cfg.request_timeout,
    )


def create_controller(cfg: Settings) -> BaseController:
    """Factory: instantiate the backend selected by configuration."""
    session = session_from_settings(cfg)
    if session.backend == BackendKind.cloud:
        return CloudController(session)
    return LocalController(session)


async def check_connection(controller: BaseController) -> ConnectionResult:
    """Probe ``controller`` and report what it answered with."""
    try:
        if not await controller.probe():
            return ConnectionResult(
                success=False,
                message="No endpoint answered",
                base_url=controller.base_url,
            )
        clients = await controller.list_active_clients()
    except Exception as e:
        logger.warning("Connection test failed: %s", e)
        return ConnectionResult(success=False, message=str(e), base_url=controller.base_url)

    count = len(clients)
    logger.info("Connection test successful: %d active clients", count)
    return ConnectionResult(
        success=True,
        message=f"Connected — {count} active clients",
        base_url=controller.base_url,
        client_count=count,
    )


async def find_reachable_controller(
    controller: BaseController,
) -> tuple[BaseController, bool]:
    """Return a controller that answers its probe, trying alternate base URLs.

    Only local controllers have alternates. If nothing answers, the
    original controller is returned with ``False``.
    """
    if await controller.probe():
        return controller, True

    if not isinstance(controller, LocalController) or not controller.session.controller:
        return controller, False

    for base_url in alternate_base_urls(controller.session.controller):
        logger.info("Trying alternate controller URL %s", base_url)
        candidate = controller.with_base_url(base_url)
        if await candidate.probe():
            logger.info("Controller reachable at %s", base_url)
            return candidate, True
        await candidate.aclose()

    return controller, False
