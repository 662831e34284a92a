"""UniFi Presence application entrypoint."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

import unifi_presence.database as db_module
from unifi_presence.config import ConfigError, Settings, load_config, settings, validate_settings
from unifi_presence.controller.connection import create_controller
from unifi_presence.presence.models import Location, Resident
from unifi_presence.refresher import PresenceRefresher
from unifi_presence.sensors.base import OccupancyHandler, PresenceSink
from unifi_presence.sensors.handlers import (
    GlobalPresenceHandler,
    LocationPresenceHandler,
    ResidentPresenceHandler,
)
from unifi_presence.sensors.store import DatabaseSink
from unifi_presence.sensors.webhook import WebhookSink

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)


def _create_handlers(
    cfg: Settings, residents: list[Resident], locations: list[Location]
) -> list[OccupancyHandler]:
    handlers: list[OccupancyHandler] = []
    if cfg.global_presence_sensor:
        handlers.append(GlobalPresenceHandler(residents))
    handlers.extend(ResidentPresenceHandler(r) for r in residents)
    handlers.extend(LocationPresenceHandler(loc, residents) for loc in locations)
    return handlers


def _create_sinks(cfg: Settings) -> list[PresenceSink]:
    sinks: list[PresenceSink] = [DatabaseSink(db_module.engine)]
    if cfg.webhook_url:
        sinks.append(WebhookSink(cfg.webhook_url, timeout=cfg.request_timeout))
    return sinks


def build_refresher(cfg: Settings) -> PresenceRefresher:
    """Build the refresher for a validated configuration."""
    residents = [Resident.from_config(r) for r in cfg.residents]
    locations = [Location.from_config(w) for w in cfg.wifi_points]
    logger.info(
        "Configured %d residents with %d total devices",
        len(residents),
        sum(len(r.devices) for r in residents),
    )
    logger.info("Configured %d WiFi points", len(locations))

    return PresenceRefresher(
        controller=create_controller(cfg),
        residents=residents,
        locations=locations,
        handlers=_create_handlers(cfg, residents, locations),
        sinks=_create_sinks(cfg),
        interval=cfg.interval,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application startup/shutdown lifecycle."""
    # Import models to register them with SQLModel before init_db()
    import unifi_presence.sensors.models  # noqa: F401

    db_module.init_db()
    logger.info("Database initialized")

    app.state.refresher = None
    try:
        cfg = load_config()
        validate_settings(cfg)
    except (ConfigError, OSError, ValueError) as e:
        logger.error("ERROR: %s. Presence refresh disabled.", e)
    else:
        app.state.refresher = build_refresher(cfg)
        await app.state.refresher.start()

    yield

    if app.state.refresher is not None:
        await app.state.refresher.stop()


app = FastAPI(
    title="UniFi Presence",
    description="Resident and WiFi point occupancy from a UniFi controller",
    version="0.1.0",
    lifespan=lifespan,
)


# Register routers
from unifi_presence.api.routes import router as api_router  # noqa: E402

app.include_router(api_router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


def main() -> None:
    import uvicorn

    logger.info("Starting UniFi Presence on %s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
