"""Application configuration via environment variables, .env and platform config files."""

import enum
import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings
from pydantic_settings.sources import DotEnvSettingsSource, PydanticBaseSettingsSource

# Path to .env file (patch in tests to use tmp_path / ".env")
_ENV_FILE: Path = Path(".env")

MIN_INTERVAL = 30
MAX_INTERVAL = 3600


class ConfigError(Exception):
    """Raised when the configuration cannot drive a controller."""


class BackendKind(enum.StrEnum):
    local = "local"
    cloud = "cloud"


class _ConfigModel(BaseModel):
    # Accept both snake_case and the camelCase keys of platform config files
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DeviceConfig(_ConfigModel):
    name: str
    mac: str | None = None
    ip: str | None = None
    hostname: str | None = None
    min_traffic_amount: float | None = None


class ResidentConfig(_ConfigModel):
    name: str
    devices: list[DeviceConfig] = []


class WifiPointConfig(_ConfigModel):
    name: str
    mac: str | None = None
    ip: str | None = None


class Settings(BaseSettings):
    model_config = {
        "env_prefix": "UNIFI_PRESENCE_",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Load .env from _ENV_FILE (patchable in tests)
        return (
            init_settings,
            env_settings,
            DotEnvSettingsSource(
                settings_cls,
                env_file=_ENV_FILE,
                env_file_encoding="utf-8",
            ),
            file_secret_settings,
        )

    # Database
    db_path: Path = Path("./data/unifi_presence.db")

    # Logging
    log_level: str = "info"

    # Optional JSON platform config (see load_platform_config)
    config_file: Path | None = None

    # UniFi controller
    controller: str | None = None
    api_key: str | None = None
    site: str = "default"
    verify_tls: bool = False
    backend: BackendKind = BackendKind.local
    host_id: str | None = None  # Site Manager only
    request_timeout: float = 10.0

    # Polling
    interval: int = 180  # seconds between refresh cycles

    # Sensors
    global_presence_sensor: bool = True
    residents: list[ResidentConfig] = []
    wifi_points: list[WifiPointConfig] = []

    # Webhook sink (optional, omit to disable)
    webhook_url: str | None = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("interval", mode="before")
    @classmethod
    def clamp_interval(cls, v: object) -> int:
        """Clamp the refresh interval into the supported range; empty means default."""
        if v is None or v == "" or v == 0:
            return 180
        return max(MIN_INTERVAL, min(MAX_INTERVAL, int(v)))  # type: ignore[call-overload]

    @field_validator("site", mode="before")
    @classmethod
    def default_site(cls, v: object) -> str:
        if not v:
            return "default"
        return str(v)


def validate_settings(cfg: Settings) -> None:
    """Raise ConfigError if cfg cannot be used to reach a controller."""
    if not cfg.api_key:
        raise ConfigError("UniFi API key is required")
    if cfg.backend == BackendKind.cloud:
        if not cfg.host_id:
            raise ConfigError("Host ID is required when using the Site Manager API")
        return
    if not cfg.controller:
        raise ConfigError("UniFi controller address is not configured")


def _platform_to_settings(platform: dict[str, Any]) -> dict[str, Any]:
    """Map a Homebridge-style platform block onto Settings field names."""
    unifi = platform.get("unifi") or {}
    values: dict[str, Any] = {
        "controller": unifi.get("controller"),
        "api_key": unifi.get("apiKey"),
        "site": unifi.get("site"),
        "verify_tls": bool(unifi.get("secure", False)),
        "backend": BackendKind.cloud if unifi.get("useSiteManagerApi") else BackendKind.local,
        "host_id": unifi.get("hostId"),
        "interval": platform.get("interval"),
        "global_presence_sensor": platform.get("globalPresenceSensor", True),
        "residents": platform.get("residents") or [],
        "wifi_points": platform.get("wifiPoints") or [],
    }
    return {k: v for k, v in values.items() if v is not None}


def load_platform_config(path: Path) -> dict[str, Any]:
    """Read a JSON platform config file and return Settings keyword arguments.

    Accepts either the platform block itself or a full host config with a
    ``platforms`` list, in which case the first block carrying a ``unifi``
    section is used.
    """
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)

    if isinstance(raw, dict) and "platforms" in raw:
        blocks = [p for p in raw["platforms"] if isinstance(p, dict) and "unifi" in p]
        if not blocks:
            raise ConfigError(f"No UniFi platform block found in {path}")
        raw = blocks[0]
    if not isinstance(raw, dict):
        raise ConfigError(f"Platform config in {path} must be a JSON object")
    return _platform_to_settings(raw)


def load_config(path: Path | None = None) -> Settings:
    """Load configuration from .env and environment (env overrides .env).

    Values from a platform config file (``path`` or ``config_file``) take
    precedence over both.
    """
    cfg = Settings()
    path = path or cfg.config_file
    if path is None:
        return cfg
    return Settings(config_file=path, **load_platform_config(path))


settings = Settings()
