"""Identity matching between configured descriptors and controller records.

Every identity field a descriptor specifies must match the same raw record.
Fields the descriptor leaves unset are not evaluated.
"""

from typing import Any

from unifi_presence.presence.models import Device, Location


def normalize_mac(mac: str) -> str:
    """Normalize a MAC address to uppercase colon-separated format."""
    cleaned = mac.strip().upper().replace("-", ":")
    # Cisco dotted (aabb.ccdd.eeff) and bare hex (AABBCCDDEEFF)
    if ":" not in cleaned:
        cleaned = cleaned.replace(".", "")
        if len(cleaned) == 12:
            cleaned = ":".join(cleaned[i : i + 2] for i in range(0, 12, 2))
    return cleaned


def _mac_equal(expected: str, raw: Any) -> bool:
    if not raw or not isinstance(raw, str):
        return False
    return normalize_mac(expected) == normalize_mac(raw)


def _ip_equal(expected: str, raw: Any) -> bool:
    if not raw or not isinstance(raw, str):
        return False
    return expected == raw


def _text_equal(expected: str, raw: Any) -> bool:
    if not raw or not isinstance(raw, str):
        return False
    return expected.casefold() == raw.casefold()


def matches_client(device: Device, client: dict[str, Any]) -> bool:
    """Return True if every identity field of ``device`` matches ``client``."""
    if not device.has_identity:
        return False
    if device.mac and not _mac_equal(device.mac, client.get("mac")):
        return False
    if device.ip and not _ip_equal(device.ip, client.get("ip")):
        return False
    if device.hostname:
        # Controllers populate either hostname or the display name
        if not (
            _text_equal(device.hostname, client.get("hostname"))
            or _text_equal(device.hostname, client.get("name"))
        ):
            return False
    return True


def matches_access_point(location: Location, access_point: dict[str, Any]) -> bool:
    """Return True if every identity field of ``location`` matches ``access_point``."""
    if not (location.mac or location.ip):
        return False
    if location.mac and not _mac_equal(location.mac, access_point.get("mac")):
        return False
    if location.ip and not _ip_equal(location.ip, access_point.get("ip")):
        return False
    return True
