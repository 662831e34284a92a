"""Webhook sink: POSTs sensor state changes to a URL."""

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from unifi_presence.sensors.base import PresenceSink

logger = logging.getLogger(__name__)


def build_payload(sink_id: str, display_name: str, occupied: bool) -> dict[str, Any]:
    return {
        "event": "occupied" if occupied else "vacant",
        "timestamp": datetime.now(UTC).isoformat(),
        "sensor": {"id": sink_id, "name": display_name},
        "occupied": occupied,
    }


class WebhookSink(PresenceSink):
    """Fires a webhook whenever a sensor changes state.

    The first notification for a sensor only establishes its baseline.
    """

    def __init__(self, url: str, timeout: float = 10.0) -> None:
        self.url = url
        self.timeout = timeout
        self._last_state: dict[str, bool] = {}

    def notify(self, sink_id: str, display_name: str, occupied: bool) -> None:
        previous = self._last_state.get(sink_id)
        self._last_state[sink_id] = occupied
        if previous is None or previous == occupied:
            return
        self.dispatch(build_payload(sink_id, display_name, occupied))

    def dispatch(self, payload: dict[str, Any]) -> bool:
        """POST one payload. Returns True on a 2xx response."""
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.url, json=payload)
        except Exception as e:
            logger.error("Webhook dispatch error: %s → %s: %s", payload["event"], self.url, e)
            return False

        if response.is_success:
            logger.info(
                "Webhook delivered: %s → %s (HTTP %d)",
                payload["event"],
                self.url,
                response.status_code,
            )
        else:
            logger.warning(
                "Webhook failed: %s → %s (HTTP %d)",
                payload["event"],
                self.url,
                response.status_code,
            )
        return bool(response.is_success)
