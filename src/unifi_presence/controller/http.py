"""JSON-over-HTTP exchange with a controller, with classified failures."""

import json
import logging
from typing import Any

import httpx

from unifi_presence.controller.base import ControllerRequestError, FailureKind

logger = logging.getLogger(__name__)

_MAX_DIAGNOSTIC_BODY = 500


def unwrap_envelope(payload: Any) -> Any:
    """Return ``payload["data"]`` when the payload is a data envelope, else the payload."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def _describe_error_body(text: str) -> str:
    """Pull diagnostic text out of an error response body."""
    try:
        body = json.loads(text)
    except ValueError:
        if text and len(text) < _MAX_DIAGNOSTIC_BODY:
            return f" | Response: {text}"
        return ""

    parts = []
    if isinstance(body, dict):
        meta = body.get("meta")
        if isinstance(meta, dict) and meta.get("msg"):
            parts.append(f" | Message: {meta['msg']}")
        if body.get("message"):
            parts.append(f" | Message: {body['message']}")
        if body.get("error"):
            parts.append(f" | Error: {body['error']}")
        if body.get("details"):
            parts.append(f" | Details: {json.dumps(body['details'])}")
    return "".join(parts)


class ControllerHttp:
    """Issues authenticated requests against one base URL.

    One ``httpx.AsyncClient`` is opened on first use and reused until
    :meth:`aclose`. Every failure mode of an exchange surfaces as
    ControllerRequestError.
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str],
        verify: bool = False,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = {"Accept": "application/json", **headers}
        self.verify = verify
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers=self.headers,
                # Controllers usually ship self-signed certificates
                verify=self.verify,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get(self, path: str, params: dict[str, str] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, data: Any = None) -> Any:
        return await self.request("POST", path, json_body=data)

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> Any:
        """Perform one exchange and return the unwrapped JSON payload."""
        url = f"{self.base_url}{path}"
        where = f"{method} {url}"
        try:
            resp = await self.client.request(method, url, params=params, json=json_body)
        except httpx.HTTPError as e:
            raise ControllerRequestError(
                FailureKind.transport, f"UniFi API request failed: {e}", where
            ) from e

        if resp.status_code >= 400:
            message = f"UniFi API Error: HTTP {resp.status_code} - {resp.reason_phrase}"
            raise ControllerRequestError(
                FailureKind.http_status,
                message + _describe_error_body(resp.text),
                where,
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise ControllerRequestError(
                FailureKind.parse,
                f"Failed to parse JSON response: {e} | Raw response: {resp.text[:200]}",
                where,
                status_code=resp.status_code,
            ) from e

        if isinstance(payload, dict):
            meta = payload.get("meta")
            if isinstance(meta, dict) and meta.get("rc") == "error":
                raise ControllerRequestError(
                    FailureKind.http_status,
                    f"UniFi API Error: {meta.get('msg', 'unknown error')}",
                    where,
                    status_code=resp.status_code,
                )

        return unwrap_envelope(payload)
