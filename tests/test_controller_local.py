"""Tests for the local controller backend and its endpoint discovery."""

import httpx
import pytest

from unifi_presence.controller.base import ControllerSession, EndpointUnavailable, TrafficSample
from unifi_presence.controller.local import (
    CLIENT_ENDPOINTS,
    DEVICE_ENDPOINTS,
    LocalController,
    alternate_base_urls,
    local_base_url,
)

_CLIENTS = [{"mac": "aa:bb:cc:dd:ee:ff", "ap_mac": "11:22:33:44:55:66"}]


class _FakeController:
    """Serves a mutable path -> (status, body) table and records requested paths."""

    def __init__(self, routes: dict[str, tuple[int, object]] | None = None) -> None:
        self.routes = routes or {}
        self.calls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request.url.path)
        status, body = self.routes.get(request.url.path, (404, "Not Found"))
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)


def _controller(
    fake: _FakeController, site: str = "home", controller: str = "https://unifi.test:8443"
) -> LocalController:
    session = ControllerSession(api_key="secret", controller=controller, site=site)
    return LocalController(session, transport=httpx.MockTransport(fake))


class TestBaseUrl:
    def test_bare_ip_gets_proxy_prefix(self):
        assert local_base_url("https://192.168.1.1") == "https://192.168.1.1/proxy/network"

    def test_trailing_slash_removed(self):
        assert local_base_url("https://192.168.1.1/") == "https://192.168.1.1/proxy/network"

    def test_missing_scheme_defaults_to_https(self):
        assert local_base_url("192.168.1.1") == "https://192.168.1.1/proxy/network"

    def test_dot_local_gets_proxy_prefix(self):
        assert local_base_url("https://udm.local") == "https://udm.local/proxy/network"

    def test_legacy_port_kept_as_is(self):
        assert local_base_url("https://192.168.1.2:8443") == "https://192.168.1.2:8443"

    def test_existing_proxy_prefix_kept(self):
        url = "https://192.168.1.1/proxy/network"
        assert local_base_url(url) == url

    def test_hostname_kept_as_is(self):
        assert local_base_url("https://unifi.example.com") == "https://unifi.example.com"


class TestAlternateBaseUrls:
    def test_excludes_primary(self):
        assert alternate_base_urls("https://192.168.1.1") == [
            "https://192.168.1.1:8443",
            "https://192.168.1.1",
            "http://192.168.1.1:8080",
        ]

    def test_hostname_controller(self):
        assert alternate_base_urls("https://unifi.example.com:8443") == [
            "https://unifi.example.com/proxy/network",
            "https://unifi.example.com",
            "http://unifi.example.com:8080",
        ]


class TestClientDiscovery:
    @pytest.mark.asyncio
    async def test_fourth_candidate_wins_and_is_remembered(self):
        fake = _FakeController({"/api/stat/sta": (200, _CLIENTS)})
        controller = _controller(fake)

        result = await controller.list_active_clients()

        assert result == _CLIENTS
        assert fake.calls == [
            "/api/s/home/clients/active",
            "/api/s/home/stat/alluser",
            "/api/s/home/stat/sta",
            "/api/stat/sta",
        ]
        assert controller.profile.endpoints["clients"] == "/api/stat/sta"

        fake.calls.clear()
        assert await controller.list_active_clients() == _CLIENTS
        assert fake.calls == ["/api/stat/sta"]

    @pytest.mark.asyncio
    async def test_envelope_is_unwrapped(self):
        fake = _FakeController(
            {"/api/s/home/clients/active": (200, {"meta": {"rc": "ok"}, "data": _CLIENTS})}
        )
        assert await _controller(fake).list_active_clients() == _CLIENTS

    @pytest.mark.asyncio
    async def test_non_list_payload_is_skipped(self):
        fake = _FakeController(
            {
                "/api/s/home/clients/active": (200, {"data": {"count": 3}}),
                "/api/s/home/stat/alluser": (200, _CLIENTS),
            }
        )
        controller = _controller(fake)
        assert await controller.list_active_clients() == _CLIENTS
        assert controller.profile.endpoints["clients"] == "/api/s/{site}/stat/alluser"

    @pytest.mark.asyncio
    async def test_non_object_entries_are_dropped(self):
        fake = _FakeController(
            {"/api/s/home/clients/active": (200, {"data": [None, 3, "x", *_CLIENTS]})}
        )
        assert await _controller(fake).list_active_clients() == _CLIENTS

    @pytest.mark.asyncio
    async def test_all_candidates_fail_returns_empty(self):
        fake = _FakeController()
        controller = _controller(fake)

        assert await controller.list_active_clients() == []
        assert len(fake.calls) == len(CLIENT_ENDPOINTS)
        assert "clients" not in controller.profile.endpoints

    @pytest.mark.asyncio
    async def test_default_site_deduplicates_candidates(self):
        fake = _FakeController()
        await _controller(fake, site="default").list_active_clients()
        assert len(fake.calls) == 6
        assert len(set(fake.calls)) == 6

    @pytest.mark.asyncio
    async def test_transport_errors_fall_through(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        session = ControllerSession(api_key="k", controller="https://unifi.test:8443")
        controller = LocalController(session, transport=httpx.MockTransport(handler))

        assert await controller.list_active_clients() == []
        assert await controller.list_access_points() == []

    @pytest.mark.asyncio
    async def test_failed_remembered_endpoint_is_rediscovered(self):
        fake = _FakeController({"/api/stat/sta": (200, _CLIENTS)})
        controller = _controller(fake)
        await controller.list_active_clients()

        fake.routes = {"/api/clients/active": (200, [])}
        fake.calls.clear()

        assert await controller.list_active_clients() == []
        assert fake.calls == [
            "/api/stat/sta",
            "/api/s/home/clients/active",
            "/api/s/home/stat/alluser",
            "/api/s/home/stat/sta",
            "/api/clients/active",
        ]
        assert controller.profile.endpoints["clients"] == "/api/clients/active"

    @pytest.mark.asyncio
    async def test_proxy_prefix_in_request_path(self):
        fake = _FakeController({"/proxy/network/api/s/default/clients/active": (200, _CLIENTS)})
        controller = _controller(fake, site="default", controller="https://192.168.1.1")
        assert await controller.list_active_clients() == _CLIENTS


class TestAccessPoints:
    @pytest.mark.asyncio
    async def test_siteless_device_endpoint(self):
        aps = [{"mac": "11:22:33:44:55:66", "type": "uap"}]
        fake = _FakeController({"/api/stat/device": (200, {"data": aps})})
        controller = _controller(fake)

        assert await controller.list_access_points() == aps
        assert fake.calls == [
            "/api/s/home/stat/device",
            "/api/s/home/device",
            "/api/stat/device",
        ]

    @pytest.mark.asyncio
    async def test_all_fail_returns_empty(self):
        fake = _FakeController()
        assert await _controller(fake).list_access_points() == []
        assert len(fake.calls) == len(DEVICE_ENDPOINTS)


class TestUnavailable:
    @pytest.mark.asyncio
    async def test_error_carries_every_attempt(self):
        fake = _FakeController({"/api/s/home/stat/device": (500, {"meta": {"msg": "api.err.Invalid"}})})
        controller = _controller(fake)

        with pytest.raises(EndpointUnavailable) as exc_info:
            await controller._fetch("devices", DEVICE_ENDPOINTS)

        assert exc_info.value.resource == "devices"
        assert len(exc_info.value.errors) == len(DEVICE_ENDPOINTS)
        assert exc_info.value.errors[0].status_code == 500
        assert "last error" in str(exc_info.value)


class TestTraffic:
    @pytest.mark.asyncio
    async def test_sample_from_station_stats(self):
        fake = _FakeController(
            {
                "/api/s/home/stat/sta/aa:bb:cc:dd:ee:ff": (
                    200,
                    {"data": [{"rx_bytes": 40000, "tx_bytes": 12000}]},
                )
            }
        )
        sample = await _controller(fake).get_short_window_traffic("AA:BB:CC:DD:EE:FF")
        assert sample == TrafficSample(rx_bytes=40000, tx_bytes=12000)

    @pytest.mark.asyncio
    async def test_legacy_client_stat_path(self):
        fake = _FakeController(
            {"/api/site/home/stat/client/aa:bb:cc:dd:ee:ff": (200, [{"rx_bytes": 10}])}
        )
        sample = await _controller(fake).get_short_window_traffic("aa:bb:cc:dd:ee:ff")
        assert sample == TrafficSample(rx_bytes=10, tx_bytes=0)

    @pytest.mark.asyncio
    async def test_empty_stats_is_none(self):
        fake = _FakeController({"/api/s/home/stat/sta/aa:bb:cc:dd:ee:ff": (200, [])})
        assert await _controller(fake).get_short_window_traffic("aa:bb:cc:dd:ee:ff") is None

    @pytest.mark.asyncio
    async def test_unavailable_is_none(self):
        assert await _controller(_FakeController()).get_short_window_traffic("aa") is None


class TestProbe:
    @pytest.mark.asyncio
    async def test_clients_first(self):
        fake = _FakeController({"/api/s/home/clients/active": (200, [])})
        assert await _controller(fake).probe() is True
        assert fake.calls == ["/api/s/home/clients/active"]

    @pytest.mark.asyncio
    async def test_falls_back_to_devices(self):
        fake = _FakeController({"/api/device": (200, [])})
        assert await _controller(fake).probe() is True
        assert fake.calls[len(CLIENT_ENDPOINTS)] == "/api/s/home/stat/device"
        assert fake.calls[-1] == "/api/device"

    @pytest.mark.asyncio
    async def test_raw_client_list_is_last_resort(self):
        fake = _FakeController()
        station_hits = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal station_hits
            if request.url.path == "/api/stat/sta":
                station_hits += 1
                if station_hits > 1:
                    return httpx.Response(200, json={"data": _CLIENTS})
            return fake(request)

        session = ControllerSession(api_key="k", controller="https://unifi.test:8443", site="home")
        controller = LocalController(session, transport=httpx.MockTransport(handler))

        assert await controller.probe() is True
        assert fake.calls[len(CLIENT_ENDPOINTS) + len(DEVICE_ENDPOINTS) :] == [
            "/api/s/home/stat/sta",
        ]
        assert station_hits == 2
        assert controller.profile.endpoints["clients"] == "/api/stat/sta"

    @pytest.mark.asyncio
    async def test_site_listing_alone_is_not_reachable(self):
        fake = _FakeController({"/api/self/sites": (200, {"data": [{"name": "default"}]})})
        assert await _controller(fake).probe() is False
        assert "/api/self/sites" not in fake.calls

    @pytest.mark.asyncio
    async def test_all_fail(self):
        assert await _controller(_FakeController()).probe() is False

    @pytest.mark.asyncio
    async def test_with_base_url_keeps_session(self):
        fake = _FakeController()
        controller = _controller(fake)
        other = controller.with_base_url("http://unifi.test:8080/")
        assert other.base_url == "http://unifi.test:8080"
        assert other.session is controller.session
        assert other.profile.endpoints == {}
