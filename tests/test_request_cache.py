"""Tests for the offline request cache transport."""

import httpx
import pytest
import pytest_asyncio

from bentamate.clients.backend import BackendClient
from bentamate.clients.request_cache import (
    API_CACHE,
    CACHE_NAME,
    OFFLINE_PAYLOAD,
    OfflineCacheTransport,
    ResponseCache,
)
from bentamate.core.errors import NetworkError

API_URL = "https://project.backend.test"
APP_URL = "https://pos.bentamate.test"


class Upstream:
    """Origin server that can be switched off."""

    def __init__(self):
        self.up = True
        self.hits = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if not self.up:
            raise httpx.ConnectError("network is down", request=request)
        self.hits += 1
        if request.url.path == "/rest/v1/products":
            return httpx.Response(200, json=[{"id": "A", "hit": self.hits}])
        if request.url.path == "/missing":
            return httpx.Response(404, text="not found")
        if "text/html" in request.headers.get("accept", "") or request.url.path == "/":
            return httpx.Response(200, text=f"<html>{request.url.path}</html>",
                                  headers={"Content-Type": "text/html"})
        return httpx.Response(200, text="body { color: black; }")


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def transport(upstream) -> OfflineCacheTransport:
    return OfflineCacheTransport(
        httpx.MockTransport(upstream),
        api_host="project.backend.test",
        app_shell_url=f"{APP_URL}/",
    )


@pytest_asyncio.fixture
async def http(transport):
    client = httpx.AsyncClient(transport=transport)
    yield client
    await client.aclose()


HTML = {"Accept": "text/html"}


class TestApiRequests:

    @pytest.mark.asyncio
    async def test_network_first_then_cache(self, http, upstream):
        first = await http.get(f"{API_URL}/rest/v1/products")
        second = await http.get(f"{API_URL}/rest/v1/products")
        assert (first.json()[0]["hit"], second.json()[0]["hit"]) == (1, 2)

        upstream.up = False
        cached = await http.get(f"{API_URL}/rest/v1/products")

        assert cached.status_code == 200
        assert cached.json()[0]["hit"] == 2

    @pytest.mark.asyncio
    async def test_uncached_read_gets_offline_payload(self, http, upstream):
        upstream.up = False

        response = await http.get(f"{API_URL}/rest/v1/transactions")

        assert response.status_code == 200
        assert response.json() == OFFLINE_PAYLOAD

    @pytest.mark.asyncio
    async def test_failed_write_still_raises(self, http, upstream):
        upstream.up = False
        with pytest.raises(httpx.ConnectError):
            await http.post(f"{API_URL}/rest/v1/transactions", json={"total": "1.00"})

    @pytest.mark.asyncio
    async def test_error_responses_are_not_cached(self, http, transport):
        await http.get(f"{API_URL}/missing")
        assert transport.cache.open(API_CACHE) == {}


class TestResources:

    @pytest.mark.asyncio
    async def test_navigation_falls_back_to_app_shell(self, http, transport, upstream):
        await transport.install([f"{APP_URL}/"])
        upstream.up = False

        response = await http.get(f"{APP_URL}/inventory", headers=HTML)

        assert response.status_code == 200
        assert response.text == "<html>/</html>"

    @pytest.mark.asyncio
    async def test_navigation_without_shell_is_503(self, http, upstream):
        upstream.up = False
        response = await http.get(f"{APP_URL}/inventory", headers=HTML)
        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_static_assets_are_cache_first(self, http, upstream):
        await http.get(f"{APP_URL}/static/app.css")
        hits = upstream.hits

        response = await http.get(f"{APP_URL}/static/app.css")

        assert response.text == "body { color: black; }"
        assert upstream.hits == hits

    @pytest.mark.asyncio
    async def test_missing_asset_offline_is_404(self, http, upstream):
        upstream.up = False

        response = await http.get(f"{APP_URL}/static/logo.png")

        assert response.status_code == 404
        assert response.text == "Resource not available offline"


class TestLifecycle:

    def test_activate_drops_old_caches(self):
        cache = ResponseCache()
        for name in ("bentamate-v1", CACHE_NAME, API_CACHE):
            cache.open(name)
        transport = OfflineCacheTransport(httpx.MockTransport(Upstream()), api_host="", cache=cache)

        assert transport.activate() == ["bentamate-v1"]
        assert sorted(cache.names()) == sorted([CACHE_NAME, API_CACHE])

    @pytest.mark.asyncio
    async def test_backend_client_sees_network_error_offline(self, transport, upstream):
        client = BackendClient(API_URL, api_key="anon-key", transport=transport)
        try:
            upstream.up = False
            with pytest.raises(NetworkError):
                await client.select("transactions")
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_ping_is_never_answered_from_cache(self, transport, upstream):
        client = BackendClient(API_URL, api_key="anon-key", transport=transport)
        try:
            assert await client.ping() is True
            await client.select("products")

            upstream.up = False

            assert await client.ping() is False
        finally:
            await client.aclose()
