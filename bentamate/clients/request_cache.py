# bentamate/clients/request_cache.py
"""Request-level cache in front of the HTTP transport.

Mirrors what a service worker does for the web client:

* API-origin requests go network-first; good GET responses are cached and
  served back when the network fails. A failed GET with nothing cached gets a
  200 JSON ``{"error": "Offline", "offline": true}`` payload instead of an error.
* Navigations go cache-first and fall back to the cached app shell.
* Everything else goes cache-first and turns into a 404 when nothing works.
"""
import json
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

CACHE_NAME = "bentamate-v2"
API_CACHE = "bentamate-api-v1"

OFFLINE_PAYLOAD = {
    "error": "Offline",
    "message": "Network unavailable",
    "offline": True,
}

# dropped because the stored body is already decoded
_HOP_HEADERS = {"content-encoding", "transfer-encoding", "content-length", "connection"}


class CachedResponse:
    __slots__ = ("status_code", "headers", "content")

    def __init__(self, status_code: int, headers: List[Tuple[str, str]], content: bytes):
        self.status_code = status_code
        self.headers = headers
        self.content = content

    @classmethod
    async def capture(cls, response: httpx.Response) -> "CachedResponse":
        content = await response.aread()
        headers = [(k, v) for k, v in response.headers.items() if k.lower() not in _HOP_HEADERS]
        return cls(response.status_code, headers, content)

    def to_response(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            self.status_code,
            headers=self.headers,
            content=self.content,
            request=request,
        )


class ResponseCache:
    """Named response caches keyed by method and URL."""

    def __init__(self):
        self._caches: Dict[str, Dict[str, CachedResponse]] = {}

    @staticmethod
    def key(method: str, url) -> str:
        return f"{method.upper()} {url}"

    def open(self, name: str) -> Dict[str, CachedResponse]:
        return self._caches.setdefault(name, {})

    def match(self, name: str, method: str, url) -> Optional[CachedResponse]:
        return self._caches.get(name, {}).get(self.key(method, url))

    def put(self, name: str, method: str, url, entry: CachedResponse) -> None:
        self.open(name)[self.key(method, url)] = entry

    def names(self) -> List[str]:
        return list(self._caches)

    def delete(self, name: str) -> bool:
        return self._caches.pop(name, None) is not None


def is_navigation(request: httpx.Request) -> bool:
    if request.headers.get("sec-fetch-mode") == "navigate":
        return True
    return request.method == "GET" and "text/html" in request.headers.get("accept", "")


class OfflineCacheTransport(httpx.AsyncBaseTransport):

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        api_host: str,
        app_shell_url: str = "/",
        cache: Optional[ResponseCache] = None,
    ):
        self.transport = transport
        self.api_host = api_host
        self.app_shell_url = app_shell_url
        self.cache = cache or ResponseCache()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if self.api_host and self.api_host in request.url.host:
            return await self._network_first(request)
        if is_navigation(request):
            return await self._navigation(request)
        return await self._cache_first(request)

    async def _fetch(self, request: httpx.Request, cache_name: str) -> httpx.Response:
        response = await self.transport.handle_async_request(request)
        entry = await CachedResponse.capture(response)
        await response.aclose()
        if request.method == "GET" and 200 <= entry.status_code < 300:
            self.cache.put(cache_name, request.method, request.url, entry)
        return entry.to_response(request)

    async def _network_first(self, request: httpx.Request) -> httpx.Response:
        try:
            return await self._fetch(request, API_CACHE)
        except httpx.TransportError:
            logger.info("Network failed, trying cache: %s", request.url)
            cached = self.cache.match(API_CACHE, request.method, request.url)
            if cached is not None:
                return cached.to_response(request)
            if request.method != "GET":
                raise
            return httpx.Response(
                200,
                headers={"Content-Type": "application/json"},
                content=json.dumps(OFFLINE_PAYLOAD).encode(),
                request=request,
            )

    async def _navigation(self, request: httpx.Request) -> httpx.Response:
        cached = self.cache.match(CACHE_NAME, request.method, request.url)
        if cached is not None:
            return cached.to_response(request)
        try:
            return await self._fetch(request, CACHE_NAME)
        except httpx.TransportError:
            shell = self.cache.match(CACHE_NAME, "GET", self.app_shell_url)
            if shell is not None:
                return shell.to_response(request)
            return httpx.Response(503, text="Offline", request=request)

    async def _cache_first(self, request: httpx.Request) -> httpx.Response:
        cached = self.cache.match(CACHE_NAME, request.method, request.url)
        if cached is not None:
            return cached.to_response(request)
        try:
            return await self._fetch(request, CACHE_NAME)
        except httpx.TransportError:
            logger.info("Failed to fetch resource: %s", request.url)
            return httpx.Response(404, text="Resource not available offline", request=request)

    async def install(self, urls: Iterable[str]) -> None:
        """Precache the app shell."""
        for url in urls:
            request = httpx.Request("GET", url)
            await self._fetch(request, CACHE_NAME)

    def activate(self) -> List[str]:
        """Drop caches left over from older versions."""
        stale = [name for name in self.cache.names() if name not in (CACHE_NAME, API_CACHE)]
        for name in stale:
            logger.info("Deleting old cache: %s", name)
            self.cache.delete(name)
        return stale

    async def aclose(self) -> None:
        await self.transport.aclose()
