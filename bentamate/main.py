# bentamate/main.py
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import urlparse

import httpx
from fastapi import FastAPI

from bentamate.api.errors import register_error_handlers
from bentamate.api.v1.routes_checkout import router as checkout_router
from bentamate.api.v1.routes_products import router as products_router
from bentamate.api.v1.routes_sync import router as sync_router
from bentamate.clients.auth import AuthContext
from bentamate.clients.backend import BackendClient, RemoteBackend
from bentamate.clients.request_cache import OfflineCacheTransport
from bentamate.core.config import Settings, settings as default_settings
from bentamate.core.logging import configure_logging
from bentamate.domain.sync.gateway import OperationGateway
from bentamate.domain.sync.network import NetworkStatusObserver, watch_connectivity
from bentamate.domain.sync.store import open_offline_store

logger = logging.getLogger(__name__)


def build_backend(settings: Settings) -> BackendClient:
    transport = None
    if settings.REQUEST_CACHE_ENABLED:
        transport = OfflineCacheTransport(
            httpx.AsyncHTTPTransport(),
            api_host=urlparse(settings.BACKEND_URL).hostname or "",
            app_shell_url=settings.APP_SHELL_URL,
        )
    return BackendClient.from_settings(settings, transport=transport)


def create_app(
    settings: Optional[Settings] = None,
    backend: Optional[RemoteBackend] = None,
) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = await open_offline_store(
            settings.OFFLINE_DB_URL,
            allow_memory_fallback=settings.ALLOW_MEMORY_FALLBACK,
            id_prefix=settings.OFFLINE_ID_PREFIX,
        )
        if not store.durable:
            logger.warning("Running with memory-only offline storage")

        remote = backend or build_backend(settings)
        network = NetworkStatusObserver(online=settings.ASSUME_ONLINE)
        gateway = OperationGateway(remote, store, network, AuthContext(remote))
        gateway.start()

        monitor = None
        if settings.CONNECTIVITY_PROBE_INTERVAL > 0:
            monitor = asyncio.create_task(
                watch_connectivity(network, remote.ping, settings.CONNECTIVITY_PROBE_INTERVAL)
            )

        app.state.gateway = gateway
        app.state.carts = {}
        logger.info("BentaMate started (online=%s, durable=%s)", network.get_status(), store.durable)
        try:
            yield
        finally:
            if monitor is not None:
                monitor.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await monitor
            await gateway.dispose()
            network.dispose()
            await store.dispose()
            if backend is None:
                await remote.aclose()

    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="BentaMate", lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(checkout_router)
    app.include_router(products_router)
    app.include_router(sync_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
