"""
FastAPI application factory for the Cricket Live relay.

Creates the app with:
- REST routes (matches, live, h2h, standings)
- WebSocket endpoint backed by topic rooms
- Middleware stack
- Health check endpoints
- Lifespan management: builds the cache/reconciler/publisher/scheduler graph,
  starts polling on startup and stops it on shutdown
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator

from fastapi import FastAPI, WebSocket

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import get_store, init_dependencies, reset_dependencies
from api.middleware import setup_middleware
from api.routes.matches import router as matches_router
from api.routes.stats import router as stats_router
from api.ws.manager import WebSocketManager
from ingest.providers.cricket_api import CricketAPIProvider
from ingest.publisher import FanoutPublisher
from ingest.reconciler import LiveSetReconciler
from ingest.store import CacheStore
from scheduler.service import PollScheduler

logger = get_logger(__name__)

ENDPOINTS: dict[str, str] = {
    "matches": "/matches",
    "live_matches": "/live",
    "match_details": "/matches/{match_id}",
    "match_scorecard": "/matches/{match_id}/scorecard",
    "h2h": "/h2h?first_team_key=&second_team_key=",
    "standings": "/standings?league_key=|event_key=",
    "websocket": "/ws",
}

# Module-level reference for the WS manager (accessed by the ws endpoint)
_ws_manager: WebSocketManager | None = None


@dataclass
class RelayServices:
    """Everything the relay runs, wired together."""

    store: CacheStore
    provider: CricketAPIProvider
    ws_manager: WebSocketManager
    publisher: FanoutPublisher
    reconciler: LiveSetReconciler
    scheduler: PollScheduler


def build_services(
    settings: Settings | None = None,
    provider: CricketAPIProvider | None = None,
) -> RelayServices:
    """Construct the relay object graph without starting anything."""
    settings = settings or get_settings()
    store = CacheStore()
    provider = provider or CricketAPIProvider(settings=settings)
    ws_manager = WebSocketManager(store, settings)
    publisher = FanoutPublisher(ws_manager, store)
    reconciler = LiveSetReconciler(store)
    scheduler = PollScheduler(provider, store, reconciler, publisher, settings)
    return RelayServices(
        store=store,
        provider=provider,
        ws_manager=ws_manager,
        publisher=publisher,
        reconciler=reconciler,
        scheduler=scheduler,
    )


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without the upstream provider."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Starts the provider client, WebSocket manager and poll scheduler, and
    tears them down in reverse order on shutdown.
    """
    global _ws_manager

    settings = get_settings()
    setup_logging("api")
    start_metrics_server()

    services = build_services(settings)
    await services.provider.start()
    init_dependencies(services.store, services.provider, services.scheduler)

    _ws_manager = services.ws_manager
    await _ws_manager.start()
    await services.scheduler.start()

    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        provider=settings.provider_base_url_safe_log,
    )

    yield

    await services.scheduler.stop()
    await _ws_manager.stop()
    _ws_manager = None
    await services.provider.close()
    reset_dependencies()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing."""
    app = FastAPI(
        title="Cricket Live Relay",
        description="Live cricket scores relayed from the upstream statistics API",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)

    app.include_router(matches_router)
    app.include_router(stats_router)

    @app.get("/", tags=["system"])
    async def index() -> dict[str, Any]:
        store = get_store()
        return {
            "status": "Cricket API Server",
            "endpoints": ENDPOINTS,
            "last_updated": store.last_updated.isoformat() if store.last_updated else None,
        }

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/ready", tags=["system"])
    async def readiness() -> dict[str, Any]:
        """Ready once the first match list has been loaded."""
        store = get_store()
        loaded = store.last_updated is not None
        return {
            "status": "ok" if loaded else "loading",
            "matches_loaded": loaded,
            "live_matches": len(store.live_ids()),
        }

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None:
        """
        WebSocket endpoint for real-time match updates.

        Client operations:
        - {"op": "subscribe_list"} / {"op": "unsubscribe_list"}
        - {"op": "subscribe_live"} / {"op": "unsubscribe_live"}
        - {"op": "subscribe_match", "match_id": "..."} / {"op": "unsubscribe_match", ...}
        - {"op": "ping"}

        Server messages:
        - event: {"topic", "event", "data"}; replays carry "replay": true
        - state: connection and subscription state
        - pong / ping / error
        """
        if _ws_manager is None:
            await ws.close(code=1013, reason="service_unavailable")
            return
        await _ws_manager.handle_connection(ws)

    return app


app = create_app()
