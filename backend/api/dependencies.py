"""
Dependency injection for the API service.
Provides the cache store, upstream provider and scheduler to route handlers.
"""
from __future__ import annotations

from ingest.providers.cricket_api import CricketAPIProvider
from ingest.store import CacheStore
from scheduler.service import PollScheduler

# Module-level singletons, initialized at startup
_store: CacheStore | None = None
_provider: CricketAPIProvider | None = None
_scheduler: PollScheduler | None = None


def init_dependencies(
    store: CacheStore,
    provider: CricketAPIProvider,
    scheduler: PollScheduler,
) -> None:
    """Initialize module-level singletons. Called once at startup."""
    global _store, _provider, _scheduler
    _store = store
    _provider = provider
    _scheduler = scheduler


def reset_dependencies() -> None:
    global _store, _provider, _scheduler
    _store = None
    _provider = None
    _scheduler = None


def get_store() -> CacheStore:
    """FastAPI dependency: returns the shared CacheStore."""
    if _store is None:
        raise RuntimeError("CacheStore not initialized; call init_dependencies first")
    return _store


def get_provider() -> CricketAPIProvider:
    """FastAPI dependency: returns the shared upstream provider."""
    if _provider is None:
        raise RuntimeError("CricketAPIProvider not initialized; call init_dependencies first")
    return _provider


def get_scheduler() -> PollScheduler:
    """FastAPI dependency: returns the shared PollScheduler."""
    if _scheduler is None:
        raise RuntimeError("PollScheduler not initialized; call init_dependencies first")
    return _scheduler
