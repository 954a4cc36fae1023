"""
Provider pass-through endpoints.

GET /h2h?first_team_key=&second_team_key=  - Head-to-head record.
GET /standings?league_key=|event_key=      - League table; an event key is resolved to its league.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from shared.errors import InvalidRequest, NotFound
from shared.utils.logging import get_logger

from api.dependencies import get_provider, get_scheduler, get_store
from ingest.providers.cricket_api import CricketAPIProvider
from ingest.store import CacheStore
from scheduler.service import PollScheduler

logger = get_logger(__name__)
router = APIRouter(tags=["stats"])


@router.get("/h2h")
async def head_to_head(
    first_team_key: Optional[str] = Query(default=None),
    second_team_key: Optional[str] = Query(default=None),
    provider: CricketAPIProvider = Depends(get_provider),
) -> dict[str, Any]:
    if not first_team_key or not second_team_key:
        raise InvalidRequest(
            "Both first_team_key and second_team_key are required",
            details={"example": "/h2h?first_team_key=147&second_team_key=149"},
        )
    data = await provider.fetch_h2h(first_team_key, second_team_key)
    return {"success": 1, "data": data}


async def _resolve_league_key(
    event_key: str,
    store: CacheStore,
    provider: CricketAPIProvider,
    scheduler: PollScheduler,
) -> str:
    """Find the league of an event: cached batch first, then an upstream lookup."""
    summary = store.find_summary(event_key)
    if summary is None:
        date_start, date_stop = scheduler.list_window()
        found = await provider.fetch_list(date_start, date_stop, event_key=event_key)
        summary = next((s for s in found if s.id == event_key), None)
    if summary is None or not summary.league_key:
        raise NotFound(f"Event {event_key} not found")
    return summary.league_key


@router.get("/standings")
async def standings(
    league_key: Optional[str] = Query(default=None),
    event_key: Optional[str] = Query(default=None),
    store: CacheStore = Depends(get_store),
    provider: CricketAPIProvider = Depends(get_provider),
    scheduler: PollScheduler = Depends(get_scheduler),
) -> dict[str, Any]:
    if event_key:
        league_key = await _resolve_league_key(event_key, store, provider, scheduler)
    elif not league_key:
        raise InvalidRequest("league_key or event_key is required")
    return await provider.fetch_standings(league_key)
