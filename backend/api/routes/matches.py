"""
Match REST endpoints. Thin pass-throughs over the cache store.

GET /matches                  - Latest summary batch.
GET /live                     - Live matches merged with cached detail and scorecard.
GET /matches/{id}             - Match detail (cache, else one on-demand fetch).
GET /matches/{id}/scorecard   - Match scorecard (cache, else one on-demand fetch).
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from shared.errors import NotFound
from shared.utils.logging import get_logger

from api.dependencies import get_scheduler, get_store
from ingest.publisher import list_payload
from ingest.store import CacheStore
from scheduler.service import PollScheduler

logger = get_logger(__name__)
router = APIRouter(tags=["matches"])


@router.get("/matches")
async def list_matches(store: CacheStore = Depends(get_store)) -> dict[str, Any]:
    snap = await store.snapshot()
    return list_payload(snap.summaries, snap.last_updated)


@router.get("/live")
async def live_matches(store: CacheStore = Depends(get_store)) -> dict[str, Any]:
    """Live summaries, each merged with its cached ``detailed`` and ``scorecard`` payloads."""
    snap = await store.snapshot()
    matches = []
    for summary in snap.live:
        detail = snap.details.get(summary.id)
        card = snap.scorecards.get(summary.id)
        matches.append({
            **summary.raw,
            "detailed": detail.payload if detail else {},
            "scorecard": card.to_payload() if card else {},
        })
    return {
        "count": len(matches),
        "matches": matches,
        "lastUpdated": snap.last_updated.isoformat() if snap.last_updated else None,
    }


@router.get("/matches/{match_id}")
async def match_detail(
    match_id: str,
    store: CacheStore = Depends(get_store),
    scheduler: PollScheduler = Depends(get_scheduler),
) -> dict[str, Any]:
    detail = store.get_detail(match_id)
    if detail is None:
        detail = await scheduler.fetch_and_publish_detail(match_id, retries=0, require_live=False)
    if detail is None:
        raise NotFound(f"Match {match_id} not found")
    return detail.payload


@router.get("/matches/{match_id}/scorecard")
async def match_scorecard(
    match_id: str,
    store: CacheStore = Depends(get_store),
    scheduler: PollScheduler = Depends(get_scheduler),
) -> dict[str, Any]:
    card = store.get_scorecard(match_id)
    if card is None:
        card = await scheduler.fetch_and_publish_scorecard(match_id, retries=0, require_live=False)
    if card is None:
        raise NotFound(f"Scorecard for match {match_id} not available")
    return card.to_payload()
