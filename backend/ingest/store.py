"""
In-memory cache of match state.

The store is the single owner of everything the relay knows about matches:
the latest summary batch, the live copies used for change detection, and the
per-match detail and scorecard payloads. Each map has its own asyncio.Lock;
batch replacement swaps the whole container so readers never see a torn
batch.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Iterable, Optional

from shared.models.domain import CacheSnapshot, MatchDetail, MatchSummary, Scorecard
from shared.utils.logging import get_logger
from shared.utils.metrics import CACHED_SUMMARIES, LIVE_MATCHES

logger = get_logger(__name__)


class CacheStore:
    """Owns all cached match state; exposed only through its operations."""

    def __init__(self) -> None:
        self._summaries: tuple[MatchSummary, ...] = ()
        self._summary_index: dict[str, MatchSummary] = {}
        self._last_updated: Optional[datetime] = None
        self._live: dict[str, MatchSummary] = {}
        self._details: dict[str, MatchDetail] = {}
        self._scorecards: dict[str, Scorecard] = {}

        self._summaries_lock = asyncio.Lock()
        self._live_lock = asyncio.Lock()
        self._details_lock = asyncio.Lock()
        self._scorecards_lock = asyncio.Lock()

    # ── Writes ──────────────────────────────────────────────────────────

    async def replace_summaries(
        self, batch: Iterable[MatchSummary], fetched_at: datetime | None = None
    ) -> datetime:
        """Swap in a new summary batch wholesale. Returns the refresh timestamp."""
        summaries = tuple(batch)
        index = {s.id: s for s in summaries}
        stamp = fetched_at or datetime.now(timezone.utc)
        async with self._summaries_lock:
            self._summaries = summaries
            self._summary_index = index
            self._last_updated = stamp
        CACHED_SUMMARIES.set(len(summaries))
        return stamp

    async def upsert_live(self, summary: MatchSummary) -> None:
        async with self._live_lock:
            self._live[summary.id] = summary
            LIVE_MATCHES.set(len(self._live))

    async def upsert_detail(self, match_id: str, detail: MatchDetail) -> None:
        async with self._details_lock:
            self._details[match_id] = detail

    async def upsert_scorecard(self, match_id: str, card: Scorecard) -> None:
        async with self._scorecards_lock:
            self._scorecards[match_id] = card

    async def evict(self, match_id: str) -> Optional[MatchSummary]:
        """
        Drop the live copy, detail and scorecard of a match.

        Summaries are never evicted individually; they only change when the
        next batch replaces them. Returns the evicted live copy, if any.
        """
        async with self._live_lock:
            previous = self._live.pop(match_id, None)
            LIVE_MATCHES.set(len(self._live))
        async with self._details_lock:
            self._details.pop(match_id, None)
        async with self._scorecards_lock:
            self._scorecards.pop(match_id, None)
        logger.debug("match_evicted", match_id=match_id)
        return previous

    # ── Reads ───────────────────────────────────────────────────────────

    @property
    def last_updated(self) -> Optional[datetime]:
        return self._last_updated

    def summaries(self) -> tuple[MatchSummary, ...]:
        return self._summaries

    def find_summary(self, match_id: str) -> Optional[MatchSummary]:
        return self._summary_index.get(match_id)

    def live_ids(self) -> frozenset[str]:
        return frozenset(self._live)

    def live_summary(self, match_id: str) -> Optional[MatchSummary]:
        return self._live.get(match_id)

    def live_summaries(self) -> list[MatchSummary]:
        return list(self._live.values())

    def get_detail(self, match_id: str) -> Optional[MatchDetail]:
        return self._details.get(match_id)

    def get_scorecard(self, match_id: str) -> Optional[Scorecard]:
        return self._scorecards.get(match_id)

    async def snapshot(self) -> CacheSnapshot:
        """Consistent read-only view for REST responses and initial pushes."""
        async with self._summaries_lock:
            summaries = self._summaries
            last_updated = self._last_updated
        async with self._live_lock:
            live = tuple(self._live.values())
        async with self._details_lock:
            details = dict(self._details)
        async with self._scorecards_lock:
            scorecards = dict(self._scorecards)
        return CacheSnapshot(
            summaries=summaries,
            live=live,
            details=details,
            scorecards=scorecards,
            last_updated=last_updated,
        )
