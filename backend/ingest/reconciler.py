"""
Live-set reconciliation.

Each list refresh hands the newest summary batch to the reconciler, which
works out which matches became live, which changed while live, and which
dropped out of the live set:

    added   = live(batch) - previous
    removed = previous - live(batch)
    changed = {id in live(batch) & previous : canonical payload differs}

Changes are decided on the full canonical serialization of the provider
payload; any byte difference counts. Added and removed are computed from one
before/after pair, so a match that goes live and finishes between two polls
never appears at all, and one that was live before and is gone now is only
ever reported as removed.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from shared.models.domain import LiveEvent, MatchSummary
from shared.models.enums import LiveEventKind
from shared.utils.logging import get_logger
from shared.utils.metrics import LIVE_SET_CHANGES

from ingest.store import CacheStore

logger = get_logger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""

    events: list[LiveEvent] = field(default_factory=list)
    # Matches that need an immediate one-shot detail + scorecard fetch
    fetch_ids: list[str] = field(default_factory=list)
    live_ids: frozenset[str] = frozenset()

    def ids(self, kind: LiveEventKind) -> set[str]:
        return {e.match_id for e in self.events if e.kind == kind}

    @property
    def added(self) -> set[str]:
        return self.ids(LiveEventKind.ADDED)

    @property
    def updated(self) -> set[str]:
        return self.ids(LiveEventKind.UPDATED)

    @property
    def removed(self) -> set[str]:
        return self.ids(LiveEventKind.REMOVED)

    @property
    def has_changes(self) -> bool:
        return bool(self.events)


class LiveSetReconciler:
    """Diffs each summary batch against the cached live set."""

    def __init__(self, store: CacheStore) -> None:
        self._store = store

    async def reconcile(self, batch: Iterable[MatchSummary]) -> ReconcileResult:
        batch_index: dict[str, MatchSummary] = {}
        live: dict[str, MatchSummary] = {}
        for summary in batch:
            batch_index[summary.id] = summary
            if summary.status.is_live:
                live[summary.id] = summary

        previous = self._store.live_ids()
        result = ReconcileResult(live_ids=frozenset(live))

        for match_id, summary in live.items():
            if match_id not in previous:
                await self._store.upsert_live(summary)
                result.events.append(
                    LiveEvent(kind=LiveEventKind.ADDED, match_id=match_id, summary=summary)
                )
                result.fetch_ids.append(match_id)
            elif not summary.same_content(self._store.live_summary(match_id)):
                await self._store.upsert_live(summary)
                result.events.append(
                    LiveEvent(kind=LiveEventKind.UPDATED, match_id=match_id, summary=summary)
                )

        for match_id in sorted(previous - live.keys()):
            last_live = await self._store.evict(match_id)
            summary = batch_index.get(match_id) or last_live
            if summary is None:
                continue
            result.events.append(
                LiveEvent(kind=LiveEventKind.REMOVED, match_id=match_id, summary=summary)
            )

        for event in result.events:
            LIVE_SET_CHANGES.labels(kind=event.kind.value).inc()

        if result.has_changes:
            logger.info(
                "live_set_reconciled",
                live=len(live),
                added=len(result.added),
                updated=len(result.updated),
                removed=len(result.removed),
            )
        return result
