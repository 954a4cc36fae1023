"""
Unit tests for live-set reconciliation.

Run: pytest backend/tests/test_reconciler.py -v
"""
from __future__ import annotations

import pytest

from shared.models.domain import MatchDetail, Scorecard
from shared.models.enums import LiveEventKind, MatchStatus

from ingest.reconciler import LiveSetReconciler
from ingest.store import CacheStore


# ── Scenarios ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_scheduled_to_live_emits_added(reconciler: LiveSetReconciler, store: CacheStore, make_summary) -> None:
    """A scheduled match going live emits live-added."""
    await reconciler.reconcile([make_summary("A", MatchStatus.SCHEDULED)])
    result = await reconciler.reconcile([make_summary("A", MatchStatus.LIVE)])

    assert [(e.kind, e.match_id) for e in result.events] == [(LiveEventKind.ADDED, "A")]
    assert result.fetch_ids == ["A"]
    assert store.live_ids() == {"A"}


@pytest.mark.asyncio
async def test_live_to_finished_emits_removed_and_evicts(
    reconciler: LiveSetReconciler, store: CacheStore, make_summary
) -> None:
    """A live match finishing emits live-removed and is evicted."""
    await reconciler.reconcile([make_summary("A", MatchStatus.LIVE)])
    await store.upsert_detail("A", MatchDetail(id="A", payload={"event_key": "A"}))
    await store.upsert_scorecard("A", Scorecard(id="A"))

    finished = make_summary("A", MatchStatus.FINISHED)
    result = await reconciler.reconcile([finished])

    assert [(e.kind, e.match_id) for e in result.events] == [(LiveEventKind.REMOVED, "A")]
    assert result.events[0].summary == finished
    assert store.live_ids() == frozenset()
    assert store.get_detail("A") is None
    assert store.get_scorecard("A") is None


@pytest.mark.asyncio
async def test_removed_match_absent_from_batch_uses_last_live_copy(
    reconciler: LiveSetReconciler, make_summary
) -> None:
    """A live match missing from the batch is removed with its last live copy."""
    live = make_summary("A", MatchStatus.LIVE)
    await reconciler.reconcile([live])

    result = await reconciler.reconcile([])

    assert result.removed == {"A"}
    assert result.events[0].summary == live


@pytest.mark.asyncio
async def test_unchanged_summary_is_idempotent(reconciler: LiveSetReconciler, make_summary) -> None:
    """An unchanged summary produces no events."""
    await reconciler.reconcile([make_summary("A", event_home_final_result="120/3")])
    result = await reconciler.reconcile([make_summary("A", event_home_final_result="120/3")])

    assert result.events == []
    assert not result.has_changes
    assert result.fetch_ids == []


@pytest.mark.asyncio
async def test_any_payload_difference_is_an_update(
    reconciler: LiveSetReconciler, store: CacheStore, make_summary
) -> None:
    """Any payload difference counts as live-updated."""
    await reconciler.reconcile([make_summary("A", event_home_final_result="120/3")])
    updated = make_summary("A", event_home_final_result="124/3")
    result = await reconciler.reconcile([updated])

    assert [(e.kind, e.match_id) for e in result.events] == [(LiveEventKind.UPDATED, "A")]
    assert store.live_summary("A") == updated
    # Updates do not trigger the one-shot fetch
    assert result.fetch_ids == []


@pytest.mark.asyncio
async def test_key_order_does_not_count_as_change(reconciler: LiveSetReconciler, make_summary) -> None:
    """Key order alone is not a change."""
    first = make_summary("A", a=1, b=2)
    reordered_raw = dict(reversed(list(first.raw.items())))
    second = first.model_copy(update={"raw": reordered_raw})

    await reconciler.reconcile([first])
    result = await reconciler.reconcile([second])

    assert result.events == []


@pytest.mark.asyncio
async def test_non_live_statuses_never_enter_live_set(reconciler: LiveSetReconciler, make_summary) -> None:
    """Non-live statuses never enter the live set."""
    result = await reconciler.reconcile([
        make_summary("S", MatchStatus.SCHEDULED),
        make_summary("F", MatchStatus.FINISHED),
        make_summary("U", MatchStatus.UNKNOWN),
    ])
    assert result.events == []
    assert result.live_ids == frozenset()


# ── Properties ──────────────────────────────────────────────────────────

BATCH_SEQUENCE = [
    [("A", MatchStatus.SCHEDULED), ("B", MatchStatus.LIVE)],
    [("A", MatchStatus.LIVE), ("B", MatchStatus.LIVE), ("C", MatchStatus.LIVE)],
    [("A", MatchStatus.FINISHED), ("C", MatchStatus.LIVE), ("D", MatchStatus.SCHEDULED)],
    [("C", MatchStatus.LIVE), ("D", MatchStatus.LIVE)],
    [],
]


@pytest.mark.asyncio
async def test_added_and_removed_are_disjoint_and_bounded(
    reconciler: LiveSetReconciler, store: CacheStore, make_summary
) -> None:
    """Added and removed sets are disjoint and drawn from the batches."""
    previous_ids: set[str] = set()
    for entries in BATCH_SEQUENCE:
        batch = [make_summary(mid, status) for mid, status in entries]
        batch_ids = {s.id for s in batch}

        result = await reconciler.reconcile(batch)

        assert result.added.isdisjoint(result.removed)
        assert (result.added | result.updated | result.removed) <= (batch_ids | previous_ids)
        # Live set is always drawn from the newest batch
        assert store.live_ids() <= batch_ids
        assert store.live_ids() == result.live_ids
        previous_ids = batch_ids


@pytest.mark.asyncio
async def test_added_only_for_batches_where_match_is_live(reconciler: LiveSetReconciler, make_summary) -> None:
    """Matches are only added from batches where they are live."""
    for entries in BATCH_SEQUENCE:
        batch = [make_summary(mid, status) for mid, status in entries]
        live_in_batch = {s.id for s in batch if s.status.is_live}
        result = await reconciler.reconcile(batch)
        assert result.added <= live_in_batch


@pytest.mark.asyncio
async def test_previous_live_set_tracks_last_batch(reconciler: LiveSetReconciler, make_summary) -> None:
    """Each pass diffs against the previous batch's live set."""
    await reconciler.reconcile([make_summary("A"), make_summary("B")])
    result = await reconciler.reconcile([make_summary("B"), make_summary("C")])

    assert result.added == {"C"}
    assert result.removed == {"A"}
    assert result.updated == set()
    assert result.live_ids == {"B", "C"}
