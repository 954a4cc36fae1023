"""Unit tests for the in-memory cache store."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from shared.models.domain import MatchDetail, Scorecard
from shared.models.enums import MatchStatus

from ingest.store import CacheStore


@pytest.mark.asyncio
async def test_replace_summaries_swaps_whole_batch(store: CacheStore, make_summary) -> None:
    """A new batch replaces the old one wholesale and sets the refresh time."""
    await store.replace_summaries([make_summary("A"), make_summary("B")])
    stamp = datetime(2026, 1, 2, tzinfo=timezone.utc)
    await store.replace_summaries([make_summary("C")], fetched_at=stamp)

    assert [s.id for s in store.summaries()] == ["C"]
    assert store.find_summary("A") is None
    assert store.find_summary("C") is not None
    assert store.last_updated == stamp


@pytest.mark.asyncio
async def test_evict_drops_live_detail_and_scorecard_only(store: CacheStore, make_summary) -> None:
    """Evicting a match clears its live copy, detail and scorecard but keeps its summary."""
    summary = make_summary("A")
    await store.replace_summaries([summary])
    await store.upsert_live(summary)
    await store.upsert_detail("A", MatchDetail(id="A", payload={"x": 1}))
    await store.upsert_scorecard("A", Scorecard(id="A"))

    evicted = await store.evict("A")

    assert evicted == summary
    assert store.live_ids() == frozenset()
    assert store.get_detail("A") is None
    assert store.get_scorecard("A") is None
    # Summaries only change on the next batch
    assert store.find_summary("A") == summary


@pytest.mark.asyncio
async def test_evict_unknown_id_is_harmless(store: CacheStore) -> None:
    """Evicting an unknown id is a no-op."""
    assert await store.evict("missing") is None


@pytest.mark.asyncio
async def test_upserts_are_last_write_wins(store: CacheStore) -> None:
    """The latest detail write wins."""
    await store.upsert_detail("A", MatchDetail(id="A", payload={"v": 1}))
    await store.upsert_detail("A", MatchDetail(id="A", payload={"v": 2}))
    assert store.get_detail("A").payload == {"v": 2}


@pytest.mark.asyncio
async def test_snapshot_is_detached_from_later_writes(store: CacheStore, make_summary) -> None:
    """A snapshot does not change when the cache is written afterwards."""
    live = make_summary("A")
    await store.replace_summaries([live, make_summary("B", MatchStatus.SCHEDULED)])
    await store.upsert_live(live)
    await store.upsert_detail("A", MatchDetail(id="A", payload={"v": 1}))

    snap = await store.snapshot()
    await store.upsert_detail("B", MatchDetail(id="B"))
    await store.replace_summaries([])

    assert [s.id for s in snap.summaries] == ["A", "B"]
    assert snap.live_ids == {"A"}
    assert set(snap.details) == {"A"}
    assert snap.last_updated is not None


@pytest.mark.asyncio
async def test_snapshot_never_sees_partial_batch(store: CacheStore, make_summary) -> None:
    """Readers see either a whole batch or none of it."""
    batches = [[make_summary(f"{n}-{i}") for i in range(5)] for n in range(10)]

    async def writer() -> None:
        for batch in batches:
            await store.replace_summaries(batch)
            await asyncio.sleep(0)

    async def reader() -> list[int]:
        sizes = []
        for _ in range(20):
            snap = await store.snapshot()
            sizes.append(len(snap.summaries))
            await asyncio.sleep(0)
        return sizes

    _, sizes = await asyncio.gather(writer(), reader())
    assert set(sizes) <= {0, 5}
