"""Unit tests for topic fan-out."""
from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from shared.models.domain import LiveEvent, MatchDetail, Scorecard
from shared.models.enums import LiveEventKind

from ingest.publisher import FanoutPublisher
from ingest.store import CacheStore


def _calls(broadcaster: MagicMock) -> list[tuple[str, str]]:
    return [(c.args[0], c.args[1]) for c in broadcaster.broadcast.await_args_list]


@pytest.mark.asyncio
async def test_batch_goes_to_match_list(publisher: FanoutPublisher, broadcaster: MagicMock, make_summary) -> None:
    """A summary batch is published to match_list as matches_update."""
    stamp = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    await publisher.publish_batch([make_summary("A"), make_summary("B")], stamp)

    broadcaster.broadcast.assert_awaited_once()
    topic, event, payload = broadcaster.broadcast.await_args.args
    assert (topic, event) == ("match_list", "matches_update")
    assert [m["event_key"] for m in payload["data"]] == ["A", "B"]
    assert payload["lastUpdated"] == stamp.isoformat()


@pytest.mark.asyncio
async def test_live_event_goes_to_list_and_live_topics(
    publisher: FanoutPublisher, broadcaster: MagicMock, store: CacheStore, make_summary
) -> None:
    """A live event goes to match_list and live_matches."""
    summary = make_summary("A")
    await store.upsert_live(summary)

    count = await publisher.publish_live_events(
        [LiveEvent(kind=LiveEventKind.ADDED, match_id="A", summary=summary)]
    )

    assert count == 1
    assert _calls(broadcaster) == [
        ("match_list", "match_updated"),
        ("live_matches", "live_matches_update"),
    ]
    live_payload = broadcaster.broadcast.await_args_list[1].args[2]
    assert [m["event_key"] for m in live_payload["matches"]] == ["A"]


@pytest.mark.asyncio
async def test_removed_event_publishes_remaining_live_array(
    publisher: FanoutPublisher, broadcaster: MagicMock, store: CacheStore, make_summary
) -> None:
    """A removed event publishes the live array without the removed match."""
    await store.upsert_live(make_summary("B"))
    gone = make_summary("A")

    await publisher.publish_live_events([LiveEvent(kind=LiveEventKind.REMOVED, match_id="A", summary=gone)])

    single = broadcaster.broadcast.await_args_list[0].args[2]
    live_payload = broadcaster.broadcast.await_args_list[1].args[2]
    assert single["event_key"] == "A"
    assert [m["event_key"] for m in live_payload["matches"]] == ["B"]


@pytest.mark.asyncio
async def test_detail_and_scorecard_go_to_match_topic(publisher: FanoutPublisher, broadcaster: MagicMock) -> None:
    """Detail and scorecard are published to the match topic."""
    await publisher.publish_detail(MatchDetail(id="42", payload={"event_key": "42"}))
    await publisher.publish_scorecard(Scorecard(id="42", batsmen=[{"player": "Kohli"}]))

    assert _calls(broadcaster) == [("match_42", "details"), ("match_42", "scorecard")]
    card_payload = broadcaster.broadcast.await_args_list[1].args[2]
    assert card_payload["batsmen"] == [{"player": "Kohli"}]
    assert "id" not in card_payload


@pytest.mark.asyncio
async def test_topics_without_listeners_are_skipped(
    publisher: FanoutPublisher, broadcaster: MagicMock, make_summary
) -> None:
    """Nothing is broadcast to rooms without listeners."""
    broadcaster.has_listeners.return_value = False

    await publisher.publish_batch([make_summary("A")], datetime.now(timezone.utc))
    await publisher.publish_detail(MatchDetail(id="A"))

    broadcaster.broadcast.assert_not_awaited()
