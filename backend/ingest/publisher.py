"""
Fan-out publisher.

Turns reconciliation events and fetch results into topic-scoped broadcasts.
Delivery is best effort: a broadcast is attempted and never acknowledged.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Protocol

from shared.models.domain import LiveEvent, MatchDetail, MatchSummary, Scorecard
from shared.models.enums import Topic, TopicEvent
from shared.utils.logging import get_logger
from shared.utils.metrics import FANOUT_PUBLISHES, topic_kind

from ingest.store import CacheStore

logger = get_logger(__name__)


class Broadcaster(Protocol):
    """Pub/sub transport capability."""

    def has_listeners(self, topic: str) -> bool: ...

    async def broadcast(self, topic: str, event: str, payload: Any) -> None: ...


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


def list_payload(summaries: Iterable[MatchSummary], last_updated: Optional[datetime]) -> dict[str, Any]:
    return {"data": [s.raw for s in summaries], "lastUpdated": _iso(last_updated)}


def live_payload(summaries: Iterable[MatchSummary], last_updated: Optional[datetime]) -> dict[str, Any]:
    return {"matches": [s.raw for s in summaries], "lastUpdated": _iso(last_updated)}


class FanoutPublisher:
    """Maps cache changes onto broadcast calls."""

    def __init__(self, broadcaster: Broadcaster, store: CacheStore) -> None:
        self._broadcaster = broadcaster
        self._store = store

    async def _publish(self, topic: str, event: TopicEvent, payload: Any) -> bool:
        # Publishing to an empty topic is a no-op; skip building the message
        if not self._broadcaster.has_listeners(topic):
            return False
        await self._broadcaster.broadcast(topic, event.value, payload)
        FANOUT_PUBLISHES.labels(topic_kind=topic_kind(topic), event=event.value).inc()
        return True

    async def publish_batch(self, summaries: Iterable[MatchSummary], last_updated: datetime) -> None:
        await self._publish(
            Topic.MATCH_LIST.value,
            TopicEvent.MATCHES_UPDATE,
            list_payload(summaries, last_updated),
        )

    async def publish_live_events(self, events: Iterable[LiveEvent]) -> int:
        """Broadcast each event's summary plus the full live array. Returns events published."""
        count = 0
        for event in events:
            await self._publish(Topic.MATCH_LIST.value, TopicEvent.MATCH_UPDATED, event.summary.raw)
            await self._publish(
                Topic.LIVE_MATCHES.value,
                TopicEvent.LIVE_MATCHES_UPDATE,
                live_payload(self._store.live_summaries(), datetime.now(timezone.utc)),
            )
            logger.debug("live_event_published", kind=event.kind.value, match_id=event.match_id)
            count += 1
        return count

    async def publish_detail(self, detail: MatchDetail) -> None:
        await self._publish(Topic.match(detail.id), TopicEvent.DETAILS, detail.payload)

    async def publish_scorecard(self, card: Scorecard) -> None:
        await self._publish(Topic.match(card.id), TopicEvent.SCORECARD, card.to_payload())
