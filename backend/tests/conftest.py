"""Shared fixtures for relay unit tests."""
from __future__ import annotations

from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.config import Settings
from shared.models.domain import MatchSummary
from shared.models.enums import MatchStatus

from ingest.publisher import FanoutPublisher
from ingest.reconciler import LiveSetReconciler
from ingest.store import CacheStore

STATUS_TEXT = {
    MatchStatus.SCHEDULED: "Not Started",
    MatchStatus.LIVE: "In Progress",
    MatchStatus.FINISHED: "Finished",
    MatchStatus.UNKNOWN: "Rain Delay",
}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        list_retry_delay_s=0.0,
        fetch_retry_delay_s=0.0,
        metrics_enabled=False,
    )


@pytest.fixture
def make_summary() -> Callable[..., MatchSummary]:
    def _make(match_id: str, status: MatchStatus = MatchStatus.LIVE, **raw_extra: Any) -> MatchSummary:
        raw: dict[str, Any] = {
            "event_key": match_id,
            "event_status": STATUS_TEXT[status],
            "event_home_team": "India",
            "event_away_team": "Australia",
            "league_key": "733",
            "league_name": "Test Series",
        }
        raw.update(raw_extra)
        return MatchSummary(
            id=match_id,
            status=status,
            home_team=raw["event_home_team"],
            away_team=raw["event_away_team"],
            league_key=raw["league_key"],
            league_name=raw["league_name"],
            raw=raw,
        )

    return _make


@pytest.fixture
def store() -> CacheStore:
    return CacheStore()


@pytest.fixture
def reconciler(store: CacheStore) -> LiveSetReconciler:
    return LiveSetReconciler(store)


@pytest.fixture
def broadcaster() -> MagicMock:
    """Broadcaster double where every topic has listeners."""
    b = MagicMock()
    b.has_listeners = MagicMock(return_value=True)
    b.broadcast = AsyncMock()
    return b


@pytest.fixture
def publisher(broadcaster: MagicMock, store: CacheStore) -> FanoutPublisher:
    return FanoutPublisher(broadcaster, store)
