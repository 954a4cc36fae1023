"""
Status normalization for provider match payloads.
The provider's status vocabulary is free text and has drifted over time, so
the mapping is driven by settings rather than hard-coded.
"""
from __future__ import annotations

from typing import Any

from shared.config import Settings, get_settings
from shared.models.enums import MatchStatus

LIVE_FLAG_FIELD = "event_live"
STATUS_FIELD = "event_status"


class StatusClassifier:
    """Maps a raw provider event onto a MatchStatus."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._live = frozenset(settings.live_status_values)
        self._finished = frozenset(settings.finished_status_values)
        self._scheduled = frozenset(settings.scheduled_status_values)
        self._require_live_flag = settings.require_live_flag

    def classify(self, raw: dict[str, Any]) -> MatchStatus:
        status = str(raw.get(STATUS_FIELD) or "").strip().lower()
        if status in self._live:
            if self._require_live_flag and str(raw.get(LIVE_FLAG_FIELD, "")) != "1":
                return MatchStatus.UNKNOWN
            return MatchStatus.LIVE
        if status in self._finished:
            return MatchStatus.FINISHED
        if status in self._scheduled:
            return MatchStatus.SCHEDULED
        return MatchStatus.UNKNOWN
