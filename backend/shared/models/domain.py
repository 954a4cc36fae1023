"""
Pydantic v2 domain models for the Cricket Live relay.
These are the canonical wire/internal representations of cached match state.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import LiveEventKind, MatchStatus

SCORECARD_FIELDS: dict[str, type] = {
    "scorecard": dict,
    "innings": dict,
    "extra": dict,
    "batsmen": list,
    "bowlers": list,
}


def canonical_json(payload: Any) -> str:
    """Stable serialized form used for full-payload equality checks."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# ── Match state ─────────────────────────────────────────────────────────
class MatchSummary(DomainModel):
    """One entry of the periodic list fetch."""
    id: str
    status: MatchStatus = MatchStatus.UNKNOWN
    home_team: Optional[str] = None
    away_team: Optional[str] = None
    league_key: Optional[str] = None
    league_name: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def fingerprint(self) -> str:
        return canonical_json(self.raw)

    def same_content(self, other: Optional["MatchSummary"]) -> bool:
        return other is not None and self.fingerprint == other.fingerprint


class MatchDetail(DomainModel):
    """Full provider payload for a single match."""
    id: str
    payload: dict[str, Any] = Field(default_factory=dict)


class Scorecard(DomainModel):
    """Innings-level breakdown extracted from a match payload."""
    id: str
    scorecard: Any = Field(default_factory=dict)
    innings: Any = Field(default_factory=dict)
    extra: Any = Field(default_factory=dict)
    batsmen: Any = Field(default_factory=list)
    bowlers: Any = Field(default_factory=list)

    @classmethod
    def from_payload(cls, match_id: str, payload: dict[str, Any]) -> "Scorecard":
        fields: dict[str, Any] = {}
        for name, kind in SCORECARD_FIELDS.items():
            # Missing or empty provider fields become empty containers.
            fields[name] = payload.get(name) or kind()
        return cls(id=match_id, **fields)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude={"id"})


# ── Reconciliation ──────────────────────────────────────────────────────
class LiveEvent(DomainModel):
    kind: LiveEventKind
    match_id: str
    summary: MatchSummary


class CacheSnapshot(DomainModel):
    """Read-only view of the cache as of some completed write."""
    summaries: tuple[MatchSummary, ...] = ()
    live: tuple[MatchSummary, ...] = ()
    details: dict[str, MatchDetail] = Field(default_factory=dict)
    scorecards: dict[str, Scorecard] = Field(default_factory=dict)
    last_updated: Optional[datetime] = None

    @property
    def live_ids(self) -> frozenset[str]:
        return frozenset(s.id for s in self.live)
