"""Domain enumerations for the Cricket Live relay."""
from __future__ import annotations

from enum import Enum


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINISHED = "finished"
    UNKNOWN = "unknown"

    @property
    def is_live(self) -> bool:
        return self == MatchStatus.LIVE


class LiveEventKind(str, Enum):
    ADDED = "live-added"
    UPDATED = "live-updated"
    REMOVED = "live-removed"


class FetchJob(str, Enum):
    """Poll jobs driven by the scheduler."""
    LIST = "list"
    DETAIL = "detail"
    SCORECARD = "scorecard"


class ProviderMethod(str, Enum):
    GET_EVENTS = "get_events"
    GET_EVENT = "get_event"
    GET_H2H = "get_H2H"
    GET_STANDINGS = "get_standings"


class Topic(str, Enum):
    MATCH_LIST = "match_list"
    LIVE_MATCHES = "live_matches"

    @staticmethod
    def match(match_id: str) -> str:
        return f"match_{match_id}"


class TopicEvent(str, Enum):
    """Event names carried on broadcast messages."""
    INITIAL_DATA = "initial_data"
    MATCHES_UPDATE = "matches_update"
    MATCH_UPDATED = "match_updated"
    LIVE_MATCHES_UPDATE = "live_matches_update"
    DETAILS = "details"
    SCORECARD = "scorecard"


class WSClientOp(str, Enum):
    SUBSCRIBE_LIST = "subscribe_list"
    UNSUBSCRIBE_LIST = "unsubscribe_list"
    SUBSCRIBE_LIVE = "subscribe_live"
    UNSUBSCRIBE_LIVE = "unsubscribe_live"
    SUBSCRIBE_MATCH = "subscribe_match"
    UNSUBSCRIBE_MATCH = "unsubscribe_match"
    PING = "ping"


class WSServerMsgType(str, Enum):
    EVENT = "event"
    STATE = "state"
    PONG = "pong"
    PING = "ping"
    ERROR = "error"
