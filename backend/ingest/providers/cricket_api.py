"""
api-cricket.com provider connector.

Every call is a single GET against the provider base URL with a ``method``
query parameter. Failures surface as the typed errors from shared.errors;
callers own the retry policy.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from shared.config import Settings, get_settings
from shared.errors import MalformedPayload, UpstreamFailure
from shared.models.domain import MatchDetail, MatchSummary, Scorecard
from shared.models.enums import ProviderMethod
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

from ingest.normalization.status import StatusClassifier

logger = get_logger(__name__)

DATE_FORMAT = "%Y-%m-%d"


def _as_key(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


class CricketAPIProvider:
    """Upstream client for the cricket statistics API."""

    def __init__(
        self,
        http_client: ProviderHTTPClient | None = None,
        classifier: StatusClassifier | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._http = http_client or ProviderHTTPClient(
            provider_name="api_cricket",
            base_url=self._settings.provider_base_url,
            timeout_s=self._settings.provider_request_timeout_s,
        )
        self._classifier = classifier or StatusClassifier(self._settings)

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()

    # ── Low-level request ───────────────────────────────────────────────

    async def _call(self, method: ProviderMethod, **params: Any) -> dict[str, Any]:
        query: dict[str, Any] = {"method": method.value, "APIkey": self._settings.provider_api_key}
        query.update({k: v for k, v in params.items() if v is not None})
        body = await self._http.get_json(query, method_label=method.value)

        if not isinstance(body, dict):
            raise MalformedPayload(f"{method.value}: expected a JSON object")
        # Errors come back as HTTP 200 with success == 0
        if str(body.get("success", "1")) == "0" or "error" in body:
            raise UpstreamFailure(
                f"{method.value}: provider reported an error",
                details={"result": body.get("result")},
            )
        return body

    # ── Match list / detail ─────────────────────────────────────────────

    async def fetch_list(
        self,
        date_start: date,
        date_stop: date,
        league_key: str | None = None,
        event_key: str | None = None,
    ) -> list[MatchSummary]:
        """Fetch match summaries for a date window, optionally filtered."""
        body = await self._call(
            ProviderMethod.GET_EVENTS,
            date_start=date_start.strftime(DATE_FORMAT),
            date_stop=date_stop.strftime(DATE_FORMAT),
            league_key=league_key,
            event_key=event_key,
        )
        result = body.get("result", [])
        if result is None:
            return []
        if not isinstance(result, list):
            raise MalformedPayload("get_events: result is not a list")

        summaries: list[MatchSummary] = []
        skipped = 0
        for raw in result:
            if not isinstance(raw, dict) or _as_key(raw.get("event_key")) is None:
                skipped += 1
                continue
            summaries.append(self.parse_summary(raw))

        if skipped:
            logger.warning("list_items_skipped", skipped=skipped, kept=len(summaries))
        return summaries

    def parse_summary(self, raw: dict[str, Any]) -> MatchSummary:
        return MatchSummary(
            id=str(raw["event_key"]),
            status=self._classifier.classify(raw),
            home_team=raw.get("event_home_team"),
            away_team=raw.get("event_away_team"),
            league_key=_as_key(raw.get("league_key")),
            league_name=raw.get("league_name"),
            raw=raw,
        )

    async def _fetch_event_payload(self, match_id: str) -> dict[str, Any]:
        body = await self._call(ProviderMethod.GET_EVENT, event_key=match_id)
        result = body.get("result")
        if isinstance(result, list):
            result = result[0] if result else None
        if not isinstance(result, dict) or not result:
            raise MalformedPayload(f"get_event: no event payload for {match_id}")
        return result

    async def fetch_detail(self, match_id: str) -> MatchDetail:
        payload = await self._fetch_event_payload(match_id)
        return MatchDetail(id=match_id, payload=payload)

    async def fetch_scorecard(self, match_id: str) -> Scorecard:
        payload = await self._fetch_event_payload(match_id)
        return Scorecard.from_payload(match_id, payload)

    # ── Pass-through lookups ────────────────────────────────────────────

    async def fetch_h2h(self, first_team_key: str, second_team_key: str) -> dict[str, Any]:
        return await self._call(
            ProviderMethod.GET_H2H,
            first_team_key=first_team_key,
            second_team_key=second_team_key,
        )

    async def fetch_standings(self, league_key: str) -> dict[str, Any]:
        return await self._call(ProviderMethod.GET_STANDINGS, league_key=league_key)
