"""
Poll scheduler for the Cricket Live relay.
Drives three independent periodic jobs against the upstream provider:
- list refresh: rolling date window → reconcile live set → publish
- detail refresh: every live match → cache → publish
- scorecard refresh: every live match → cache → publish
Tick bodies run as their own tasks, so a slow tick never delays the next one
and overlapping runs of the same job are tolerated.
"""
from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Coroutine, Optional

from shared.config import Settings, get_settings
from shared.models.domain import MatchDetail, Scorecard
from shared.models.enums import FetchJob
from shared.utils.logging import get_logger
from shared.utils.metrics import POLL_CYCLE, atrack_latency

from ingest.providers.cricket_api import CricketAPIProvider
from ingest.publisher import FanoutPublisher
from ingest.reconciler import LiveSetReconciler, ReconcileResult
from ingest.store import CacheStore
from scheduler.engine.retry import call_with_retry

logger = get_logger(__name__)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class PollScheduler:
    """
    Owns the periodic poll tasks and the one-shot fetches they spawn.

    start() and stop() manage every task as a unit. Concurrent upstream
    calls are capped by a semaphore so a large live set cannot fan out
    without bound.
    """

    def __init__(
        self,
        provider: CricketAPIProvider,
        store: CacheStore,
        reconciler: LiveSetReconciler,
        publisher: FanoutPublisher,
        settings: Settings | None = None,
        today: Callable[[], date] = _utc_today,
    ) -> None:
        self._provider = provider
        self._store = store
        self._reconciler = reconciler
        self._publisher = publisher
        self._settings = settings or get_settings()
        self._today = today
        self._fetch_slots = asyncio.Semaphore(self._settings.max_concurrent_fetches)
        self._timers: list[asyncio.Task[None]] = []
        self._inflight: set[asyncio.Task[Any]] = set()
        # List ticks may overlap; only the newest fetched batch is applied
        self._list_seq = 0
        self._list_applied_seq = 0
        self._list_apply_lock = asyncio.Lock()
        self._shutdown = asyncio.Event()

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._timers)

    # ── Lifecycle ───────────────────────────────────────────────────────

    async def start(self) -> None:
        """Start the three periodic jobs. The first list refresh runs immediately."""
        if self.running:
            return
        self._shutdown.clear()
        s = self._settings
        self._timers = [
            asyncio.create_task(
                self._run_periodic(FetchJob.LIST, s.list_refresh_interval_s, self.refresh_list)
            ),
            asyncio.create_task(
                self._run_periodic(FetchJob.DETAIL, s.detail_refresh_interval_s, self.refresh_details)
            ),
            asyncio.create_task(
                self._run_periodic(
                    FetchJob.SCORECARD, s.scorecard_refresh_interval_s, self.refresh_scorecards
                )
            ),
        ]
        logger.info(
            "scheduler_started",
            list_interval_s=s.list_refresh_interval_s,
            detail_interval_s=s.detail_refresh_interval_s,
            scorecard_interval_s=s.scorecard_refresh_interval_s,
        )

    async def stop(self) -> None:
        """Stop timers and cancel in-flight fetches."""
        self._shutdown.set()
        tasks = [*self._timers, *self._inflight]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._timers = []
        self._inflight.clear()
        logger.info("scheduler_stopped")

    async def drain(self) -> None:
        """Wait until every spawned one-shot task has finished."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("poll_task_error", error=str(exc), exc_info=exc)

    async def _run_periodic(
        self, job: FetchJob, interval_s: float, body: Callable[[], Awaitable[Any]]
    ) -> None:
        while not self._shutdown.is_set():
            self._spawn(body())
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=interval_s)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
        logger.debug("poll_timer_exited", job=job.value)

    # ── List refresh ────────────────────────────────────────────────────

    def list_window(self) -> tuple[date, date]:
        today = self._today()
        span = timedelta(days=self._settings.list_window_days)
        return today - span, today + span

    async def refresh_list(self) -> Optional[ReconcileResult]:
        """
        Fetch the rolling match window, reconcile the live set and publish.

        Returns None when the fetch failed after all retries, or when a newer
        tick already applied its batch while this one was still fetching.
        """
        self._list_seq += 1
        seq = self._list_seq
        date_start, date_stop = self.list_window()

        async with atrack_latency(POLL_CYCLE, job=FetchJob.LIST.value):
            batch = await call_with_retry(
                lambda: self._provider.fetch_list(date_start, date_stop),
                job=FetchJob.LIST,
                retries=self._settings.list_retry_attempts,
                delay_s=self._settings.list_retry_delay_s,
            )
            if batch is None:
                return None

            async with self._list_apply_lock:
                if seq < self._list_applied_seq:
                    logger.info(
                        "stale_list_batch_dropped",
                        seq=seq,
                        applied_seq=self._list_applied_seq,
                    )
                    return None
                self._list_applied_seq = seq
                stamp = await self._store.replace_summaries(batch)
                result = await self._reconciler.reconcile(batch)
                await self._publisher.publish_live_events(result.events)
                await self._publisher.publish_batch(batch, stamp)

        for match_id in result.fetch_ids:
            self._spawn(self.fetch_and_publish_detail(match_id))
            self._spawn(self.fetch_and_publish_scorecard(match_id))

        logger.info(
            "list_refreshed",
            matches=len(batch),
            live=len(result.live_ids),
            window_start=date_start.isoformat(),
            window_stop=date_stop.isoformat(),
        )
        return result

    # ── Per-match refresh ───────────────────────────────────────────────

    async def refresh_details(self) -> int:
        """Spawn a detail fetch for every live match. Returns the number spawned."""
        live = self._store.live_ids()
        for match_id in live:
            self._spawn(self.fetch_and_publish_detail(match_id))
        return len(live)

    async def refresh_scorecards(self) -> int:
        """Spawn a scorecard fetch for every live match. Returns the number spawned."""
        live = self._store.live_ids()
        for match_id in live:
            self._spawn(self.fetch_and_publish_scorecard(match_id))
        return len(live)

    async def _limited(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        async with self._fetch_slots:
            return await fn()

    def _still_wanted(self, match_id: str, require_live: bool) -> bool:
        if not require_live or match_id in self._store.live_ids():
            return True
        logger.debug("stale_fetch_discarded", match_id=match_id)
        return False

    async def fetch_and_publish_detail(
        self,
        match_id: str,
        retries: Optional[int] = None,
        require_live: bool = True,
    ) -> Optional[MatchDetail]:
        """
        Fetch, cache and publish one match's detail.

        With ``require_live`` a result for a match that left the live set
        while the fetch was in flight is dropped instead of cached.
        """
        detail = await call_with_retry(
            lambda: self._limited(lambda: self._provider.fetch_detail(match_id)),
            job=FetchJob.DETAIL,
            retries=self._settings.fetch_retry_attempts if retries is None else retries,
            delay_s=self._settings.fetch_retry_delay_s,
            match_id=match_id,
        )
        if detail is None or not self._still_wanted(match_id, require_live):
            return detail
        await self._store.upsert_detail(match_id, detail)
        await self._publisher.publish_detail(detail)
        return detail

    async def fetch_and_publish_scorecard(
        self,
        match_id: str,
        retries: Optional[int] = None,
        require_live: bool = True,
    ) -> Optional[Scorecard]:
        """Fetch, cache and publish one match's scorecard."""
        card = await call_with_retry(
            lambda: self._limited(lambda: self._provider.fetch_scorecard(match_id)),
            job=FetchJob.SCORECARD,
            retries=self._settings.fetch_retry_attempts if retries is None else retries,
            delay_s=self._settings.fetch_retry_delay_s,
            match_id=match_id,
        )
        if card is None or not self._still_wanted(match_id, require_live):
            return card
        await self._store.upsert_scorecard(match_id, card)
        await self._publisher.publish_scorecard(card)
        return card
