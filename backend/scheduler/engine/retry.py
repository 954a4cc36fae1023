"""
Fixed-delay retry for scheduler fetches.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from shared.errors import FeedError
from shared.models.enums import FetchJob
from shared.utils.logging import get_logger
from shared.utils.metrics import POLL_GIVE_UPS, POLL_RETRIES

logger = get_logger(__name__)

T = TypeVar("T")


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    job: FetchJob,
    retries: int,
    delay_s: float,
    **log_context: Any,
) -> Optional[T]:
    """
    Run ``fn`` and retry it on FeedError up to ``retries`` more times.

    Returns the first successful result, or None once attempts are exhausted.
    Only FeedError is treated as recoverable; anything else propagates.
    """
    attempts = retries + 1
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except FeedError as exc:
            if attempt == attempts:
                POLL_GIVE_UPS.labels(job=job.value).inc()
                logger.warning(
                    "fetch_gave_up",
                    job=job.value,
                    attempts=attempt,
                    error_code=exc.code,
                    error=exc.message,
                    **log_context,
                )
                return None
            POLL_RETRIES.labels(job=job.value).inc()
            logger.info(
                "fetch_retry_scheduled",
                job=job.value,
                attempt=attempt,
                max_attempts=attempts,
                delay_s=delay_s,
                error_code=exc.code,
                **log_context,
            )
            await asyncio.sleep(delay_s)
    return None
