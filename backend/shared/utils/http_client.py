"""
Async HTTP client wrapper for provider requests.
Includes timeout management, typed failure mapping, and metrics collection.
Retry policy belongs to callers; every call here is a single attempt.
"""
from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from shared.config import get_settings
from shared.errors import MalformedPayload, TransportFailure, UpstreamFailure
from shared.utils.logging import get_logger
from shared.utils.metrics import UPSTREAM_LATENCY, UPSTREAM_REQUESTS

logger = get_logger(__name__)


class ProviderHTTPClient:
    """
    Async HTTP client tailored for the cricket data provider.
    Maps transport and status errors onto the relay's error taxonomy and
    records metrics per request.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._provider = provider_name
        self._base_url = base_url
        self._timeout = timeout_s or settings.provider_request_timeout_s
        self._default_headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def started(self) -> bool:
        return self._client is not None

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_json(self, params: dict[str, Any], method_label: str = "unknown") -> Any:
        """
        Perform a GET against the provider base URL and decode the JSON body.

        Args:
            params: Query parameters (provider method, keys, dates).
            method_label: Provider method name, used for metrics and logs.

        Returns:
            The decoded JSON body.

        Raises:
            TransportFailure: On timeouts and connection errors.
            UpstreamFailure: On non-2xx responses.
            MalformedPayload: If the body is not JSON.
        """
        if not self._client:
            raise RuntimeError("ProviderHTTPClient not started. Call start() first.")

        start_time = time.perf_counter()
        status = "unknown"
        try:
            resp = await self._client.get(self._base_url, params=params)
            status = str(resp.status_code)
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "provider_http_error",
                provider=self._provider,
                method=method_label,
                status=exc.response.status_code,
            )
            raise UpstreamFailure(
                f"{self._provider} returned HTTP {exc.response.status_code}",
                status=exc.response.status_code,
            ) from exc
        except httpx.TimeoutException as exc:
            status = "timeout"
            logger.warning("provider_timeout", provider=self._provider, method=method_label)
            raise TransportFailure(f"{self._provider} request timed out") from exc
        except httpx.TransportError as exc:
            status = "transport_error"
            logger.warning(
                "provider_transport_error",
                provider=self._provider,
                method=method_label,
                error=str(exc),
            )
            raise TransportFailure(f"{self._provider} unreachable: {exc}") from exc
        except ValueError as exc:
            status = "invalid_json"
            logger.warning("provider_invalid_json", provider=self._provider, method=method_label)
            raise MalformedPayload(f"{self._provider} returned a non-JSON body") from exc
        finally:
            elapsed_s = time.perf_counter() - start_time
            UPSTREAM_REQUESTS.labels(method=method_label, status=status).inc()
            UPSTREAM_LATENCY.labels(method=method_label).observe(elapsed_s)

        logger.debug(
            "provider_request_success",
            provider=self._provider,
            method=method_label,
            status=resp.status_code,
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return body
