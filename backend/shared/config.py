"""
Central configuration for the Cricket Live relay.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Root settings for the relay service."""

    model_config = SettingsConfigDict(
        env_prefix="CL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Pod/container ID bound to every log line")

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    cors_origins: list[str] = ["*"]

    # ── WebSocket ────────────────────────────────────────────
    ws_heartbeat_interval_s: float = 30.0
    ws_heartbeat_timeout_s: float = 10.0
    ws_max_subscriptions_per_conn: int = 50

    # ── Provider ─────────────────────────────────────────────
    provider_base_url: str = "https://apiv2.api-cricket.com/cricket/"
    provider_api_key: str = ""
    provider_request_timeout_s: float = 10.0

    # ── Polling ──────────────────────────────────────────────
    list_refresh_interval_s: float = 30.0
    detail_refresh_interval_s: float = 5.0
    scorecard_refresh_interval_s: float = 3.0
    list_window_days: int = 14
    list_retry_attempts: int = 3
    list_retry_delay_s: float = 5.0
    fetch_retry_attempts: int = 2
    fetch_retry_delay_s: float = 3.0
    max_concurrent_fetches: int = 10

    # ── Status vocabulary ────────────────────────────────────
    # Provider status strings, matched case-insensitively.
    live_status_values: list[str] = ["in progress", "live"]
    finished_status_values: list[str] = [
        "finished",
        "cancelled",
        "abandoned",
        "no result",
    ]
    scheduled_status_values: list[str] = ["", "not started", "scheduled"]
    require_live_flag: bool = Field(
        default=False,
        description="Also require event_live == '1' before a match counts as live.",
    )

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @field_validator("live_status_values", "finished_status_values", "scheduled_status_values")
    @classmethod
    def normalize_status_values(cls, values: list[str]) -> list[str]:
        return [v.strip().lower() for v in values]

    @property
    def provider_base_url_safe_log(self) -> str:
        """Base URL for logging; the API key travels as a query param and is never part of it."""
        return self.provider_base_url.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
