"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

ENV selects how the store client reacts to exhausted connection retries:
"production" fails hard, anything else falls back to the degraded store.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    otp_db_name: str = "passcodes"
    otp_collection: str = "otps"

    # Databases holding user documents, searched in order
    user_partitions: list[str] = ["riders", "passengers"]
    users_collection: str = "users"


class StoreSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    store_max_connect_attempts: int = 5
    store_backoff_base_ms: int = 1000
    store_jitter_max_ms: int = 1000
    store_connect_timeout_ms: int = 10000
    store_server_selection_timeout_ms: int = 10000
    store_max_pool_size: int = 50

    store_health_check_interval_seconds: float = 30.0
    store_ping_timeout_ms: int = 3000
    # Reconnect is scheduled on every Nth consecutive health check failure
    store_reconnect_failure_threshold: int = 3

    # Operations taking longer than this share of their timeout count as slow
    store_slow_operation_ratio: float = 0.8
    store_stats_log_every: int = 10


class OtpSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    otp_code_length: int = 6
    otp_expiry_minutes: int = 10
    otp_max_attempts: int = 5
    otp_cooldown_seconds: int = 60

    # Optional cap on issuances per (subject, purpose) inside a sliding window
    otp_max_requests_per_window: Optional[int] = None
    otp_request_window_minutes: int = 60

    otp_used_retention_days: int = 30
    # 0 disables the periodic cleanup task
    otp_cleanup_interval_minutes: int = 60

    # Per-operation store timeouts
    otp_read_timeout_ms: int = 3000
    otp_write_timeout_ms: int = 3000
    otp_bulk_timeout_ms: int = 5000
    otp_maintenance_timeout_ms: int = 60000

    otp_app_name: str = "Okada"


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = "development"
    app_name: str = "otp-engine"

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    store: Optional[StoreSettings] = None
    otp: Optional[OtpSettings] = None
    logging: Optional[LoggingSettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.store is None:
            self.store = StoreSettings()
        if self.otp is None:
            self.otp = OtpSettings()
        if self.logging is None:
            self.logging = LoggingSettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
