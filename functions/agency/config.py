"""
Configuration and settings for the agency backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_GAS_API_URL = (
    "https://script.google.com/macros/s/"
    "AKfycbxOkgC_boHTVaAFAQQucJ-mXqRoeKMiPwN0W73wxSwLBU6xoi2-vWoc6KAGknS94HmR/exec"
)


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    app_name: str = Field(default="Integración Agencia Streamers")
    app_version: str = Field(default="1.0.0")
    log_level: str = Field(default="INFO")

    # Google Apps Script deployment
    gas_api_url: str = Field(default=DEFAULT_GAS_API_URL)
    gas_timeout_seconds: float = Field(default=10.0)
    gas_max_retries: int = Field(default=3, ge=1)
    gas_retry_delay_seconds: float = Field(default=1.0, ge=0)
    gas_retry_max_delay_seconds: float = Field(default=10.0, ge=0)
    circuit_breaker_threshold: int = Field(default=5, ge=1)
    circuit_breaker_reset_seconds: float = Field(default=60.0, ge=0)

    # Response cache (Redis when configured)
    cache_ttl_seconds: int = Field(default=300, ge=1)
    redis_url: Optional[str] = Field(default=None)
    redis_cache_prefix: str = Field(default="agency:cache")

    # Firestore
    firebase_project_id: Optional[str] = Field(default=None)
    firebase_service_account_key: Optional[str] = Field(default=None)

    # Google Sheets (reached through GAS)
    google_sheets_id: str = Field(default="")
    google_sheets_range: str = Field(default="A1:Z1000")

    default_agency_id: str = Field(default="luxeryprime")

    # Auth
    require_auth: bool = Field(default=False)
    admin_api_key: Optional[str] = Field(default=None)
    session_timeout_seconds: int = Field(default=30 * 60, ge=1)
    refresh_threshold_seconds: int = Field(default=5 * 60, ge=0)

    # Sync daemon
    sync_interval_seconds: int = Field(default=30, ge=1)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
