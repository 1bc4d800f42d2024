"""
Configuration and settings for the AFD cache service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the API and the refresh daemon."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Local filesystem store (development, or fallback when S3 is unavailable)
    use_local_store: bool = Field(default=False)
    local_data_dir: str = Field(default="data")

    # S3-compatible object store
    s3_bucket: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_endpoint: Optional[str] = Field(default=None)
    s3_key_prefix: str = Field(default="")
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # api.weather.gov
    nws_base_url: str = Field(default="https://api.weather.gov")
    nws_user_agent: str = Field(default="RYFF/1.0 (no-contact@invalid)")
    nws_timeout_seconds: float = Field(default=30.0)

    # Offices to refresh; None uses the packaged wfos.json
    offices_path: Optional[str] = Field(default=None)

    refresh_interval_seconds: int = Field(default=900)
    refresh_jitter_seconds: int = Field(default=60)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
