"""Application configuration."""

import os
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    data_dir: Path = Path(".nutriscan")
    remote_sink: Literal["supabase", "http"] = "supabase"
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    supabase_table: str = "scan_records"
    sink_url: str | None = None
    sink_token: str | None = None
    sync_retry_backoff_seconds: float = 30.0
    sync_max_retries: int = 3
    connectivity_probe_url: str | None = None
    connectivity_probe_interval_seconds: float = 15.0
    start_online: bool = True
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_prefix="NUTRISCAN_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
