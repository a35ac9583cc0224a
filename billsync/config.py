"""
Configuration settings for billsync.

Uses Pydantic Settings to load environment variables for the remote sheet
endpoint, the on-device record store, sync cadence, and logging. Values can
also come from a local `.env` file.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Remote sheet web app
    sheets_web_app_url: Optional[str] = Field(None, alias="SHEETS_WEB_APP_URL")
    request_timeout: float = Field(15.0, alias="REQUEST_TIMEOUT")
    fetch_attempts: int = Field(1, ge=1, alias="FETCH_ATTEMPTS")

    # Local record store
    store_path: Path = Field(Path("data/billsync.json"), alias="STORE_PATH")

    # Sync
    sync_interval_seconds: float = Field(300.0, gt=0, alias="SYNC_INTERVAL_SECONDS")
    push_batch_size: int = Field(50, ge=1, alias="PUSH_BATCH_SIZE")

    # Billing
    bill_prefix: str = Field("SS", alias="BILL_PREFIX")
    bill_number_width: int = Field(2, ge=1, alias="BILL_NUMBER_WIDTH")
    low_stock_threshold: int = Field(10, alias="LOW_STOCK_THRESHOLD")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
