# greentrain/config.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # --- Time ---
    DEFAULT_TIMEZONE: str = "Asia/Shanghai"

    # --- Catalog ---
    TRAINS_JSON: str = "greentrain/data/trains.json"

    # --- Calendar ---
    NEXT_SERVICE_LOOKAHEAD_DAYS: int = 365
    UPCOMING_DAYS: int = 90

    # --- Tickets ---
    TICKET_QR_BASE_URL: str = "https://webgreentrain.example"
    PNR_LENGTH: int = 8

    # --- CLI ---
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


settings = Settings()
