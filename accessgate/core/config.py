# accessgate/core/config.py
from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,  # .env keys dürfen groß/klein geschrieben sein
        extra="ignore",
    )

    # ------------------------------------------------------------
    # 🧭 Allgemeine App-Einstellungen
    # ------------------------------------------------------------
    APP_NAME: str = "Access Gate"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # ------------------------------------------------------------
    # 🗄️ Datenbank
    # ------------------------------------------------------------
    DB_URL: str = "sqlite:///./access_codes.db"

    # ------------------------------------------------------------
    # 🔐 Admin-Zugang
    # ------------------------------------------------------------
    # Kein Default: ohne Token sind alle Admin-Aktionen gesperrt.
    ADMIN_TOKEN: Optional[str] = None

    # ------------------------------------------------------------
    # 🎟️ Zugangscodes
    # ------------------------------------------------------------
    DEFAULT_DURATION_MINUTES: int = Field(default=10, gt=0)
    CODE_GENERATION_ATTEMPTS: int = Field(default=5, ge=1)
    CLEANUP_INTERVAL_SECONDS: int = Field(default=60, ge=0)
    USAGE_LOG_LIMIT: int = Field(default=50, ge=1)


def get_settings() -> Settings:
    return Settings()
