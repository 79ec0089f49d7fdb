from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Device Ledger"
    BASE_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parent.parent.parent)
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parent.parent.parent / "data")
    STORAGE_DIR: Path | None = None
    TZ: str = "Europe/Berlin"
    LOG_LEVEL: str = "INFO"

    API_KEY: str = Field(default="", validation_alias=AliasChoices("API_KEY", "API_TOKEN"))
    DEFAULT_OWNER_ID: str = "local"
    JWT_SECRET: str = "change-me"
    JWT_ACCESS_TTL_MIN: int = 15
    ALLOWED_ORIGINS: str = ""

    DB_URL: str = Field(default="", validation_alias=AliasChoices("DB_URL", "DATABASE_URL"))

    HOST: str = "0.0.0.0"
    PORT: int = 8089

    # Uploads and document generation
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    LOGO_FETCH_TIMEOUT: float = 10.0
    PDF_FONT_DIR: Path | None = None

    @property
    def allowed_origins(self) -> list[str]:
        return [item.strip() for item in self.ALLOWED_ORIGINS.split(",") if item.strip()]

    @property
    def storage_dir(self) -> Path:
        return self.STORAGE_DIR if self.STORAGE_DIR is not None else self.DATA_DIR / "files"


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    if settings.STORAGE_DIR is None:
        settings.STORAGE_DIR = settings.DATA_DIR / "files"
    if not settings.DB_URL:
        settings.DB_URL = f"sqlite:///{settings.DATA_DIR / 'devicebook.db'}"
    return settings


settings = get_settings()
