from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    cache_dir: Path = Field(default=Path("~/.cache/pdfhandler"), alias="PDFH_CACHE_DIR")
    cache_retention_days: float = Field(default=7, gt=0, alias="PDFH_CACHE_RETENTION_DAYS")

    http_timeout_s: float = Field(default=30.0, gt=0, alias="PDFH_HTTP_TIMEOUT_S")
    http_user_agent: str = Field(default="pdfhandler-core/0.1", alias="PDFH_HTTP_USER_AGENT")

    document_backend: Literal["pypdf", "pymupdf"] = Field(default="pypdf", alias="PDFH_DOCUMENT_BACKEND")

    log_level: str = Field(default="INFO", alias="PDFH_LOG_LEVEL")

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.cache_retention_days)

    @property
    def resolved_cache_dir(self) -> Path:
        return self.cache_dir.expanduser()


def load_settings() -> Settings:
    return Settings()
