"""Application settings powered by Pydantic BaseSettings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", env_file_encoding="utf-8"
    )

    db_path: Path = Field(
        default=Path("data/feedrank.sqlite"), validation_alias="FEEDRANK_DB_PATH"
    )
    config_path: Path | None = Field(
        default=None, validation_alias="FEEDRANK_CONFIG_PATH"
    )
    max_workers: int = Field(
        default=8, ge=1, le=64, validation_alias="FEEDRANK_MAX_WORKERS"
    )
    log_level: str = Field(default="INFO", validation_alias="FEEDRANK_LOG_LEVEL")
    log_json: bool = Field(default=True, validation_alias="FEEDRANK_LOG_JSON")


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
