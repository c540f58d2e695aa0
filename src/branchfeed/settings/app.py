"""Application settings powered by Pydantic BaseSettings."""

from pathlib import Path
from typing import Annotated

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BRANCHFEED_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    db_path: Path = Path("state/branchfeed.sqlite")
    ranking_config_path: Path | None = None
    share_base_url: str = "https://branchfeed.app"

    rest_url: str | None = Field(default=None, validation_alias="SUPABASE_URL")
    rest_api_key: str | None = Field(default=None, validation_alias="SUPABASE_KEY")
    rest_timeout_seconds: Annotated[float, Field(gt=0.0, le=120.0)] = 10.0

    log_level: str = "INFO"
    log_json: bool = True

    ranking_max_workers: Annotated[int, Field(ge=1, le=16)] = 3
    persist_attempts: Annotated[int, Field(ge=1, le=5)] = 2

    def has_rest_backend(self) -> bool:
        """Return True when a REST signal backend is configured."""
        return bool(self.rest_url and self.rest_api_key)


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
