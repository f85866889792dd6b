"""Source registry tuning (``SOURCES_*`` env vars)."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SourcesConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SOURCES_",
        case_sensitive=False,
        extra="ignore",
    )

    # Starting reliability; monitoring moves it with each check
    default_reliability: float = Field(default=0.8, ge=0.0, le=1.0)
    # Seed an empty sources table on startup
    seed_on_init: bool = True
    # Overrides the bundled seed list when set
    seed_file: Path | None = None
