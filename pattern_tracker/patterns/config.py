"""Configuration for pattern moderation, usage and export."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PatternsConfig(BaseSettings):
    """Settings for pattern queries and exports."""

    model_config = SettingsConfigDict(
        env_prefix="PATTERNS_",
        case_sensitive=False,
        extra="ignore",
    )

    default_page_size: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Page size for pattern listings",
    )
    export_default_status: str = Field(
        default="APPROVED",
        description="Status filter applied to exports when none is given",
    )
    export_track_usage: bool = Field(
        default=True,
        description="Record an 'exported' usage event per exported pattern",
    )
    usage_recent_events: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Recent events returned with per-pattern usage stats",
    )
