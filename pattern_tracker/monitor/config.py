"""Configuration for monitoring runs."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MonitorConfig(BaseSettings):
    """Settings for source selection, leasing and the extraction fast path.

    Example:
        MONITOR_DEFAULT_LIMIT=5
        MONITOR_FAST_PATH_PRIORITY=3
    """

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_",
        case_sensitive=False,
        extra="ignore",
    )

    default_limit: int = Field(
        default=5,
        ge=1,
        description="Sources checked per run when no limit is given",
    )
    max_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Hard cap on sources checked per run",
    )
    stale_after_hours: int = Field(
        default=24,
        ge=1,
        description="Default selection: sources not scraped within this window",
    )

    fast_path_enabled: bool = Field(
        default=True,
        description="Extract immediately for high-priority sources after enqueue",
    )
    fast_path_priority: int = Field(
        default=3,
        ge=0,
        description="Minimum source priority for fast-path extraction",
    )

    lease_enabled: bool = Field(
        default=True,
        description="Guard each source with a Redis lease during a run",
    )
    lease_ttl_seconds: int = Field(
        default=300,
        ge=10,
        description="Lease expiry; must exceed fetch timeout plus storage time",
    )
    lease_key_prefix: str = Field(
        default="pattern_tracker:lease:source:",
    )
