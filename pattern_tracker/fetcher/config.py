"""Configuration for the content fetcher."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FetcherConfig(BaseSettings):
    """Settings for the HTTP content fetcher."""

    model_config = SettingsConfigDict(
        env_prefix="FETCHER_",
        case_sensitive=False,
        extra="ignore",
    )

    max_concurrency: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Maximum in-flight fetches across a monitoring run",
    )
    timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        le=120,
        description="Per-fetch timeout; a timeout counts as a failed fetch",
    )
    user_agent: str = Field(
        default="pattern-tracker/0.1 (knowledge source monitor)",
        description="User-Agent header sent with every request",
    )
    max_links: int = Field(
        default=200,
        ge=0,
        description="Maximum links kept per snapshot",
    )
