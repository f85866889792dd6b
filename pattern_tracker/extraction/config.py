"""Configuration for AI-assisted pattern extraction.

All settings can be overridden via EXTRACTION_* environment variables.

Example:
    EXTRACTION_ANTHROPIC_API_KEY=sk-ant-...
    EXTRACTION_MAX_CONTENT_CHARS=8000
"""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExtractionConfig(BaseSettings):
    """Settings for the extractor, its AI client and the extraction queue."""

    model_config = SettingsConfigDict(
        env_prefix="EXTRACTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    anthropic_api_key: SecretStr | None = Field(
        default=None,
        description="Anthropic API key for pattern extraction",
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-5-20250929",
        description="Model used to extract candidate patterns",
    )
    max_tokens: int = Field(
        default=4000,
        ge=256,
        le=16000,
        description="Maximum tokens in the AI response",
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
    )

    # Cost/latency bounds
    max_content_chars: int = Field(
        default=10_000,
        ge=500,
        description="Snapshot characters sent to the AI collaborator",
    )
    ai_timeout_seconds: float = Field(
        default=60.0,
        ge=5.0,
        le=300.0,
        description="Timeout for one AI call, independent of the fetch timeout",
    )
    fallback_description_chars: int = Field(
        default=500,
        ge=50,
        description="Raw-response excerpt kept when the response is malformed",
    )

    # Circuit breaker settings
    circuit_failure_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive failures before opening circuit",
    )
    circuit_recovery_timeout: float = Field(
        default=60.0,
        ge=5.0,
        description="Seconds before attempting recovery trial call",
    )

    # Queue
    claim_ttl_seconds: int = Field(
        default=600,
        ge=30,
        description="Seconds after which a claimed queue entry may be reclaimed",
    )
    worker_batch_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Queue entries processed per worker run",
    )
