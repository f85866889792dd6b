"""Anthropic client for pattern extraction.

The SDK import is deferred to first use so the package imports cleanly
when no API key is configured. Every call goes through a circuit breaker
and an overall timeout; transport failures, timeouts and an open circuit
all surface as ExtractionError.
"""

import asyncio
import logging
from typing import Any, Protocol

from pattern_tracker.errors import ExtractionError
from pattern_tracker.extraction.circuit_breaker import CircuitBreaker, CircuitOpenError
from pattern_tracker.extraction.config import ExtractionConfig

logger = logging.getLogger(__name__)


class AIClient(Protocol):
    """Anything that turns a (system, user) prompt pair into raw text."""

    model: str

    async def complete(self, system: str, prompt: str) -> str: ...


class LLMClient:
    """Anthropic-backed AIClient.

    Args:
        config: Extraction configuration with API key and model name.
    """

    def __init__(self, config: ExtractionConfig | None = None) -> None:
        self._config = config or ExtractionConfig()
        self._client: Any = None
        self._breaker = CircuitBreaker(
            failure_threshold=self._config.circuit_failure_threshold,
            recovery_timeout=self._config.circuit_recovery_timeout,
            name="anthropic",
        )

    @property
    def model(self) -> str:
        return self._config.anthropic_model

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    def _get_client(self) -> Any:
        """Lazy-initialize Anthropic async client."""
        if self._client is None:
            import anthropic

            api_key = self._config.anthropic_api_key
            key_str = api_key.get_secret_value() if api_key else None
            self._client = anthropic.AsyncAnthropic(
                api_key=key_str,
                timeout=self._config.ai_timeout_seconds,
            )
        return self._client

    async def _create(self, system: str, prompt: str) -> str:
        client = self._get_client()
        response = await client.messages.create(
            model=self._config.anthropic_model,
            max_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        parts = [
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ]
        return "".join(parts)

    async def _timed_create(self, system: str, prompt: str) -> str:
        return await asyncio.wait_for(
            self._create(system, prompt), timeout=self._config.ai_timeout_seconds
        )

    async def complete(self, system: str, prompt: str) -> str:
        """Send one extraction prompt and return the raw response text.

        Raises:
            ExtractionError: On transport failure, timeout or open circuit.
        """
        try:
            return await self._breaker.call(self._timed_create, system, prompt)
        except CircuitOpenError as e:
            raise ExtractionError(str(e)) from e
        except asyncio.TimeoutError as e:
            raise ExtractionError(
                f"AI call timed out after {self._config.ai_timeout_seconds}s"
            ) from e
        except ExtractionError:
            raise
        except Exception as e:
            logger.warning("AI call failed: %s", e)
            raise ExtractionError(f"AI call failed: {e}") from e

    async def close(self) -> None:
        """Clean up SDK client."""
        if self._client is not None:
            await self._client.close()
            self._client = None
