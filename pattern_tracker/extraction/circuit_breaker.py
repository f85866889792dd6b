"""Circuit breaker in front of the AI collaborator.

After ``failure_threshold`` consecutive failed extraction calls the breaker
opens and further calls fail immediately, so a provider outage costs one
ExtractionError per queued update instead of one full timeout each. After
``recovery_timeout`` seconds a single trial call is let through; its result
closes or re-opens the breaker.
"""

import enum
import logging
import time
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """The breaker is open; ``retry_after`` seconds remain until the next trial call."""

    def __init__(self, name: str, retry_after: float) -> None:
        super().__init__(
            f"AI circuit '{name}' is OPEN; next attempt in {retry_after:.0f}s"
        )
        self.retry_after = retry_after


class CircuitBreaker:
    """Consecutive-failure breaker with an injectable monotonic clock."""

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        name: str = "ai",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._name = name
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = 0.0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    def retry_after(self) -> float:
        """Seconds until an open breaker admits a trial call (0 when not open)."""
        if self._state != CircuitState.OPEN:
            return 0.0
        return max(0.0, self._opened_at + self._recovery_timeout - self._clock())

    def before_call(self) -> None:
        """Admit or reject a call. Moves OPEN to HALF_OPEN once the timeout passed."""
        if self._state != CircuitState.OPEN:
            return
        remaining = self.retry_after()
        if remaining > 0:
            raise CircuitOpenError(self._name, remaining)
        self._state = CircuitState.HALF_OPEN
        logger.info("AI circuit %s half-open, sending trial call", self._name)

    def record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            logger.info("AI circuit %s closed after successful trial call", self._name)
        self._state = CircuitState.CLOSED
        self._failures = 0

    def record_failure(self) -> None:
        self._failures += 1
        trial_failed = self._state == CircuitState.HALF_OPEN
        if trial_failed or self._failures >= self._threshold:
            if self._state != CircuitState.OPEN:
                logger.warning(
                    "AI circuit %s opened (%d consecutive failures)",
                    self._name, self._failures,
                )
            self._state = CircuitState.OPEN
            self._opened_at = self._clock()

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run ``fn`` through the breaker.

        Raises:
            CircuitOpenError: The breaker is open.
        """
        self.before_call()
        try:
            result = await fn(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result
