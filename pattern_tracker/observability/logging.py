"""
structlog setup for pattern-tracker.

Production renders one JSON object per line; development renders colored
console output. Monitoring runs bind ``run_id`` so every line written while
a batch of sources is checked can be correlated.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from pattern_tracker.config.settings import get_settings

_SECRET_KEYS = frozenset({"api_key", "anthropic_api_key", "token", "lease_token"})

_LIBRARY_LEVELS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "anthropic": logging.WARNING,
    "asyncpg": logging.WARNING,
}


def _redact_secrets(_: Any, __: str, event_dict: EventDict) -> EventDict:
    for key in _SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def setup_logging() -> None:
    """Configure structlog and the stdlib root logger from settings.

    Usage:
        setup_logging()
        logger = structlog.get_logger(__name__)
        logger.info("Source checked", source_id="src_123", changed=True)
    """
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _redact_secrets,
    ]
    if settings.is_production:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )
    for name, level in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(level)


def bind_context(**kwargs: Any) -> None:
    """Attach fields (e.g. ``run_id``) to every later log line in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
