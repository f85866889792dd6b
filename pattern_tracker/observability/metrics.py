"""
Prometheus metrics for monitoring the pattern pipeline.

Defines and exposes metrics for:
- Source checks and detected changes
- Fetch latency and source reliability
- Extraction queue depth and extraction outcomes
- Moderation (reviews), usage events and exports

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from pattern_tracker.config.settings import get_settings

logger = logging.getLogger(__name__)

# Fetches block for seconds; AI calls for tens of seconds.
FETCH_BUCKETS = (0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0)
EXTRACTION_BUCKETS = (0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the pattern-tracker pipeline.

    Usage:
        metrics = get_metrics()
        metrics.record_source_check("success", changed=True, latency=1.2)
        metrics.record_extraction("success")
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        # Monitoring
        self.sources_checked = Counter(
            "pattern_tracker_sources_checked_total",
            "Total source checks",
            ["status"],  # success, error
        )

        self.source_changes = Counter(
            "pattern_tracker_source_changes_total",
            "Total content changes detected",
            ["change_type"],  # MAJOR, MINOR, PATCH
        )

        self.fetch_latency = Histogram(
            "pattern_tracker_fetch_latency_seconds",
            "Time to fetch a source snapshot",
            buckets=FETCH_BUCKETS,
        )

        self.source_reliability = Gauge(
            "pattern_tracker_source_reliability",
            "Latest reliability score per source",
            ["source_id"],
        )

        # Extraction queue
        self.queue_depth = Gauge(
            "pattern_tracker_extraction_queue_depth",
            "Number of live entries in the extraction queue",
        )

        self.queue_enqueued = Counter(
            "pattern_tracker_extraction_enqueued_total",
            "Total extraction queue entries created",
        )

        # Extraction
        self.extractions = Counter(
            "pattern_tracker_extractions_total",
            "Total extraction attempts",
            ["status"],  # success, skipped, error
        )

        self.extraction_latency = Histogram(
            "pattern_tracker_extraction_latency_seconds",
            "Time spent in the AI collaborator per update",
            buckets=EXTRACTION_BUCKETS,
        )

        self.patterns_extracted = Counter(
            "pattern_tracker_patterns_extracted_total",
            "Total candidate patterns persisted",
            ["category"],
        )

        self.malformed_responses = Counter(
            "pattern_tracker_ai_malformed_responses_total",
            "AI responses with no well-formed JSON array",
        )

        # Moderation and consumption
        self.reviews = Counter(
            "pattern_tracker_reviews_total",
            "Total review events",
            ["action"],
        )

        self.usage_events = Counter(
            "pattern_tracker_usage_events_total",
            "Total usage events recorded",
            ["action"],
        )

        self.exports = Counter(
            "pattern_tracker_exports_total",
            "Total exports rendered",
            ["format"],
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info("Prometheus metrics server started on port %d", port)

    # Convenience methods

    def record_source_check(
        self,
        status: str,
        changed: bool = False,
        change_type: str | None = None,
        latency: float | None = None,
    ) -> None:
        """Record the outcome of one source check."""
        self.sources_checked.labels(status=status).inc()
        if changed:
            self.source_changes.labels(change_type=change_type or "UNKNOWN").inc()
        if latency is not None:
            self.fetch_latency.observe(latency)

    def set_reliability(self, source_id: str, reliability: float) -> None:
        """Publish a source's reliability after a feedback write."""
        self.source_reliability.labels(source_id=source_id).set(reliability)

    def set_queue_depth(self, depth: int) -> None:
        """Set extraction queue depth metric."""
        self.queue_depth.set(depth)

    def record_extraction(self, status: str) -> None:
        """Record one extraction attempt (success, skipped, error)."""
        self.extractions.labels(status=status).inc()

    def record_pattern(self, category: str) -> None:
        """Record a persisted candidate pattern."""
        self.patterns_extracted.labels(category=category).inc()

    def record_review(self, action: str) -> None:
        self.reviews.labels(action=action).inc()

    def record_usage(self, action: str, count: int = 1) -> None:
        self.usage_events.labels(action=action).inc(count)

    def record_export(self, fmt: str) -> None:
        self.exports.labels(format=fmt).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
