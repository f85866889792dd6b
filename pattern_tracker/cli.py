"""
Command-line interface for pattern-tracker.

Thin front end over PipelineService: every command opens the pipeline,
calls one entry point and prints the result.

Usage:
    pattern-tracker init-db               # Create tables
    pattern-tracker seed-sources          # Load the bundled source list
    pattern-tracker monitor --frequency DAILY
    pattern-tracker drain-queue --max-entries 10
    pattern-tracker review pat_... approve --reviewer alice
    pattern-tracker export --format markdown
    pattern-tracker health
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click

from pattern_tracker.config.settings import get_settings
from pattern_tracker.errors import PipelineError
from pattern_tracker.observability.logging import setup_logging
from pattern_tracker.observability.metrics import get_metrics


def _build_pipeline(use_lease: bool = False) -> Any:
    """Create a PipelineService from settings."""
    from pattern_tracker.monitor.lease import SourceLease
    from pattern_tracker.services.pipeline_service import PipelineService

    lease = SourceLease.from_settings() if use_lease else None
    return PipelineService(lease=lease)


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _run(coro: Any) -> Any:
    """Run a coroutine, turning pipeline errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except PipelineError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Pattern Tracker - knowledge source monitoring and pattern moderation."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from pattern_tracker.storage.database import Database
    from pattern_tracker.storage.schema import create_all

    async def run():
        db = Database()
        await db.connect()
        try:
            await create_all(db)
        finally:
            await db.close()
        click.echo("Database initialized successfully")

    _run(run())


@main.command("seed-sources")
@click.option("--file", "seed_file", default=None, type=click.Path(exists=True, dir_okay=False),
              help="JSON file of sources (default: bundled list)")
def seed_sources(seed_file: str | None) -> None:
    """Upsert sources from a JSON seed file."""
    from pattern_tracker.sources.service import SourcesService
    from pattern_tracker.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            count = await SourcesService(db).seed_from_json(
                Path(seed_file) if seed_file else None
            )
        finally:
            await db.close()
        click.echo(f"Seeded {count} sources")

    _run(run())


@main.command("add-source")
@click.argument("url")
@click.option("--name", required=True, help="Unique display name")
@click.option("--category", default="general", help="Source category")
@click.option("--frequency", default="DAILY",
              type=click.Choice(["HOURLY", "DAILY", "WEEKLY"], case_sensitive=False))
@click.option("--priority", default=0, type=int, help="Priority (>= 0)")
@click.option("--no-extract", is_flag=True, help="Monitor only, never extract patterns")
def add_source(
    url: str, name: str, category: str, frequency: str, priority: int, no_extract: bool
) -> None:
    """Register a new source."""
    from pattern_tracker.sources.service import SourcesService
    from pattern_tracker.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            source = await SourcesService(db).add_source(
                url=url,
                name=name,
                category=category,
                check_frequency=frequency,
                priority=priority,
                extract_patterns=not no_extract,
            )
        finally:
            await db.close()
        _echo_json(source.to_dict())

    _run(run())


@main.command()
@click.option("--frequency", default=None,
              type=click.Choice(["HOURLY", "DAILY", "WEEKLY"], case_sensitive=False),
              help="Check sources of this tier that are due")
@click.option("--source-id", "source_ids", multiple=True, help="Check specific sources (can repeat)")
@click.option("--all", "all_active", is_flag=True, help="Check all active sources")
@click.option("--limit", default=None, type=int, help="Maximum sources (hard cap applies)")
@click.option("--lease/--no-lease", default=True, help="Use Redis per-source leases")
def monitor(
    frequency: str | None,
    source_ids: tuple[str, ...],
    all_active: bool,
    limit: int | None,
    lease: bool,
) -> None:
    """Run one monitoring batch."""

    async def run():
        async with _build_pipeline(use_lease=lease) as pipeline:
            result = await pipeline.run_monitoring(
                frequency=frequency.upper() if frequency else None,
                source_ids=list(source_ids) or None,
                all_active=all_active,
                limit=limit,
            )
        _echo_json(result.to_dict())
        if result.status.value == "failure":
            sys.exit(1)

    _run(run())


@main.command()
@click.option("--update-id", default=None, help="Extract from this update")
@click.option("--source-id", default=None, help="Extract from the source's latest update")
@click.option("--content-file", default=None, type=click.File("r"),
              help="Extract from raw content ('-' for stdin)")
@click.option("--force", is_flag=True, help="Re-extract already processed updates")
def extract(
    update_id: str | None, source_id: str | None, content_file: Any, force: bool
) -> None:
    """Extract patterns on demand."""

    async def run():
        content = content_file.read() if content_file else None
        async with _build_pipeline() as pipeline:
            result = await pipeline.extract(
                update_id=update_id, source_id=source_id, content=content, force=force
            )
        _echo_json(result.to_dict())
        if result.error:
            sys.exit(1)

    _run(run())


@main.command("drain-queue")
@click.option("--max-entries", default=10, type=int, help="Queue entries to process")
@click.option("--metrics/--no-metrics", default=False, help="Enable metrics server")
def drain_queue(max_entries: int, metrics: bool) -> None:
    """Process queued updates through extraction."""

    async def run():
        if metrics:
            get_metrics().start_server()
        async with _build_pipeline() as pipeline:
            result = await pipeline.drain_queue(max_entries=max_entries)
        _echo_json(result.to_dict())

    _run(run())


@main.command()
@click.argument("pattern_id")
@click.argument("action", type=click.Choice(
    ["approve", "reject", "refine", "request_info"], case_sensitive=False))
@click.option("--reviewer", required=True, help="Reviewer id")
@click.option("--feedback", default=None, help="Free-text feedback")
@click.option("--history", "show_history", is_flag=True, help="Print review history afterwards")
def review(
    pattern_id: str, action: str, reviewer: str, feedback: str | None, show_history: bool
) -> None:
    """Record a moderation decision on a pattern."""

    async def run():
        async with _build_pipeline() as pipeline:
            outcome = await pipeline.review(
                pattern_id, action.upper(), reviewer, feedback=feedback
            )
            history = await pipeline.review_history(pattern_id) if show_history else None
        data = outcome.to_dict()
        if history is not None:
            data["history"] = [r.to_dict() for r in history]
        _echo_json(data)

    _run(run())


def _build_filter(
    status: str | None,
    category: str | None,
    source_id: str | None,
    min_confidence: float | None,
    search: str | None,
    limit: int = 50,
    offset: int = 0,
) -> Any:
    from pattern_tracker.errors import ValidationError
    from pattern_tracker.patterns.schemas import PatternFilter

    try:
        return PatternFilter(
            status=status.upper() if status else None,
            category=category.upper() if category else None,
            source_id=source_id,
            min_confidence=min_confidence,
            search=search,
            limit=limit,
            offset=offset,
        )
    except ValueError as e:
        raise ValidationError(str(e)) from e


@main.command()
@click.option("--format", "fmt", default="json",
              type=click.Choice(["json", "csv", "markdown", "context"], case_sensitive=False))
@click.option("--status", default="APPROVED", help="Pattern status (use 'any' for all)")
@click.option("--category", default=None, help="Only this category")
@click.option("--source-id", default=None, help="Only patterns from this source")
@click.option("--min-confidence", default=None, type=float, help="Minimum confidence")
@click.option("--user", "user_id", default=None, help="User recorded on usage events")
@click.option("--no-track", is_flag=True, help="Do not record 'exported' usage events")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False),
              help="Write to file instead of stdout")
def export(
    fmt: str,
    status: str,
    category: str | None,
    source_id: str | None,
    min_confidence: float | None,
    user_id: str | None,
    no_track: bool,
    output: str | None,
) -> None:
    """Export patterns as json, csv, markdown or a context document."""

    async def run():
        flt = _build_filter(
            None if status.lower() == "any" else status,
            category,
            source_id,
            min_confidence,
            None,
        )
        async with _build_pipeline() as pipeline:
            result = await pipeline.export(
                flt, fmt=fmt, user_id=user_id, track_usage=not no_track
            )
        # CSV rows end in CRLF; write the bytes untranslated
        data = result.content.encode("utf-8")
        if output:
            Path(output).write_bytes(data)
            click.echo(f"Exported {result.count} patterns to {output}")
        else:
            stdout = click.get_binary_stream("stdout")
            stdout.write(data)
            stdout.flush()

    _run(run())


@main.command()
@click.option("--status", default=None, help="Filter by status")
@click.option("--category", default=None, help="Filter by category")
@click.option("--source-id", default=None, help="Filter by source")
@click.option("--min-confidence", default=None, type=float, help="Minimum confidence")
@click.option("--search", default=None, help="Search name and description")
@click.option("--limit", default=50, type=int, help="Page size")
@click.option("--offset", default=0, type=int, help="Page offset")
def patterns(
    status: str | None,
    category: str | None,
    source_id: str | None,
    min_confidence: float | None,
    search: str | None,
    limit: int,
    offset: int,
) -> None:
    """List patterns."""

    async def run():
        flt = _build_filter(status, category, source_id, min_confidence, search, limit, offset)
        async with _build_pipeline() as pipeline:
            page = await pipeline.list_patterns(flt)

        click.echo(f"\n{page.total} patterns (showing {len(page.patterns)})")
        click.echo("-" * 60)
        for p in page.patterns:
            click.echo(
                f"{p.id}  [{p.status}] {p.category:<16} "
                f"conf={p.confidence:.2f} rel={p.relevance:.2f} used={p.usage_count}  {p.name}"
            )

    _run(run())


@main.command()
@click.argument("pattern_id")
@click.option("--track", "action", default=None,
              type=click.Choice(["viewed", "applied", "exported", "shared", "copied", "referenced"]),
              help="Record a usage event before printing stats")
@click.option("--user", "user_id", default=None, help="User id for the recorded event")
@click.option("--recent", default=None, type=int, help="Recent events to include")
def usage(pattern_id: str, action: str | None, user_id: str | None, recent: int | None) -> None:
    """Show (and optionally record) pattern usage."""

    async def run():
        async with _build_pipeline() as pipeline:
            if action:
                await pipeline.track_usage(pattern_id, action, user_id=user_id)
            stats = await pipeline.usage_stats(pattern_id, recent=recent)
        _echo_json(stats)

    _run(run())


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}

        # Check Redis
        try:
            from pattern_tracker.monitor.lease import SourceLease
            lease = SourceLease.from_settings()
            results["redis"] = bool(await lease.ping())
            await lease.close()
        except Exception as e:
            results["redis"] = False
            logger.error("Redis health check failed", error=str(e))

        # Check PostgreSQL
        try:
            from pattern_tracker.storage.database import Database
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        from pattern_tracker.extraction.config import ExtractionConfig
        results["anthropic_configured"] = ExtractionConfig().anthropic_api_key is not None

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        all_healthy = True
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
            if name == "postgres" and not status:
                all_healthy = False

        click.echo("-" * 40)

        if all_healthy:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


if __name__ == "__main__":
    main()
