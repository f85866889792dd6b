"""Tests for source selection."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from pattern_tracker.errors import ValidationError
from pattern_tracker.monitor.config import MonitorConfig
from pattern_tracker.monitor.scheduler import Scheduler, is_due, order_due

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestIsDue:
    def test_never_scraped_is_due(self, make_source) -> None:
        assert is_due(make_source(), NOW)

    def test_inactive_never_due(self, make_source) -> None:
        assert not is_due(make_source(active=False), NOW)

    def test_hourly_interval(self, make_source) -> None:
        source = make_source(check_frequency="HOURLY", last_scraped=NOW - timedelta(minutes=59))
        assert not is_due(source, NOW)
        source.last_scraped = NOW - timedelta(minutes=61)
        assert is_due(source, NOW)

    def test_weekly_interval(self, make_source) -> None:
        source = make_source(check_frequency="WEEKLY", last_scraped=NOW - timedelta(days=3))
        assert not is_due(source, NOW)


class TestOrderDue:
    def test_never_scraped_first_then_stalest_then_priority(self, make_source) -> None:
        fresh_high = make_source(name="fresh-high", priority=5, last_scraped=NOW - timedelta(hours=25))
        stale_low = make_source(name="stale-low", priority=0, last_scraped=NOW - timedelta(hours=48))
        never = make_source(name="never", priority=0)
        not_due = make_source(name="not-due", last_scraped=NOW - timedelta(hours=1))

        ordered = order_due([fresh_high, stale_low, never, not_due], NOW, limit=10)

        assert [s.name for s in ordered] == ["never", "stale-low", "fresh-high"]

    def test_priority_breaks_ties(self, make_source) -> None:
        a = make_source(name="a", priority=1)
        b = make_source(name="b", priority=4)
        assert [s.name for s in order_due([a, b], NOW, limit=10)] == ["b", "a"]

    def test_frequency_filter_and_limit(self, make_source) -> None:
        sources = [make_source(name=f"d{i}") for i in range(4)]
        sources.append(make_source(name="h", check_frequency="HOURLY"))

        ordered = order_due(sources, NOW, limit=2, frequency="DAILY")

        assert len(ordered) == 2
        assert all(s.check_frequency == "DAILY" for s in ordered)


class TestScheduler:
    def test_effective_limit(self) -> None:
        scheduler = Scheduler(AsyncMock(), MonitorConfig())
        assert scheduler.effective_limit(None) == 5
        assert scheduler.effective_limit(3) == 3
        assert scheduler.effective_limit(50) == 10

    def test_effective_limit_rejects_zero(self) -> None:
        scheduler = Scheduler(AsyncMock(), MonitorConfig())
        with pytest.raises(ValidationError):
            scheduler.effective_limit(0)

    @pytest.mark.asyncio
    async def test_due_sources_uses_tier_interval(self) -> None:
        repo = AsyncMock()
        repo.list_due = AsyncMock(return_value=[])
        scheduler = Scheduler(repo, MonitorConfig())

        await scheduler.due_sources("hourly")

        repo.list_due.assert_awaited_once_with("HOURLY", timedelta(hours=1), 5)

    @pytest.mark.asyncio
    async def test_due_sources_rejects_unknown_tier(self) -> None:
        scheduler = Scheduler(AsyncMock(), MonitorConfig())
        with pytest.raises(ValidationError, match="frequency"):
            await scheduler.due_sources("MONTHLY")

    @pytest.mark.asyncio
    async def test_explicit_ids_capped(self) -> None:
        repo = AsyncMock()
        repo.get_active_by_ids = AsyncMock(return_value=[])
        scheduler = Scheduler(repo, MonitorConfig())

        await scheduler.select_sources(source_ids=["src_a", "src_b"])

        repo.get_active_by_ids.assert_awaited_once_with(["src_a", "src_b"], 10)

    @pytest.mark.asyncio
    async def test_all_active(self) -> None:
        repo = AsyncMock()
        repo.list_active = AsyncMock(return_value=[])
        scheduler = Scheduler(repo, MonitorConfig())

        await scheduler.select_sources(all_active=True, limit=25)

        repo.list_active.assert_awaited_once_with(10)

    @pytest.mark.asyncio
    async def test_default_selects_stale(self) -> None:
        repo = AsyncMock()
        repo.list_stale = AsyncMock(return_value=[])
        scheduler = Scheduler(repo, MonitorConfig(stale_after_hours=12))

        await scheduler.select_sources()

        repo.list_stale.assert_awaited_once_with(timedelta(hours=12), 5)
