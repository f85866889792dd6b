"""Tests for the pattern-tracker CLI."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from click.testing import CliRunner

from pattern_tracker import cli
from pattern_tracker.cli import main
from pattern_tracker.errors import NotFoundError
from pattern_tracker.patterns.schemas import PatternFilter


class FakePipeline:
    """Async-context stand-in for PipelineService."""

    def __init__(self) -> None:
        self.run_monitoring = AsyncMock()
        self.export = AsyncMock()
        self.review = AsyncMock()
        self.review_history = AsyncMock(return_value=[])
        self.list_patterns = AsyncMock()
        self.drain_queue = AsyncMock()
        self.track_usage = AsyncMock()
        self.usage_stats = AsyncMock(return_value={"pattern_id": "pat_1", "total": 0})

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc) -> None:
        return None


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def pipeline(monkeypatch: pytest.MonkeyPatch) -> FakePipeline:
    fake = FakePipeline()
    monkeypatch.setattr(cli, "_build_pipeline", lambda use_lease=False: fake)
    return fake


def test_help_lists_commands(runner: CliRunner) -> None:
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    for command in ("monitor", "extract", "drain-queue", "review", "export", "usage"):
        assert command in result.output


class TestMonitor:
    def test_prints_run_and_exits_zero(self, runner, pipeline) -> None:
        run = MagicMock()
        run.to_dict.return_value = {"status": "success", "stats": {"total": 1}}
        run.status.value = "success"
        pipeline.run_monitoring.return_value = run

        result = runner.invoke(main, ["monitor", "--frequency", "daily", "--no-lease"])

        assert result.exit_code == 0
        assert '"status": "success"' in result.output
        pipeline.run_monitoring.assert_awaited_once_with(
            frequency="DAILY", source_ids=None, all_active=False, limit=None
        )

    def test_failed_run_exits_nonzero(self, runner, pipeline) -> None:
        run = MagicMock()
        run.to_dict.return_value = {"status": "failure"}
        run.status.value = "failure"
        pipeline.run_monitoring.return_value = run

        result = runner.invoke(main, ["monitor", "--source-id", "src_a", "--no-lease"])

        assert result.exit_code == 1
        assert pipeline.run_monitoring.call_args.kwargs["source_ids"] == ["src_a"]


class TestExport:
    def test_status_any_exports_everything(self, runner, pipeline) -> None:
        pipeline.export.return_value = MagicMock(content="id,name\r\n", count=0)

        result = runner.invoke(main, ["export", "--format", "csv", "--status", "any", "--no-track"])

        assert result.exit_code == 0
        assert result.stdout_bytes == b"id,name\r\n"
        flt = pipeline.export.call_args[0][0]
        assert isinstance(flt, PatternFilter)
        assert flt.status is None
        assert pipeline.export.call_args.kwargs["track_usage"] is False

    def test_output_file_keeps_crlf(self, runner, pipeline, tmp_path) -> None:
        pipeline.export.return_value = MagicMock(content="id,name\r\npat_1,A\r\n", count=1)
        target = tmp_path / "patterns.csv"

        result = runner.invoke(main, ["export", "--format", "csv", "-o", str(target)])

        assert result.exit_code == 0
        assert "Exported 1 patterns" in result.output
        assert target.read_bytes() == b"id,name\r\npat_1,A\r\n"

    def test_default_status_is_approved(self, runner, pipeline) -> None:
        pipeline.export.return_value = MagicMock(content="{}", count=0)

        runner.invoke(main, ["export"])

        assert pipeline.export.call_args[0][0].status == "APPROVED"

    def test_invalid_category_is_clean_error(self, runner, pipeline) -> None:
        result = runner.invoke(main, ["export", "--category", "nonsense"])

        assert result.exit_code == 1
        assert "Invalid category" in result.output
        pipeline.export.assert_not_called()


class TestReview:
    def test_not_found_is_clean_error(self, runner, pipeline) -> None:
        pipeline.review.side_effect = NotFoundError("Pattern", "pat_x")

        result = runner.invoke(main, ["review", "pat_x", "approve", "--reviewer", "alice"])

        assert result.exit_code == 1
        assert "Pattern not found: pat_x" in result.output

    def test_action_uppercased(self, runner, pipeline) -> None:
        pipeline.review.return_value = MagicMock(to_dict=lambda: {"pattern": {}, "review": {}})

        result = runner.invoke(
            main, ["review", "pat_1", "request_info", "--reviewer", "alice", "--feedback", "why?"]
        )

        assert result.exit_code == 0
        pipeline.review.assert_awaited_once_with(
            "pat_1", "REQUEST_INFO", "alice", feedback="why?"
        )


class TestUsage:
    def test_track_then_stats(self, runner, pipeline) -> None:
        result = runner.invoke(main, ["usage", "pat_1", "--track", "copied", "--user", "u1"])

        assert result.exit_code == 0
        pipeline.track_usage.assert_awaited_once_with("pat_1", "copied", user_id="u1")
        assert '"pattern_id": "pat_1"' in result.output
