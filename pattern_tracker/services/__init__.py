"""Service layer."""

from pattern_tracker.services.pipeline_service import ExportResult, PatternPage, PipelineService

__all__ = ["ExportResult", "PatternPage", "PipelineService"]
