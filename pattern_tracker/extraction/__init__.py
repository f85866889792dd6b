"""AI-assisted pattern extraction and its queue."""

from pattern_tracker.extraction.config import ExtractionConfig
from pattern_tracker.extraction.extractor import ExtractionOutput, PatternExtractor, SourceContext
from pattern_tracker.extraction.llm_client import LLMClient
from pattern_tracker.extraction.parsing import Malformed, ValidJson, classify_response
from pattern_tracker.extraction.queue import ExtractionQueue, QueueEntry
from pattern_tracker.extraction.service import ExtractionResult, ExtractionService
from pattern_tracker.extraction.worker import ExtractionWorker, WorkerRunResult

__all__ = [
    "ExtractionConfig",
    "ExtractionOutput",
    "ExtractionQueue",
    "ExtractionResult",
    "ExtractionService",
    "ExtractionWorker",
    "LLMClient",
    "Malformed",
    "PatternExtractor",
    "QueueEntry",
    "SourceContext",
    "ValidJson",
    "WorkerRunResult",
    "classify_response",
]
