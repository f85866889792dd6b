"""Exception taxonomy and run-outcome classification shared by the pipeline.

Entry points raise ``ValidationError`` for bad input and ``NotFoundError`` for
missing records, so callers can map them to distinct responses. Transient
failures (fetch, AI transport) have their own types and are reported per item
instead of aborting a batch.
"""

from enum import Enum


class PipelineError(Exception):
    """Base class for pipeline errors."""


class ValidationError(PipelineError, ValueError):
    """Input rejected synchronously before any write."""


class NotFoundError(PipelineError, LookupError):
    """A referenced record does not exist."""

    def __init__(self, entity: str, identifier: str) -> None:
        super().__init__(f"{entity} not found: {identifier}")
        self.entity = entity
        self.identifier = identifier


class FetchError(PipelineError):
    """Content could not be fetched (network error, timeout, bad status)."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ExtractionError(PipelineError):
    """The AI collaborator failed (transport error, timeout, open circuit)."""


class RunStatus(str, Enum):
    """Overall status of a batch entry point."""

    NOTHING_TO_DO = "nothing_to_do"
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    FAILURE = "failure"


def classify_outcome(total: int, failed: int) -> RunStatus:
    """Classify a batch from its item count and failure count."""
    if total <= 0:
        return RunStatus.NOTHING_TO_DO
    if failed <= 0:
        return RunStatus.SUCCESS
    if failed >= total:
        return RunStatus.FAILURE
    return RunStatus.PARTIAL_FAILURE
