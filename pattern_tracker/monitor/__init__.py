"""Source monitoring: scheduling, change detection and monitoring runs."""

from pattern_tracker.monitor.change_detector import ChangeDetection, ChangeDetector
from pattern_tracker.monitor.config import MonitorConfig
from pattern_tracker.monitor.lease import SourceLease
from pattern_tracker.monitor.scheduler import Scheduler
from pattern_tracker.monitor.service import MonitorRunResult, MonitorService, SourceCheckResult

__all__ = [
    "ChangeDetection",
    "ChangeDetector",
    "MonitorConfig",
    "MonitorRunResult",
    "MonitorService",
    "Scheduler",
    "SourceCheckResult",
    "SourceLease",
]
