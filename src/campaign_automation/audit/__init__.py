"""Automation log: session, step and error records, storage, reports, and CLI."""

from campaign_automation.audit.cli import build_parser
from campaign_automation.audit.logger import AutomationLogger
from campaign_automation.audit.models import (
    DEFAULT_TOTAL_STEPS,
    AutomationReport,
    AutomationSession,
    ErrorRecord,
    PerformanceMetrics,
    SessionUpdate,
    StepRecord,
)
from campaign_automation.audit.report import compute_performance_metrics, compute_report
from campaign_automation.audit.store import (
    AutomationLogStore,
    close_automation_db,
    init_automation_db,
)

__all__ = [
    "DEFAULT_TOTAL_STEPS",
    "AutomationLogStore",
    "AutomationLogger",
    "AutomationReport",
    "AutomationSession",
    "ErrorRecord",
    "PerformanceMetrics",
    "SessionUpdate",
    "StepRecord",
    "build_parser",
    "close_automation_db",
    "compute_performance_metrics",
    "compute_report",
    "init_automation_db",
]
