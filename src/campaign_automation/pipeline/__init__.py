"""Pipeline controller, bulk dispatch engine, preference resolver, and service."""

from campaign_automation.pipeline.controller import PipelineController
from campaign_automation.pipeline.dispatch import (
    BulkDispatcher,
    DispatchReport,
    ItemOutcome,
    ItemStatus,
)
from campaign_automation.pipeline.observer import SnapshotChannel, StateObserver
from campaign_automation.pipeline.preferences import apply_preferences
from campaign_automation.pipeline.service import AutomationService

__all__ = [
    "AutomationService",
    "BulkDispatcher",
    "DispatchReport",
    "ItemOutcome",
    "ItemStatus",
    "PipelineController",
    "SnapshotChannel",
    "StateObserver",
    "apply_preferences",
]
