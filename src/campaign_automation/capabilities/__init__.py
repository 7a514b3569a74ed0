"""Capability registry, its request/result models, and the concrete adapters."""

from campaign_automation.capabilities.adapters import build_registry, classify_exception
from campaign_automation.capabilities.models import (
    CapabilityError,
    CapabilityFailure,
    CapabilityName,
    CapabilityResult,
    DispatchOutreachRequest,
    DraftContractRequest,
    FailureKind,
    GetCampaignDetailRequest,
    GetCreatorAnalyticsRequest,
    OutreachReceipt,
    UpdateCampaignRequest,
)
from campaign_automation.capabilities.registry import CapabilityRegistry

__all__ = [
    "CapabilityError",
    "CapabilityFailure",
    "CapabilityName",
    "CapabilityRegistry",
    "CapabilityResult",
    "DispatchOutreachRequest",
    "DraftContractRequest",
    "FailureKind",
    "GetCampaignDetailRequest",
    "GetCreatorAnalyticsRequest",
    "OutreachReceipt",
    "UpdateCampaignRequest",
    "build_registry",
    "classify_exception",
]
