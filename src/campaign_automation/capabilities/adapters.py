"""Adapters binding the capability registry to the directory and outreach client.

Every adapter runs under :func:`adapter_edge`, which classifies the
exceptions of the concrete integration (SQLite, httpx, validation) into a
:class:`CapabilityError` so the registry can return a typed failure.
"""

from __future__ import annotations

import functools
import sqlite3
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
from pydantic import ValidationError

from campaign_automation.capabilities.models import (
    CapabilityError,
    CapabilityName,
    DispatchOutreachRequest,
    DraftContractRequest,
    FailureKind,
    GetCampaignDetailRequest,
    GetCreatorAnalyticsRequest,
    OutreachReceipt,
    UpdateCampaignRequest,
)
from campaign_automation.capabilities.registry import CapabilityRegistry
from campaign_automation.directory.store import CreatorDirectory, RecordNotFoundError
from campaign_automation.domain.models import (
    AnalyticsSnapshot,
    CampaignDetail,
    ContractRef,
    Creator,
    CreatorSearchCriteria,
)
from campaign_automation.domain.types import ContactMethod
from campaign_automation.outreach.client import OutreachClient, OutreachConfigurationError

R = TypeVar("R")


def classify_exception(exc: Exception) -> FailureKind:
    """Map an integration exception to a failure kind."""
    if isinstance(exc, CapabilityError):
        return exc.kind
    if isinstance(exc, RecordNotFoundError):
        return FailureKind.NOT_FOUND
    if isinstance(exc, OutreachConfigurationError):
        return FailureKind.CONFIGURATION
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 429 or status >= 500:
            return FailureKind.UNAVAILABLE
        return FailureKind.REJECTED
    if isinstance(exc, (httpx.TransportError, sqlite3.OperationalError, TimeoutError)):
        return FailureKind.UNAVAILABLE
    if isinstance(exc, (ValidationError, ValueError, sqlite3.IntegrityError)):
        return FailureKind.INVALID_REQUEST
    return FailureKind.INTERNAL


def adapter_edge(
    func: Callable[[Any], Awaitable[R]],
) -> Callable[[Any], Awaitable[R]]:
    """Re-raise any exception from *func* as a classified :class:`CapabilityError`."""

    @functools.wraps(func)
    async def wrapper(request: Any) -> R:
        try:
            return await func(request)
        except CapabilityError:
            raise
        except Exception as exc:
            raise CapabilityError(classify_exception(exc), str(exc)) from exc

    return wrapper


def build_registry(directory: CreatorDirectory, outreach: OutreachClient) -> CapabilityRegistry:
    """Create a registry with every capability wired to its integration.

    Args:
        directory: Creator directory and campaign store.
        outreach: Client for the email webhook and voice API.

    Returns:
        A fully wired :class:`CapabilityRegistry`.
    """

    @adapter_edge
    async def search_creators(criteria: CreatorSearchCriteria) -> list[Creator]:
        return directory.search_creators(criteria)

    @adapter_edge
    async def get_campaign_detail(request: GetCampaignDetailRequest) -> CampaignDetail:
        return directory.get_campaign(request.campaign_id)

    @adapter_edge
    async def update_campaign(request: UpdateCampaignRequest) -> bool:
        directory.update_campaign(request.campaign_id, request.patch)
        return True

    @adapter_edge
    async def draft_contract(request: DraftContractRequest) -> ContractRef:
        return directory.insert_contract(request.campaign_id, request.creator_id, request.terms)

    @adapter_edge
    async def dispatch_outreach(request: DispatchOutreachRequest) -> OutreachReceipt:
        creator = directory.get_creator(request.creator_id)
        campaign = directory.get_campaign(request.campaign_id)

        if request.channel == ContactMethod.EMAIL:
            if not creator.email:
                raise CapabilityError(
                    FailureKind.INVALID_REQUEST, f"Creator '{creator.id}' has no email address"
                )
            ref = await outreach.send_email(
                to_email=creator.email,
                campaign={"id": campaign.id, "name": campaign.name, "brand": campaign.brand},
                creator={"id": creator.id, "name": creator.name},
                message=request.message,
                contract_id=request.contract_id,
            )
        elif request.channel == ContactMethod.PHONE:
            if not creator.phone:
                raise CapabilityError(
                    FailureKind.INVALID_REQUEST, f"Creator '{creator.id}' has no phone number"
                )
            ref = await outreach.start_call(
                to_number=creator.phone,
                context={
                    "campaign_name": campaign.name,
                    "brand": campaign.brand,
                    "creator_name": creator.name,
                    "message": request.message,
                },
            )
        else:
            raise CapabilityError(
                FailureKind.INVALID_REQUEST, f"Creator '{creator.id}' has no contact channel"
            )

        record_id = directory.record_outreach(
            campaign_id=request.campaign_id,
            creator_id=creator.id,
            channel=request.channel.value,
            message=request.message,
            contract_id=request.contract_id,
            external_ref=ref,
        )
        return OutreachReceipt(
            creator_id=creator.id,
            channel=request.channel,
            record_id=record_id,
            external_ref=ref,
        )

    @adapter_edge
    async def get_creator_analytics(request: GetCreatorAnalyticsRequest) -> AnalyticsSnapshot:
        return directory.get_analytics(request.creator_id)

    return CapabilityRegistry(
        {
            CapabilityName.SEARCH_CREATORS: search_creators,
            CapabilityName.GET_CAMPAIGN_DETAIL: get_campaign_detail,
            CapabilityName.UPDATE_CAMPAIGN: update_campaign,
            CapabilityName.DRAFT_CONTRACT: draft_contract,
            CapabilityName.DISPATCH_OUTREACH: dispatch_outreach,
            CapabilityName.GET_CREATOR_ANALYTICS: get_creator_analytics,
        }
    )
