"""Capability registry: the only way the pipeline touches the outside world.

Each capability is an async handler that takes one request model and returns
a value.  :meth:`CapabilityRegistry.invoke` wraps every call so that no
exception crosses the registry boundary: classified adapter failures become
their :class:`FailureKind`, anything else becomes ``internal``.  The registry
performs no retries; retry policy belongs to the caller.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from campaign_automation.capabilities.models import (
    CapabilityError,
    CapabilityName,
    CapabilityResult,
    DispatchOutreachRequest,
    DraftContractRequest,
    FailureKind,
    GetCampaignDetailRequest,
    GetCreatorAnalyticsRequest,
    UpdateCampaignRequest,
)
from campaign_automation.domain.models import ContractTerms, CreatorSearchCriteria
from campaign_automation.domain.types import ContactMethod

logger = structlog.get_logger()

Handler = Callable[[Any], Awaitable[Any]]


class CapabilityRegistry:
    """Named, typed operations invoked through a uniform interface."""

    def __init__(self, handlers: dict[CapabilityName, Handler] | None = None) -> None:
        self._handlers: dict[CapabilityName, Handler] = dict(handlers or {})

    def register(self, name: CapabilityName, handler: Handler) -> None:
        """Register (or replace) the handler for *name*."""
        self._handlers[name] = handler

    @property
    def names(self) -> list[str]:
        """Return the registered capability names, sorted."""
        return sorted(name.value for name in self._handlers)

    def missing(self) -> list[str]:
        """Return the capability names that have no handler, sorted."""
        return sorted(name.value for name in CapabilityName if name not in self._handlers)

    async def invoke(self, name: CapabilityName, request: Any) -> CapabilityResult[Any]:
        """Invoke a capability and return its result or a typed failure.

        Args:
            name: The capability to invoke.
            request: The capability's request model.

        Returns:
            A :class:`CapabilityResult`; never raises for handler faults.
        """
        handler = self._handlers.get(name)
        if handler is None:
            return CapabilityResult.fail(
                FailureKind.CONFIGURATION, f"No handler registered for '{name}'"
            )

        try:
            value = await handler(request)
        except CapabilityError as exc:
            logger.warning(
                "capability_failed",
                capability=name.value,
                kind=exc.kind.value,
                error=exc.message,
            )
            return CapabilityResult.fail(exc.kind, exc.message)
        except Exception as exc:
            logger.exception("capability_crashed", capability=name.value)
            return CapabilityResult.fail(
                FailureKind.INTERNAL, f"{type(exc).__name__}: {exc}"
            )

        return CapabilityResult.success(value)

    # ------------------------------------------------------------------
    # Typed helpers
    # ------------------------------------------------------------------

    async def search_creators(self, criteria: CreatorSearchCriteria) -> CapabilityResult[Any]:
        """SearchCreators(criteria) -> list[Creator]."""
        return await self.invoke(CapabilityName.SEARCH_CREATORS, criteria)

    async def get_campaign_detail(self, campaign_id: str) -> CapabilityResult[Any]:
        """GetCampaignDetail(campaign_id) -> CampaignDetail."""
        return await self.invoke(
            CapabilityName.GET_CAMPAIGN_DETAIL, GetCampaignDetailRequest(campaign_id=campaign_id)
        )

    async def update_campaign(
        self, campaign_id: str, patch: dict[str, Any]
    ) -> CapabilityResult[Any]:
        """UpdateCampaign(campaign_id, patch) -> True."""
        return await self.invoke(
            CapabilityName.UPDATE_CAMPAIGN,
            UpdateCampaignRequest(campaign_id=campaign_id, patch=patch),
        )

    async def draft_contract(
        self, campaign_id: str, creator_id: str, terms: ContractTerms
    ) -> CapabilityResult[Any]:
        """DraftContract(campaign_id, creator_id, terms) -> ContractRef."""
        return await self.invoke(
            CapabilityName.DRAFT_CONTRACT,
            DraftContractRequest(campaign_id=campaign_id, creator_id=creator_id, terms=terms),
        )

    async def dispatch_outreach(
        self,
        creator_id: str,
        message: str,
        campaign_id: str,
        channel: ContactMethod,
        contract_id: str | None = None,
    ) -> CapabilityResult[Any]:
        """DispatchOutreach(creator_id, message, campaign_id) -> OutreachReceipt."""
        return await self.invoke(
            CapabilityName.DISPATCH_OUTREACH,
            DispatchOutreachRequest(
                campaign_id=campaign_id,
                creator_id=creator_id,
                channel=channel,
                message=message,
                contract_id=contract_id,
            ),
        )

    async def get_creator_analytics(self, creator_id: str) -> CapabilityResult[Any]:
        """GetCreatorAnalytics(creator_id) -> AnalyticsSnapshot."""
        return await self.invoke(
            CapabilityName.GET_CREATOR_ANALYTICS,
            GetCreatorAnalyticsRequest(creator_id=creator_id),
        )
