"""Pluggable planning strategies used inside the contract and outreach stages.

A strategy picks parameters (contract terms, message text) for one creator.
It never decides which stage runs next and never touches the audit log; the
pipeline controller owns both.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Protocol

import structlog
from anthropic import Anthropic

from campaign_automation.domain.models import (
    AnalyticsSnapshot,
    CampaignDetail,
    ContractRef,
    ContractTerms,
    Creator,
)
from campaign_automation.domain.types import ContactMethod
from campaign_automation.planning.client import COMPOSE_MODEL
from campaign_automation.planning.prompts import (
    OUTREACH_SYSTEM_PROMPT,
    OUTREACH_USER_PROMPT,
    TEMPLATE_MESSAGE,
)
from campaign_automation.planning.pricing import DEFAULT_CPM, suggest_compensation

logger = structlog.get_logger()

DEFAULT_DELIVERABLES = "Content creation and posting"
DEFAULT_TIMELINE = "30 days"
UNPRICED_COMPENSATION = "To be negotiated"


class OutreachStrategy(Protocol):
    """Chooses contract terms and composes outreach for one creator."""

    def contract_terms(
        self,
        campaign: CampaignDetail,
        creator: Creator,
        analytics: AnalyticsSnapshot | None,
    ) -> ContractTerms: ...

    async def compose_message(
        self,
        campaign: CampaignDetail,
        creator: Creator,
        contract: ContractRef,
        channel: ContactMethod,
    ) -> str: ...


def _format_compensation(amount: Decimal | None) -> str:
    return f"${amount:,.2f}" if amount is not None else UNPRICED_COMPENSATION


class TemplateStrategy:
    """Deterministic strategy: CPM-priced terms and a fixed message template.

    Args:
        cpm: Cost per thousand followers used to price contracts.
    """

    def __init__(self, cpm: Decimal = DEFAULT_CPM) -> None:
        self._cpm = cpm

    def contract_terms(
        self,
        campaign: CampaignDetail,
        creator: Creator,
        analytics: AnalyticsSnapshot | None,
    ) -> ContractTerms:
        """Price the contract from analytics, or the projection's metrics without them."""
        if analytics is not None:
            followers, engagement = analytics.followers, analytics.engagement_rate
        else:
            followers, engagement = creator.metrics.followers, creator.metrics.engagement_rate

        compensation = suggest_compensation(followers, engagement, self._cpm) if followers else None
        return ContractTerms(
            deliverables=campaign.deliverables or DEFAULT_DELIVERABLES,
            timeline=campaign.timeline or DEFAULT_TIMELINE,
            compensation=compensation,
            notes=None if compensation is not None else UNPRICED_COMPENSATION,
        )

    async def compose_message(
        self,
        campaign: CampaignDetail,
        creator: Creator,
        contract: ContractRef,
        channel: ContactMethod,
    ) -> str:
        """Fill the fixed outreach template."""
        return TEMPLATE_MESSAGE.format(
            first_name=creator.name.split()[0],
            brand=campaign.brand,
            campaign_name=campaign.name,
            deliverables=contract.terms.deliverables.lower(),
            timeline=contract.terms.timeline,
            compensation=_format_compensation(contract.terms.compensation),
        )


class LLMOutreachStrategy(TemplateStrategy):
    """Template pricing with messages composed by the Claude API.

    When the API call fails the template message is used instead, so a
    composition problem never fails the outreach item.

    Args:
        client: Configured Anthropic client instance.
        cpm: Cost per thousand followers used to price contracts.
        model: Model ID used for composition.
    """

    def __init__(
        self,
        client: Anthropic,
        cpm: Decimal = DEFAULT_CPM,
        model: str = COMPOSE_MODEL,
    ) -> None:
        super().__init__(cpm)
        self._client = client
        self._model = model

    def _compose(
        self,
        campaign: CampaignDetail,
        creator: Creator,
        contract: ContractRef,
        channel: ContactMethod,
    ) -> str:
        user_text = OUTREACH_USER_PROMPT.format(
            channel=channel.value.lower(),
            brand=campaign.brand,
            campaign_name=campaign.name,
            description=campaign.description or "",
            creator_name=creator.name,
            followers=creator.metrics.followers,
            engagement_rate=creator.metrics.engagement_rate,
            deliverables=contract.terms.deliverables,
            timeline=contract.terms.timeline,
            compensation=_format_compensation(contract.terms.compensation),
        )
        response = self._client.messages.create(
            model=self._model,
            max_tokens=1024,
            system=[
                {
                    "type": "text",
                    "text": OUTREACH_SYSTEM_PROMPT,
                    "cache_control": {"type": "ephemeral"},
                }
            ],
            messages=[{"role": "user", "content": user_text}],
        )
        return response.content[0].text  # type: ignore[union-attr]

    async def compose_message(
        self,
        campaign: CampaignDetail,
        creator: Creator,
        contract: ContractRef,
        channel: ContactMethod,
    ) -> str:
        """Compose with the LLM off the event loop, falling back to the template."""
        try:
            return await asyncio.to_thread(self._compose, campaign, creator, contract, channel)
        except Exception:
            logger.warning(
                "llm_compose_failed_using_template",
                creator_id=creator.id,
                exc_info=True,
            )
            return await super().compose_message(campaign, creator, contract, channel)
