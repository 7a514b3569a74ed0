"""Pydantic v2 models for the campaign projection the orchestrator works on."""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from campaign_automation.domain.types import (
    CommunicationStatus,
    CommunicationType,
    ContactMethod,
    PipelineState,
)


class CreatorMetrics(BaseModel):
    """Audience metrics carried on the creator projection."""

    model_config = ConfigDict(frozen=True)

    followers: int = 0
    engagement_rate: float = 0.0
    relevance_score: float = 0.0

    @field_validator("followers")
    @classmethod
    def followers_must_not_be_negative(cls, v: int) -> int:
        """Ensure followers is zero or positive."""
        if v < 0:
            raise ValueError("followers must not be negative")
        return v


class Creator(BaseModel):
    """A creator as seen by the orchestrator (not the full directory record)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str | None = None
    phone: str | None = None
    metrics: CreatorMetrics = Field(default_factory=CreatorMetrics)
    contact_preference: ContactMethod = ContactMethod.NONE

    @field_validator("id", "name")
    @classmethod
    def must_not_be_empty(cls, v: str) -> str:
        """Ensure identifying fields are not empty or whitespace-only."""
        if not v.strip():
            raise ValueError("field must not be empty")
        return v


class CreatorContactPreference(BaseModel):
    """Operator-chosen contact channel for one creator."""

    model_config = ConfigDict(frozen=True)

    creator_id: str
    contact_method: ContactMethod


class ContractTerms(BaseModel):
    """Terms written into a drafted contract.

    Uses Decimal for compensation -- float inputs are rejected.
    """

    model_config = ConfigDict(frozen=True)

    deliverables: str = "Content creation and posting"
    timeline: str = "30 days"
    compensation: Decimal | None = None
    notes: str | None = None

    @field_validator("compensation", mode="before")
    @classmethod
    def reject_float_inputs(cls, v: object) -> object:
        """Reject float inputs for compensation to prevent precision errors."""
        if isinstance(v, float):
            raise ValueError("Use Decimal or string, not float, for compensation")
        return v


class ContractRef(BaseModel):
    """Reference to a drafted contract artifact."""

    model_config = ConfigDict(frozen=True)

    id: str
    creator_id: str
    campaign_id: str
    status: str = "DRAFT"
    terms: ContractTerms = Field(default_factory=ContractTerms)


class CommunicationRef(BaseModel):
    """A communication entry shown on the live campaign state."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: CommunicationType
    status: CommunicationStatus
    content: str
    timestamp: str = Field(description="ISO 8601 timestamp")
    creator_id: str | None = None


class CampaignDetail(BaseModel):
    """Campaign record as returned by the campaign store."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    brand: str
    status: str
    description: str | None = None
    deliverables: str | None = None
    timeline: str | None = None
    budget: Decimal | None = None
    user_id: str | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    creator_ids: list[str] = Field(default_factory=list)


class AnalyticsSnapshot(BaseModel):
    """Point-in-time performance metrics for a creator."""

    model_config = ConfigDict(frozen=True)

    creator_id: str
    followers: int = 0
    engagement_rate: float = 0.0
    audience_fit_score: float = 0.0
    platform: str | None = None


class CreatorSearchCriteria(BaseModel):
    """Filters for a creator search.

    When ``creator_ids`` is non-empty the search returns exactly those
    creators and the remaining filters are ignored.
    """

    model_config = ConfigDict(frozen=True)

    creator_ids: list[str] = Field(default_factory=list)
    platform: str | None = None
    min_followers: int = 0
    max_engagement_rate: float = 100.0
    limit: int = 10

    @classmethod
    def from_campaign_settings(cls, settings: dict[str, Any]) -> "CreatorSearchCriteria":
        """Build criteria from a campaign's ``settings`` block."""
        return cls(
            platform=settings.get("platform") or "instagram",
            min_followers=int(settings.get("min_followers") or 0),
            max_engagement_rate=float(settings.get("max_engagement_rate") or 100),
        )


class CampaignState(BaseModel):
    """Live in-memory projection of a campaign run, pushed to observers."""

    status: PipelineState = PipelineState.INITIATED
    selected_creators: list[Creator] = Field(default_factory=list)
    sent_contracts: list[ContractRef] = Field(default_factory=list)
    communications: list[CommunicationRef] = Field(default_factory=list)
    creator_preferences: list[CreatorContactPreference] = Field(default_factory=list)
