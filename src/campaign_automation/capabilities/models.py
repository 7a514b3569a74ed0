"""Request, result and failure models for the capability registry."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from campaign_automation.domain.models import ContractTerms
from campaign_automation.domain.types import ContactMethod

T = TypeVar("T")


class CapabilityName(StrEnum):
    """The fixed set of operations the controller may invoke."""

    SEARCH_CREATORS = "search_creators"
    GET_CAMPAIGN_DETAIL = "get_campaign_detail"
    UPDATE_CAMPAIGN = "update_campaign"
    DRAFT_CONTRACT = "draft_contract"
    DISPATCH_OUTREACH = "dispatch_outreach"
    GET_CREATOR_ANALYTICS = "get_creator_analytics"


class FailureKind(StrEnum):
    """Classification of a capability failure."""

    NOT_FOUND = "not_found"
    INVALID_REQUEST = "invalid_request"
    UNAVAILABLE = "unavailable"
    REJECTED = "rejected"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


class CapabilityFailure(BaseModel):
    """Typed failure returned in place of an exception."""

    model_config = ConfigDict(frozen=True)

    kind: FailureKind
    message: str


class CapabilityError(Exception):
    """Raised by an adapter to report a classified failure.

    The registry converts it into a :class:`CapabilityFailure`; it never
    escapes ``CapabilityRegistry.invoke``.
    """

    def __init__(self, kind: FailureKind, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(message)


class CapabilityResult(BaseModel, Generic[T]):
    """Either a success value or a typed failure."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    value: T | None = None
    failure: CapabilityFailure | None = None

    @property
    def ok(self) -> bool:
        """Return True if the invocation succeeded."""
        return self.failure is None

    @property
    def error_message(self) -> str:
        """Return ``"kind: message"`` for a failure, or an empty string."""
        if self.failure is None:
            return ""
        return f"{self.failure.kind.value}: {self.failure.message}"

    @classmethod
    def success(cls, value: Any) -> CapabilityResult[Any]:
        """Wrap a success value."""
        return cls(value=value)

    @classmethod
    def fail(cls, kind: FailureKind, message: str) -> CapabilityResult[Any]:
        """Wrap a typed failure."""
        return cls(failure=CapabilityFailure(kind=kind, message=message))


class GetCampaignDetailRequest(BaseModel):
    """Request for :attr:`CapabilityName.GET_CAMPAIGN_DETAIL`."""

    model_config = ConfigDict(frozen=True)

    campaign_id: str


class UpdateCampaignRequest(BaseModel):
    """Request for :attr:`CapabilityName.UPDATE_CAMPAIGN`."""

    model_config = ConfigDict(frozen=True)

    campaign_id: str
    patch: dict[str, Any]


class DraftContractRequest(BaseModel):
    """Request for :attr:`CapabilityName.DRAFT_CONTRACT`."""

    model_config = ConfigDict(frozen=True)

    campaign_id: str
    creator_id: str
    terms: ContractTerms = Field(default_factory=ContractTerms)


class DispatchOutreachRequest(BaseModel):
    """Request for :attr:`CapabilityName.DISPATCH_OUTREACH`."""

    model_config = ConfigDict(frozen=True)

    campaign_id: str
    creator_id: str
    channel: ContactMethod
    message: str
    contract_id: str | None = None


class OutreachReceipt(BaseModel):
    """Acceptance of one outreach dispatch by the messaging service."""

    model_config = ConfigDict(frozen=True)

    creator_id: str
    channel: ContactMethod
    record_id: int
    external_ref: str | None = None


class GetCreatorAnalyticsRequest(BaseModel):
    """Request for :attr:`CapabilityName.GET_CREATOR_ANALYTICS`."""

    model_config = ConfigDict(frozen=True)

    creator_id: str
