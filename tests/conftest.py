"""Shared pytest fixtures for the campaign automation test suite."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from campaign_automation.audit.logger import AutomationLogger
from campaign_automation.audit.store import (
    AutomationLogStore,
    close_automation_db,
    init_automation_db,
)
from campaign_automation.capabilities.models import (
    CapabilityError,
    CapabilityName,
    FailureKind,
    OutreachReceipt,
)
from campaign_automation.capabilities.registry import CapabilityRegistry
from campaign_automation.config import Settings
from campaign_automation.directory.schema import init_directory_tables
from campaign_automation.directory.store import CreatorDirectory
from campaign_automation.domain.models import (
    AnalyticsSnapshot,
    CampaignDetail,
    ContractRef,
    Creator,
    CreatorContactPreference,
    CreatorMetrics,
)
from campaign_automation.domain.types import ContactMethod


def _sample_creators() -> list[Creator]:
    return [
        Creator(
            id="c1",
            name="Alice Moreau",
            email="alice@example.com",
            phone="+15550000001",
            metrics=CreatorMetrics(followers=100_000, engagement_rate=4.2, relevance_score=0.9),
        ),
        Creator(
            id="c2",
            name="Bruno Diaz",
            email="bruno@example.com",
            metrics=CreatorMetrics(followers=50_000, engagement_rate=6.1, relevance_score=0.7),
        ),
        Creator(
            id="c3",
            name="Chen Wei",
            email="chen@example.com",
            metrics=CreatorMetrics(followers=20_000, engagement_rate=2.0, relevance_score=0.5),
        ),
    ]


def _sample_campaign() -> CampaignDetail:
    return CampaignDetail(
        id="cmp_1",
        name="Spring Launch",
        brand="Acme",
        status="active",
        description="Launch of the spring collection",
        deliverables="One Instagram Reel",
        timeline="2 weeks",
        user_id="user_1",
        creator_ids=["c1", "c2", "c3"],
    )


class FakeCapabilities:
    """In-memory capability handlers with scriptable failures.

    ``failures`` maps ``(capability, creator_id)`` to the failure kind that
    capability raises for that creator; ``campaign_failures`` is consumed
    one entry per ``get_campaign_detail`` call.
    """

    def __init__(self) -> None:
        self.campaign = _sample_campaign()
        self.creators = {c.id: c for c in _sample_creators()}
        self.failures: dict[tuple[CapabilityName, str], FailureKind] = {}
        self.campaign_failures: list[FailureKind] = []
        self.search_failure: FailureKind | None = None
        self.calls: list[tuple[CapabilityName, Any]] = []
        self.contracts: list[ContractRef] = []
        self.dispatched: list[Any] = []
        self.campaign_patches: list[dict[str, Any]] = []

    def registry(self) -> CapabilityRegistry:
        return CapabilityRegistry(
            {
                CapabilityName.SEARCH_CREATORS: self.search_creators,
                CapabilityName.GET_CAMPAIGN_DETAIL: self.get_campaign_detail,
                CapabilityName.UPDATE_CAMPAIGN: self.update_campaign,
                CapabilityName.DRAFT_CONTRACT: self.draft_contract,
                CapabilityName.DISPATCH_OUTREACH: self.dispatch_outreach,
                CapabilityName.GET_CREATOR_ANALYTICS: self.get_creator_analytics,
            }
        )

    def fail(self, name: CapabilityName, creator_id: str, kind: FailureKind) -> None:
        self.failures[(name, creator_id)] = kind

    def _check(self, name: CapabilityName, creator_id: str) -> None:
        kind = self.failures.get((name, creator_id))
        if kind is not None:
            raise CapabilityError(kind, f"simulated {kind.value} for {creator_id}")

    async def search_creators(self, criteria: Any) -> list[Creator]:
        self.calls.append((CapabilityName.SEARCH_CREATORS, criteria))
        if self.search_failure is not None:
            raise CapabilityError(self.search_failure, "creator search backend down")
        ids = criteria.creator_ids or list(self.creators)
        return [self.creators[i] for i in ids]

    async def get_campaign_detail(self, request: Any) -> CampaignDetail:
        self.calls.append((CapabilityName.GET_CAMPAIGN_DETAIL, request))
        if self.campaign_failures:
            kind = self.campaign_failures.pop(0)
            raise CapabilityError(kind, "campaign store unavailable")
        return self.campaign

    async def update_campaign(self, request: Any) -> bool:
        self.calls.append((CapabilityName.UPDATE_CAMPAIGN, request))
        self.campaign_patches.append(dict(request.patch))
        return True

    async def draft_contract(self, request: Any) -> ContractRef:
        self.calls.append((CapabilityName.DRAFT_CONTRACT, request))
        self._check(CapabilityName.DRAFT_CONTRACT, request.creator_id)
        contract = ContractRef(
            id=f"ct_{request.creator_id}",
            creator_id=request.creator_id,
            campaign_id=request.campaign_id,
            terms=request.terms,
        )
        self.contracts.append(contract)
        return contract

    async def dispatch_outreach(self, request: Any) -> OutreachReceipt:
        self.calls.append((CapabilityName.DISPATCH_OUTREACH, request))
        self._check(CapabilityName.DISPATCH_OUTREACH, request.creator_id)
        self.dispatched.append(request)
        return OutreachReceipt(
            creator_id=request.creator_id,
            channel=request.channel,
            record_id=len(self.dispatched),
            external_ref=f"msg_{request.creator_id}",
        )

    async def get_creator_analytics(self, request: Any) -> AnalyticsSnapshot:
        self.calls.append((CapabilityName.GET_CREATOR_ANALYTICS, request))
        self._check(CapabilityName.GET_CREATOR_ANALYTICS, request.creator_id)
        creator = self.creators[request.creator_id]
        return AnalyticsSnapshot(
            creator_id=creator.id,
            followers=creator.metrics.followers,
            engagement_rate=creator.metrics.engagement_rate,
        )

    def called(self, name: CapabilityName) -> list[Any]:
        return [request for called_name, request in self.calls if called_name == name]


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def db_conn(tmp_path: Path) -> Iterator[sqlite3.Connection]:
    """A database with both the automation log and directory tables."""
    conn = init_automation_db(tmp_path / "automation.db")
    init_directory_tables(conn)
    yield conn
    close_automation_db(conn)


@pytest.fixture
def log_store(db_conn: sqlite3.Connection) -> AutomationLogStore:
    return AutomationLogStore(db_conn)


@pytest.fixture
def automation_logger(log_store: AutomationLogStore) -> AutomationLogger:
    return AutomationLogger(log_store)


@pytest.fixture
def sample_creators() -> list[Creator]:
    return _sample_creators()


@pytest.fixture
def sample_campaign() -> CampaignDetail:
    return _sample_campaign()


@pytest.fixture
def directory(
    db_conn: sqlite3.Connection,
    sample_campaign: CampaignDetail,
    sample_creators: list[Creator],
) -> CreatorDirectory:
    """A directory seeded with campaign ``cmp_1`` and creators c1..c3."""
    store = CreatorDirectory(db_conn)
    for creator in sample_creators:
        store.save_creator(creator, audience_fit_score=0.8)
    store.save_campaign(sample_campaign)
    return store


@pytest.fixture
def fake_capabilities() -> FakeCapabilities:
    return FakeCapabilities()


@pytest.fixture
def email_preferences() -> list[CreatorContactPreference]:
    """c1 and c2 by email; c3 has no preference."""
    return [
        CreatorContactPreference(creator_id="c1", contact_method=ContactMethod.EMAIL),
        CreatorContactPreference(creator_id="c2", contact_method=ContactMethod.EMAIL),
    ]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with outreach configured and no pipeline delays."""
    return Settings(  # type: ignore[call-arg]
        _env_file=None,
        database_path=tmp_path / "automation.db",
        outreach_webhook_url="https://hooks.example.com/outreach",
        dispatch_delay_seconds=0,
        dispatch_max_per_window=0,
        campaign_fetch_attempts=3,
        campaign_fetch_wait_seconds=0,
    )
