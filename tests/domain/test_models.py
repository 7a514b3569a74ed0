"""Tests for Pydantic domain models: Creator, ContractTerms, search criteria, CampaignState."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from campaign_automation.domain.models import (
    CampaignState,
    ContractTerms,
    Creator,
    CreatorMetrics,
    CreatorSearchCriteria,
)
from campaign_automation.domain.types import ContactMethod, PipelineState


class TestCreator:
    """Tests for the Creator projection."""

    def test_defaults(self):
        creator = Creator(id="c1", name="Alice")
        assert creator.contact_preference == ContactMethod.NONE
        assert creator.metrics.followers == 0
        assert creator.email is None

    def test_rejects_blank_name(self):
        with pytest.raises(ValidationError, match="must not be empty"):
            Creator(id="c1", name="   ")

    def test_rejects_negative_followers(self):
        with pytest.raises(ValidationError, match="must not be negative"):
            CreatorMetrics(followers=-5)

    def test_frozen_immutability(self):
        creator = Creator(id="c1", name="Alice")
        with pytest.raises(ValidationError):
            creator.name = "Bob"  # type: ignore[misc]

    def test_model_copy_sets_preference(self):
        creator = Creator(id="c1", name="Alice")
        updated = creator.model_copy(update={"contact_preference": ContactMethod.PHONE})
        assert updated.contact_preference == ContactMethod.PHONE
        assert creator.contact_preference == ContactMethod.NONE


class TestContractTerms:
    """Tests for ContractTerms."""

    def test_defaults(self):
        terms = ContractTerms()
        assert terms.deliverables == "Content creation and posting"
        assert terms.timeline == "30 days"
        assert terms.compensation is None

    def test_string_compensation_coerced(self):
        assert ContractTerms(compensation="2160.00").compensation == Decimal("2160.00")

    def test_rejects_float_compensation(self):
        with pytest.raises(ValidationError, match="Use Decimal or string, not float"):
            ContractTerms(compensation=2160.0)


class TestCreatorSearchCriteria:
    """Tests for search criteria built from campaign settings."""

    def test_from_campaign_settings(self):
        criteria = CreatorSearchCriteria.from_campaign_settings(
            {"platform": "tiktok", "min_followers": "5000", "max_engagement_rate": 8}
        )
        assert criteria.platform == "tiktok"
        assert criteria.min_followers == 5000
        assert criteria.max_engagement_rate == 8.0
        assert criteria.creator_ids == []

    def test_empty_settings_use_defaults(self):
        criteria = CreatorSearchCriteria.from_campaign_settings({})
        assert criteria.platform == "instagram"
        assert criteria.min_followers == 0
        assert criteria.max_engagement_rate == 100.0


class TestCampaignState:
    """Tests for the live state projection."""

    def test_initial_state(self):
        state = CampaignState()
        assert state.status == PipelineState.INITIATED
        assert state.selected_creators == []
        assert state.sent_contracts == []

    def test_json_dump_uses_enum_values(self):
        state = CampaignState(status=PipelineState.CREATORS_LOADED)
        assert state.model_dump(mode="json")["status"] == "CREATORS_LOADED"
