"""Planning strategies, pricing and prompts for contract and outreach stages."""

from campaign_automation.planning.client import COMPOSE_MODEL, get_anthropic_client
from campaign_automation.planning.pricing import (
    DEFAULT_CPM,
    calculate_base_fee,
    engagement_premium,
    suggest_compensation,
)
from campaign_automation.planning.strategy import (
    LLMOutreachStrategy,
    OutreachStrategy,
    TemplateStrategy,
)

__all__ = [
    "COMPOSE_MODEL",
    "DEFAULT_CPM",
    "LLMOutreachStrategy",
    "OutreachStrategy",
    "TemplateStrategy",
    "calculate_base_fee",
    "engagement_premium",
    "get_anthropic_client",
    "suggest_compensation",
]
