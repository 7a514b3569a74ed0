"""Outbound creator outreach over the email webhook and the voice call API."""

from campaign_automation.outreach.client import (
    DEFAULT_VOICE_API_URL,
    OutreachClient,
    OutreachConfigurationError,
)

__all__ = [
    "DEFAULT_VOICE_API_URL",
    "OutreachClient",
    "OutreachConfigurationError",
]
