"""Anthropic client factory and model configuration for outreach composition."""

from anthropic import Anthropic

COMPOSE_MODEL = "claude-sonnet-4-5-20250929"


def get_anthropic_client(api_key: str | None = None) -> Anthropic:
    """Create an Anthropic client.

    When *api_key* is empty the constructor reads ANTHROPIC_API_KEY from the
    environment automatically.

    Returns:
        Configured Anthropic client instance.
    """
    return Anthropic(api_key=api_key) if api_key else Anthropic()
