"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, a ``validate_credentials()``
startup gate, and ``validate_run_config()``, the per-run check performed
before an automation session is created.

IMPORTANT: This module only imports ``campaign_automation.domain.errors``
from the package, to prevent circular imports.
"""

from __future__ import annotations

import sys
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from campaign_automation.domain.errors import ConfigurationError

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields prevent accidental leaks in logs or error output.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    api_port: int = 8000

    # -- Storage ---------------------------------------------------------------
    database_path: Path = Path("data/automation.db")

    # -- Email outreach webhook ------------------------------------------------
    outreach_webhook_url: str = ""
    outreach_webhook_token: SecretStr = SecretStr("")

    # -- Voice outreach --------------------------------------------------------
    voice_api_url: str = "https://api.elevenlabs.io/v1/convai/twilio/outbound-call"
    voice_api_key: SecretStr = SecretStr("")
    voice_agent_id: str = ""
    voice_phone_number_id: str = ""

    # -- LLM / Anthropic -------------------------------------------------------
    anthropic_api_key: SecretStr = SecretStr("")
    use_llm_composer: bool = False

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""

    # -- Pipeline --------------------------------------------------------------
    dispatch_delay_seconds: float = 5.0
    dispatch_max_per_window: int = 10
    dispatch_window_seconds: float = 60.0
    campaign_fetch_attempts: int = 5
    campaign_fetch_wait_seconds: float = 2.0
    observer_queue_size: int = 16
    default_cpm: Decimal = Decimal("20")


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    The ``@lru_cache`` decorator ensures environment variables are parsed
    exactly once.  Call ``get_settings.cache_clear()`` in tests to reset.

    Returns:
        The application ``Settings``.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Log only the structured errors list -- never the full exception
        # which may contain raw SecretStr values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_credentials(settings: Settings) -> None:
    """Enforce credential presence at startup.

    In **production** mode (``settings.production is True``), the application
    exits with a clear error block if any required credential is missing.

    In **development** mode, each missing credential is logged as a warning
    but the application continues to start.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if not settings.outreach_webhook_url:
        errors.append("OUTREACH_WEBHOOK_URL is empty or not set")

    voice = [
        settings.voice_api_key.get_secret_value(),
        settings.voice_agent_id,
        settings.voice_phone_number_id,
    ]
    if any(voice) and not all(voice):
        errors.append(
            "Voice outreach is partially configured: VOICE_API_KEY, VOICE_AGENT_ID "
            "and VOICE_PHONE_NUMBER_ID must all be set"
        )

    if settings.use_llm_composer and not settings.anthropic_api_key.get_secret_value():
        errors.append("USE_LLM_COMPOSER is set but ANTHROPIC_API_KEY is empty")

    if not errors:
        logger.info("credential_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("credential_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing required credentials for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("credential_missing_dev", detail=err)


def validate_run_config(settings: Settings, campaign_id: str, user_id: str) -> None:
    """Check that a run has everything it needs before a session is created.

    Args:
        settings: The loaded application settings.
        campaign_id: Campaign the run is for.
        user_id: Operator starting the run.

    Raises:
        ConfigurationError: Listing every missing item.
    """
    problems: list[str] = []
    if not campaign_id or not campaign_id.strip():
        problems.append("campaign id is required")
    if not user_id or not user_id.strip():
        problems.append("user id is required")
    if not settings.outreach_webhook_url:
        problems.append("outreach webhook URL is not configured")
    if problems:
        raise ConfigurationError(problems)
