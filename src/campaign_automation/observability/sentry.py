"""Sentry SDK initialization with structlog-sentry bridge.

Provides:
- ``init_sentry(dsn, production)``: Initialize Sentry SDK.  No-op when *dsn* is empty.
- ``get_sentry_processor()``: Return a structlog processor that forwards
  ERROR-level log events (failed captures, crashed runs) to Sentry.
"""

from __future__ import annotations

import logging

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor

from campaign_automation import __version__


def init_sentry(dsn: str, production: bool = False) -> bool:
    """Initialize Sentry SDK with the given *dsn*.

    Safe to call unconditionally at startup: an empty *dsn* makes no
    network calls and initializes nothing.

    Args:
        dsn: Sentry DSN string.  Empty string disables Sentry.
        production: Selects the ``production`` or ``development`` environment tag.

    Returns:
        True if the SDK was initialized.
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment="production" if production else "development",
        release=f"campaign-automation@{__version__}",
        traces_sample_rate=0.1,
        send_default_pii=False,
        integrations=[
            # Events reach Sentry through structlog-sentry only
            LoggingIntegration(event_level=None, level=None),
        ],
    )
    return True


def get_sentry_processor() -> structlog.types.Processor:
    """Return a structlog processor that forwards ERROR events to Sentry.

    Insert this into the structlog processor chain after ``add_log_level``
    and before the renderer.

    Returns:
        A ``SentryProcessor`` instance configured for ERROR-level capture.
    """
    return SentryProcessor(event_level=logging.ERROR, tag_keys=["session_id", "campaign_id"])
