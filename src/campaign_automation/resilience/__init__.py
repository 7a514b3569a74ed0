"""Retry policy for idempotent capability reads."""

from campaign_automation.resilience.retry import is_transient_failure, resilient_read

__all__ = ["is_transient_failure", "resilient_read"]
