"""Retry policy for idempotent capability reads.

Capabilities return typed results instead of raising, so the policy retries
on the *result*: only ``unavailable`` failures are retried, with exponential
backoff and jitter.  After the last attempt the final failure is returned to
the caller unchanged.  Non-idempotent capabilities are never wrapped.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_result,
    stop_after_attempt,
    wait_exponential_jitter,
)

from campaign_automation.capabilities.models import CapabilityResult, FailureKind

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])


def is_transient_failure(result: Any) -> bool:
    """Return True if *result* is an ``unavailable`` capability failure."""
    return (
        isinstance(result, CapabilityResult)
        and result.failure is not None
        and result.failure.kind == FailureKind.UNAVAILABLE
    )


def return_last_result(retry_state: RetryCallState) -> Any:
    """Log exhaustion and hand the final failure back to the caller.

    Args:
        retry_state: Tenacity retry state with attempt info and outcome.
    """
    result = retry_state.outcome.result() if retry_state.outcome else None
    logger.error(
        "capability_read_failed_after_retries",
        operation=getattr(retry_state.fn, "_operation", "unknown"),
        attempts=retry_state.attempt_number,
        error=result.error_message if isinstance(result, CapabilityResult) else None,
    )
    return result


def _before_sleep_log(retry_state: RetryCallState) -> None:
    """Log a warning before each retry attempt.

    Args:
        retry_state: Tenacity retry state with attempt info.
    """
    operation = getattr(retry_state.fn, "_operation", "unknown") if retry_state.fn else "unknown"
    logger.warning(
        "retrying_capability_read",
        operation=operation,
        attempt=retry_state.attempt_number,
        wait=retry_state.next_action.sleep if retry_state.next_action else 0,
    )


def resilient_read(
    operation: str,
    attempts: int = 5,
    wait_seconds: float = 2.0,
) -> Callable[[F], F]:
    """Create a retry decorator for an idempotent capability read.

    Returns a tenacity retry decorator configured with:
    - *attempts* attempts maximum
    - Exponential backoff starting at *wait_seconds*, with up to half of
      it as jitter
    - Warning log before each retry
    - The last failed result returned after exhaustion

    Args:
        operation: Capability name (used in logs).
        attempts: Maximum number of attempts, including the first.
        wait_seconds: Initial wait between attempts.

    Returns:
        A decorator that wraps an async capability call with retry logic.
    """

    def decorator(func: F) -> F:
        async def async_target(*args: Any, **kwargs: Any) -> Any:
            return await func(*args, **kwargs)

        # Store operation on the wrapped function for the log callbacks
        async_target._operation = operation  # type: ignore[attr-defined]

        wrapped = retry(
            stop=stop_after_attempt(max(1, attempts)),
            wait=wait_exponential_jitter(
                initial=wait_seconds, max=wait_seconds * 8, jitter=wait_seconds / 2
            ),
            retry=retry_if_result(is_transient_failure),
            before_sleep=_before_sleep_log,
            retry_error_callback=return_last_result,
        )(async_target)

        return wrapped  # type: ignore[return-value]

    return decorator
