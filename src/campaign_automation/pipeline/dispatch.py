"""Bulk dispatch engine: sequential, rate-limited, per-item-isolated fan-out.

Items are processed strictly one after another with a minimum delay between
successive invocations, to respect downstream rate limits.  An optional
per-window cap adds a cooldown once that many invocations have started; the
pacing state lives on the dispatcher, so stages sharing one dispatcher share
one budget.  A failing item
(a failed :class:`CapabilityResult` or an exception from the invocation) is
recorded against that item and the batch moves on; one item can never abort
the batch.  Cancellation is checked between items only, so an in-flight
item always finishes.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from enum import StrEnum
from typing import Any, Generic, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field

from campaign_automation.capabilities.models import CapabilityResult

logger = structlog.get_logger()

T = TypeVar("T")


class ItemStatus(StrEnum):
    """Outcome of one fan-out item."""

    SUCCESS = "success"
    FAILURE = "failure"


class ItemOutcome(BaseModel):
    """Per-item outcome: the result on success, the error message on failure."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    item_id: str
    status: ItemStatus
    result: Any = None
    error_message: str | None = None
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        """Return True if the item succeeded."""
        return self.status == ItemStatus.SUCCESS


class DispatchReport(BaseModel):
    """Outcomes keyed by item id plus aggregate counts."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    outcomes: dict[str, ItemOutcome] = Field(default_factory=dict)
    succeeded: int = 0
    failed: int = 0
    cancelled: bool = False

    @property
    def attempted(self) -> int:
        """Return the number of items that were invoked."""
        return self.succeeded + self.failed

    def successes(self) -> list[ItemOutcome]:
        """Return successful outcomes in processing order."""
        return [o for o in self.outcomes.values() if o.succeeded]

    def failures(self) -> list[ItemOutcome]:
        """Return failed outcomes in processing order."""
        return [o for o in self.outcomes.values() if not o.succeeded]


class BulkDispatcher(Generic[T]):
    """Apply one invocation per item, sequentially, with isolation and backpressure.

    Args:
        min_delay: Minimum seconds between the start of successive invocations.
        max_per_window: Invocations allowed before a cooldown; 0 disables the cap.
        window_seconds: Length of the cooldown once the cap is reached.
        sleep: Awaitable sleep function; injectable for tests.
    """

    def __init__(
        self,
        min_delay: float = 0.0,
        max_per_window: int = 0,
        window_seconds: float = 60.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._min_delay = max(0.0, min_delay)
        self._max_per_window = max(0, max_per_window)
        self._window_seconds = max(0.0, window_seconds)
        self._sleep = sleep
        self._last_started: float | None = None
        self._in_window = 0

    async def run(
        self,
        items: Sequence[T],
        invoke: Callable[[T], Awaitable[Any]],
        item_id: Callable[[T], str],
        on_item: Callable[[T, ItemOutcome], Awaitable[None] | None] | None = None,
        should_cancel: Callable[[], bool] | None = None,
        propagate_callback_errors: bool = False,
    ) -> DispatchReport:
        """Process *items* in order.

        Args:
            items: The items to process.
            invoke: Per-item invocation.  Returning a failed
                :class:`CapabilityResult` or raising marks the item failed;
                anything else (including a successful result) marks it
                succeeded.
            item_id: Maps an item to its identifier in the outcome map.
            on_item: Optional progress callback, sync or async, called after
                each item.  A failing callback is logged and ignored unless
                *propagate_callback_errors* is set.
            should_cancel: Optional flag checked before each item.
            propagate_callback_errors: Re-raise exceptions from *on_item*,
                ending the batch.  Set this when the callback does required
                bookkeeping rather than progress reporting.

        Returns:
            The :class:`DispatchReport` for the items that were invoked.
        """
        report = DispatchReport()

        for item in items:
            if should_cancel is not None and should_cancel():
                report.cancelled = True
                logger.info("dispatch_cancelled", remaining=len(items) - report.attempted)
                break

            await self._pace()

            key = item_id(item)
            started = time.monotonic()
            self._last_started = started
            self._in_window += 1
            outcome = await self._invoke_one(key, item, invoke, started)
            report.outcomes[key] = outcome
            if outcome.succeeded:
                report.succeeded += 1
            else:
                report.failed += 1

            if on_item is not None:
                await self._notify(on_item, item, outcome, propagate_callback_errors)

        return report

    async def _pace(self) -> None:
        if self._max_per_window and self._in_window >= self._max_per_window:
            logger.info(
                "dispatch_window_cooldown",
                invocations=self._in_window,
                cooldown_seconds=self._window_seconds,
            )
            await self._sleep(self._window_seconds)
            self._in_window = 0
            return

        if self._last_started is not None and self._min_delay:
            remaining = self._min_delay - (time.monotonic() - self._last_started)
            if remaining > 0:
                await self._sleep(remaining)

    async def _invoke_one(
        self,
        key: str,
        item: T,
        invoke: Callable[[T], Awaitable[Any]],
        started: float,
    ) -> ItemOutcome:
        try:
            result = await invoke(item)
        except Exception as exc:
            logger.warning("dispatch_item_raised", item_id=key, exc_info=True)
            return ItemOutcome(
                item_id=key,
                status=ItemStatus.FAILURE,
                error_message=f"{type(exc).__name__}: {exc}",
                duration_ms=_elapsed_ms(started),
            )

        if isinstance(result, CapabilityResult) and not result.ok:
            return ItemOutcome(
                item_id=key,
                status=ItemStatus.FAILURE,
                result=result,
                error_message=result.error_message,
                duration_ms=_elapsed_ms(started),
            )

        return ItemOutcome(
            item_id=key,
            status=ItemStatus.SUCCESS,
            result=result,
            duration_ms=_elapsed_ms(started),
        )

    @staticmethod
    async def _notify(
        on_item: Callable[[T, ItemOutcome], Awaitable[None] | None],
        item: T,
        outcome: ItemOutcome,
        propagate: bool,
    ) -> None:
        try:
            maybe = on_item(item, outcome)
            if asyncio.iscoroutine(maybe):
                await maybe
        except Exception:
            if propagate:
                raise
            logger.warning("dispatch_progress_callback_failed", item_id=outcome.item_id, exc_info=True)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
