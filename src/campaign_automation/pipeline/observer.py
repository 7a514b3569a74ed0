"""Bounded, non-blocking delivery of live campaign state snapshots.

The controller publishes a snapshot after every mutation.  Publishing never
blocks: when the channel is full the oldest pending snapshot is dropped, so
a slow observer sees fewer, newer snapshots rather than stalling the
pipeline.  A background task delivers snapshots to the callback and logs
callback failures.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

import structlog

from campaign_automation.domain.models import CampaignState

logger = structlog.get_logger()

StateObserver = Callable[[CampaignState], Awaitable[None] | None]


class SnapshotChannel:
    """Bounded snapshot queue with a drop-oldest overflow policy.

    Args:
        observer: Callback, sync or async, receiving each delivered snapshot.
        maxsize: Maximum number of pending snapshots.
    """

    def __init__(self, observer: StateObserver, maxsize: int = 16) -> None:
        self._observer = observer
        self._queue: asyncio.Queue[CampaignState] = asyncio.Queue(maxsize=max(1, maxsize))
        self._task: asyncio.Task[None] | None = None
        self.dropped = 0
        self.delivered = 0

    def start(self) -> None:
        """Start the delivery task on the running loop."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._pump())

    def publish(self, state: CampaignState) -> None:
        """Enqueue a snapshot without blocking, dropping the oldest when full."""
        snapshot = state.model_copy(deep=True)
        while True:
            try:
                self._queue.put_nowait(snapshot)
                return
            except asyncio.QueueFull:
                with contextlib.suppress(asyncio.QueueEmpty):
                    self._queue.get_nowait()
                    self._queue.task_done()
                    self.dropped += 1

    async def drain(self) -> None:
        """Wait until every pending snapshot has been delivered."""
        if self._task is not None:
            await self._queue.join()

    async def close(self) -> None:
        """Deliver pending snapshots, then stop the delivery task."""
        if self._task is None:
            return
        await self.drain()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _pump(self) -> None:
        while True:
            snapshot = await self._queue.get()
            try:
                maybe = self._observer(snapshot)
                if asyncio.iscoroutine(maybe):
                    await maybe
                self.delivered += 1
            except Exception:
                logger.warning(
                    "state_observer_failed",
                    status=snapshot.status.value,
                    exc_info=True,
                )
            finally:
                self._queue.task_done()
