"""Tests for the bulk dispatch engine: ordering, isolation, rate limiting, cancellation."""

import asyncio
import time

import pytest

from campaign_automation.capabilities.models import CapabilityResult, FailureKind
from campaign_automation.pipeline.dispatch import BulkDispatcher, ItemStatus


class FakeSleep:
    """Records requested sleeps without waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _run(dispatcher: BulkDispatcher, items, invoke, **kwargs):
    return asyncio.run(dispatcher.run(items, invoke, item_id=lambda i: i, **kwargs))


class TestOrdering:
    """Items are processed one at a time, in input order."""

    def test_sequential_in_order(self):
        seen: list[str] = []
        active = 0
        overlap = False

        async def invoke(item: str):
            nonlocal active, overlap
            active += 1
            overlap = overlap or active > 1
            seen.append(item)
            await asyncio.sleep(0)
            active -= 1
            return CapabilityResult.success(item.upper())

        report = _run(BulkDispatcher(), ["a", "b", "c"], invoke)
        assert seen == ["a", "b", "c"]
        assert not overlap
        assert list(report.outcomes) == ["a", "b", "c"]
        assert report.outcomes["b"].result.value == "B"
        assert report.succeeded == 3
        assert report.attempted == 3

    def test_empty_batch(self):
        async def invoke(item: str):
            raise AssertionError("should not be called")

        report = _run(BulkDispatcher(), [], invoke)
        assert report.outcomes == {}
        assert not report.cancelled


class TestIsolation:
    """A failing item never aborts the batch."""

    def test_failed_result_is_recorded_and_batch_continues(self):
        async def invoke(item: str):
            if item == "b":
                return CapabilityResult.fail(FailureKind.UNAVAILABLE, "network error")
            return CapabilityResult.success(item)

        report = _run(BulkDispatcher(), ["a", "b", "c"], invoke)
        assert report.succeeded == 2
        assert report.failed == 1
        failure = report.outcomes["b"]
        assert failure.status == ItemStatus.FAILURE
        assert failure.error_message == "unavailable: network error"
        assert [o.item_id for o in report.failures()] == ["b"]
        assert [o.item_id for o in report.successes()] == ["a", "c"]

    def test_exception_is_recorded_and_batch_continues(self):
        async def invoke(item: str):
            if item == "a":
                raise RuntimeError("socket closed")
            return item

        report = _run(BulkDispatcher(), ["a", "b"], invoke)
        assert report.outcomes["a"].error_message == "RuntimeError: socket closed"
        assert report.outcomes["a"].result is None
        assert report.outcomes["b"].succeeded

    def test_failing_progress_callback_is_ignored(self):
        async def invoke(item: str):
            return item

        def on_item(item, outcome):
            raise ValueError("observer bug")

        report = _run(BulkDispatcher(), ["a", "b"], invoke, on_item=on_item)
        assert report.succeeded == 2

    def test_callback_error_propagates_when_requested(self):
        processed: list[str] = []

        async def invoke(item: str):
            processed.append(item)
            return item

        def on_item(item, outcome):
            raise ValueError("audit write failed")

        with pytest.raises(ValueError, match="audit write failed"):
            _run(
                BulkDispatcher(),
                ["a", "b"],
                invoke,
                on_item=on_item,
                propagate_callback_errors=True,
            )
        assert processed == ["a"]


class TestProgress:
    """The progress callback sees every outcome, sync or async."""

    def test_sync_and_async_callbacks(self):
        async def invoke(item: str):
            return item

        sync_seen: list[str] = []
        async_seen: list[str] = []

        async def on_item_async(item, outcome):
            async_seen.append(outcome.item_id)

        _run(BulkDispatcher(), ["a", "b"], invoke, on_item=lambda i, o: sync_seen.append(i))
        _run(BulkDispatcher(), ["a", "b"], invoke, on_item=on_item_async)
        assert sync_seen == ["a", "b"]
        assert async_seen == ["a", "b"]


class TestRateLimit:
    """A minimum delay separates successive invocations."""

    def test_waits_between_items_not_before_first(self):
        sleep = FakeSleep()

        async def invoke(item: str):
            return item

        _run(BulkDispatcher(min_delay=5.0, sleep=sleep), ["a", "b", "c"], invoke)
        assert len(sleep.calls) == 2
        assert all(4.0 < s <= 5.0 for s in sleep.calls)

    def test_zero_delay_never_sleeps(self):
        sleep = FakeSleep()

        async def invoke(item: str):
            return item

        _run(BulkDispatcher(min_delay=0, sleep=sleep), ["a", "b"], invoke)
        assert sleep.calls == []


class TestWindowCap:
    """A cooldown follows every full window of invocations."""

    @staticmethod
    async def invoke(item: str):
        return item

    def test_eleven_items_trigger_one_cooldown(self):
        sleep = FakeSleep()
        items = [f"c{i}" for i in range(11)]

        report = _run(
            BulkDispatcher(max_per_window=10, window_seconds=60.0, sleep=sleep), items, self.invoke
        )
        assert report.succeeded == 11
        assert sleep.calls == [60.0]

    def test_full_window_without_next_item_never_cools_down(self):
        sleep = FakeSleep()
        items = [f"c{i}" for i in range(10)]

        _run(BulkDispatcher(max_per_window=10, sleep=sleep), items, self.invoke)
        assert sleep.calls == []

    def test_cooldown_replaces_min_delay(self):
        sleep = FakeSleep()

        _run(
            BulkDispatcher(min_delay=5.0, max_per_window=2, window_seconds=60.0, sleep=sleep),
            ["a", "b", "c"],
            self.invoke,
        )
        assert len(sleep.calls) == 2
        assert 4.0 < sleep.calls[0] <= 5.0
        assert sleep.calls[1] == 60.0

    def test_budget_shared_across_batches(self):
        sleep = FakeSleep()
        dispatcher = BulkDispatcher(max_per_window=3, window_seconds=60.0, sleep=sleep)

        _run(dispatcher, ["a", "b"], self.invoke)
        _run(dispatcher, ["c", "d"], self.invoke)
        assert sleep.calls == [60.0]


class TestCancellation:
    """Cancellation is checked between items only."""

    def test_cancel_stops_before_next_item(self):
        processed: list[str] = []
        cancel = False

        async def invoke(item: str):
            nonlocal cancel
            processed.append(item)
            if item == "b":
                cancel = True
            return item

        report = _run(
            BulkDispatcher(), ["a", "b", "c", "d"], invoke, should_cancel=lambda: cancel
        )
        assert processed == ["a", "b"]
        assert report.cancelled
        assert report.attempted == 2
        assert "c" not in report.outcomes

    def test_cancel_before_first_item(self):
        async def invoke(item: str):
            raise AssertionError("should not be called")

        report = _run(BulkDispatcher(), ["a"], invoke, should_cancel=lambda: True)
        assert report.cancelled
        assert report.attempted == 0


class TestRealDelay:
    """The default sleep enforces the delay on the running event loop."""

    @pytest.mark.anyio()
    async def test_spacing_with_default_sleep(self) -> None:
        started: list[float] = []

        async def invoke(item: str):
            started.append(time.monotonic())
            return item

        report = await BulkDispatcher(min_delay=0.05).run(
            ["a", "b", "c"], invoke, item_id=lambda i: i
        )

        assert report.succeeded == 3
        gaps = [later - earlier for earlier, later in zip(started, started[1:])]
        assert all(gap >= 0.04 for gap in gaps)

    @pytest.mark.anyio()
    async def test_slow_item_counts_toward_delay(self) -> None:
        started: list[float] = []

        async def invoke(item: str):
            started.append(time.monotonic())
            await asyncio.sleep(0.05)
            return item

        begin = time.monotonic()
        await BulkDispatcher(min_delay=0.05).run(["a", "b"], invoke, item_id=lambda i: i)

        # The second item starts once the delay has elapsed, not delay after the first finished
        assert started[1] - started[0] < 0.09
        assert time.monotonic() - begin < 0.2
