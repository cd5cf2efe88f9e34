"""
Tests for the LLM call serialization layer.

Covers:
- CallQueue FIFO order and single in-flight execution
- failure isolation (a rejected task never stops the queue)
- observable depth / processing status
- RateGate minimum spacing, alone and behind the queue
"""

import asyncio

import pytest

from conftest import FakeClock
from llm_queue import CallQueue, RateGate


# ─── CallQueue ──────────────────────────────────────────────


class TestCallQueue:

    def test_tasks_run_in_submission_order_without_overlap(self):
        events = []
        active = {"now": 0, "max": 0}

        def make_task(i):
            async def task():
                active["now"] += 1
                active["max"] = max(active["max"], active["now"])
                events.append(("start", i))
                await asyncio.sleep(0)
                await asyncio.sleep(0)
                events.append(("end", i))
                active["now"] -= 1
                return i * 10
            return task

        async def main():
            queue = CallQueue()
            return await asyncio.gather(*(queue.enqueue(make_task(i)) for i in range(8)))

        results = asyncio.run(main())

        assert results == [i * 10 for i in range(8)]
        assert active["max"] == 1
        expected = []
        for i in range(8):
            expected += [("start", i), ("end", i)]
        assert events == expected

    def test_failing_task_does_not_abort_queue(self):
        ran = []

        def make_task(i):
            async def task():
                ran.append(i)
                if i == 1:
                    raise ValueError("boom")
                return i
            return task

        async def main():
            queue = CallQueue()
            results = await asyncio.gather(
                *(queue.enqueue(make_task(i)) for i in range(4)),
                return_exceptions=True,
            )
            return queue, results

        queue, results = asyncio.run(main())

        assert ran == [0, 1, 2, 3]
        assert results[0] == 0
        assert isinstance(results[1], ValueError)
        assert results[2:] == [2, 3]
        assert queue.processing is False
        assert queue.depth == 0

    def test_enqueue_propagates_task_exception(self):
        async def failing():
            raise RuntimeError("upstream down")

        async def main():
            await CallQueue().enqueue(failing)

        with pytest.raises(RuntimeError, match="upstream down"):
            asyncio.run(main())

    def test_status_reports_depth_and_processing(self):
        async def main():
            queue = CallQueue(RateGate(5.0))
            release = asyncio.Event()

            async def blocker():
                await release.wait()
                return "done"

            async def quick():
                return "quick"

            first = asyncio.ensure_future(queue.enqueue(blocker))
            await asyncio.sleep(0)
            second = asyncio.ensure_future(queue.enqueue(quick))
            third = asyncio.ensure_future(queue.enqueue(quick))
            await asyncio.sleep(0)

            during = queue.status()
            release.set()
            results = await asyncio.gather(first, second, third)
            return during, queue.status(), results

        during, after, results = asyncio.run(main())

        assert during == {"queueDepth": 2, "processing": True, "minDelayMs": 5000}
        assert after == {"queueDepth": 0, "processing": False, "minDelayMs": 5000}
        assert results == ["done", "quick", "quick"]

    def test_queue_can_be_reused_after_draining(self):
        async def main():
            queue = CallQueue()

            async def one():
                return 1

            first = await queue.enqueue(one)
            second = await queue.enqueue(one)
            return first, second, queue.processing

        assert asyncio.run(main()) == (1, 1, False)


# ─── RateGate ───────────────────────────────────────────────


class TestRateGate:

    def test_first_acquire_does_not_wait(self):
        clock = FakeClock()
        gate = RateGate(5.0, clock=clock, sleep=clock.sleep)

        asyncio.run(gate.acquire())

        assert clock.sleeps == []
        assert gate.last_call == clock.now

    def test_waits_for_remaining_interval(self):
        clock = FakeClock()
        gate = RateGate(5.0, clock=clock, sleep=clock.sleep)

        async def main():
            await gate.acquire()
            clock.now += 1.5
            await gate.acquire()

        asyncio.run(main())

        assert clock.sleeps == [pytest.approx(3.5)]

    def test_no_wait_once_interval_elapsed(self):
        clock = FakeClock()
        gate = RateGate(5.0, clock=clock, sleep=clock.sleep)

        async def main():
            await gate.acquire()
            clock.now += 7
            await gate.acquire()

        asyncio.run(main())

        assert clock.sleeps == []

    @pytest.mark.parametrize("depth", [1, 3, 12])
    def test_dispatches_behind_queue_respect_min_interval(self, depth):
        clock = FakeClock()
        gate = RateGate(2.0, clock=clock, sleep=clock.sleep)
        dispatched = []

        async def call():
            await gate.acquire()
            dispatched.append(clock())

        async def main():
            queue = CallQueue(gate)
            await asyncio.gather(*(queue.enqueue(call) for _ in range(depth)))

        asyncio.run(main())

        assert len(dispatched) == depth
        gaps = [b - a for a, b in zip(dispatched, dispatched[1:])]
        assert all(gap >= 2.0 - 1e-9 for gap in gaps)
