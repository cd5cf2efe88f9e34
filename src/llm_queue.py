"""
LLM Call Serialization
======================
Keeps outbound completion calls under the provider's quota.

  RateGate   -> enforces a minimum wall-clock gap between dispatched calls
  CallQueue  -> single-worker FIFO; at most one queued task runs at a time

Both are plain owned instances (one per app) so they can be exercised
without an HTTP server.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

log = logging.getLogger("llm_queue")

Task = Callable[[], Awaitable[Any]]


class RateGate:
    """Minimum-interval gate between consecutive outbound calls.

    Only ever awaited from inside the CallQueue worker, so acquires are
    satisfied one at a time in request order.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock
        self._sleep = sleep
        self.last_call: Optional[float] = None

    async def acquire(self) -> None:
        if self.last_call is not None:
            elapsed = self._clock() - self.last_call
            if elapsed < self.min_interval:
                wait = self.min_interval - elapsed
                log.info("Throttling: waiting %dms before next API call", round(wait * 1000))
                await self._sleep(wait)
        self.last_call = self._clock()


@dataclass
class QueuedTask:
    task: Task
    future: "asyncio.Future[Any]"


class CallQueue:
    """FIFO of zero-argument coroutine functions drained by a single worker."""

    def __init__(self, gate: Optional[RateGate] = None):
        self.gate = gate
        self._items: Deque[QueuedTask] = deque()
        self._processing = False
        self._worker: Optional["asyncio.Task[None]"] = None

    @property
    def depth(self) -> int:
        """Tasks waiting to run (the in-flight one is not counted)."""
        return len(self._items)

    @property
    def processing(self) -> bool:
        return self._processing

    def status(self) -> Dict[str, Any]:
        min_delay_ms = round(self.gate.min_interval * 1000) if self.gate else 0
        return {
            "queueDepth": self.depth,
            "processing": self.processing,
            "minDelayMs": min_delay_ms,
        }

    async def enqueue(self, task: Task) -> Any:
        """Append `task` and wait for its outcome (result or raised exception)."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._items.append(QueuedTask(task=task, future=future))
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain())
        return await future

    async def _drain(self) -> None:
        if self._processing:
            return
        self._processing = True
        try:
            while self._items:
                item = self._items.popleft()
                try:
                    result = await item.task()
                except Exception as e:
                    if not item.future.done():
                        item.future.set_exception(e)
                else:
                    if not item.future.done():
                        item.future.set_result(result)
        finally:
            self._processing = False
