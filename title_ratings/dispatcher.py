import asyncio
import logging
import random
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimitedDispatcher(Generic[T]):
    """FIFO queue that runs one job at a time with a jittered pause between jobs.

    Jobs are ``worker(title)`` calls. ``submit`` enqueues and waits for the
    job's outcome; a single drain task works through the queue and goes away
    when the queue is empty. No job is dispatched sooner than
    ``base_delay + uniform(0, jitter)`` seconds after the previous one settled,
    whether it was already queued or submitted later, so outbound requests do
    not arrive at a fixed, easily detected interval.
    """

    def __init__(
        self,
        worker: Callable[[str], Awaitable[T]],
        *,
        base_delay: float = 2.0,
        jitter: float = 1.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] | None = None,
        rng: random.Random | None = None,
    ):
        self._worker = worker
        self._base_delay = base_delay
        self._jitter = jitter
        self._sleep = sleep
        self._clock = clock
        self._rng = rng or random.Random()
        self._queue: deque[tuple[str, asyncio.Future]] = deque()
        self._drain_task: asyncio.Task | None = None
        self._last_settled: float | None = None

    @property
    def is_draining(self) -> bool:
        return self._drain_task is not None

    @property
    def pending(self) -> int:
        return len(self._queue)

    def next_delay(self) -> float:
        return self._base_delay + self._rng.uniform(0, self._jitter)

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    async def submit(self, title: str) -> T:
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._queue.append((title, future))
        if self._drain_task is None:
            self._drain_task = asyncio.create_task(self._drain())
        return await future

    async def join(self) -> None:
        while self._drain_task is not None:
            await asyncio.shield(self._drain_task)

    async def _wait_turn(self) -> None:
        if self._last_settled is None:
            return
        remaining = self.next_delay() - (self._now() - self._last_settled)
        if remaining > 0:
            logger.debug("Waiting %.2fs before next scrape (%d queued)", remaining, len(self._queue))
            await self._sleep(remaining)

    async def _drain(self) -> None:
        try:
            while self._queue:
                await self._wait_turn()
                title, future = self._queue.popleft()
                try:
                    result = await self._worker(title)
                except Exception as exc:
                    if not future.done():
                        future.set_exception(exc)
                else:
                    if not future.done():
                        future.set_result(result)
                finally:
                    self._last_settled = self._now()
        finally:
            self._drain_task = None
