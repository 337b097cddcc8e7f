"""
Burst Rate Limiting for the translation dispatcher

The completion service grants a fixed number of requests per interval.
Pending tasks wait in an explicit TaskQueue and the BurstDispatcher releases
them in bursts of at most ``requests_per_minute`` on every tick of a
fixed timer until the queue is drained.

Key Features:
• Named release order (FIFO or LIFO) instead of whatever the storage gives
• Explicit first-burst timing (immediately, or after one interval)
• Injectable sleep for deterministic tests
"""
import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Deque, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ─────────────────────────────────────────────────────────────────────────────
# Configuration (Immutable and Type-Safe)
# ─────────────────────────────────────────────────────────────────────────────
class ReleaseOrder(str, Enum):
    """Order in which queued tasks are released."""
    FIFO = "fifo"  # oldest discovered first
    LIFO = "lifo"  # most recently discovered first


@dataclass(frozen=True)
class RateLimitConfig:
    """Immutable configuration for the burst dispatcher."""
    requests_per_minute: int = 60
    interval_seconds: float = 60.0
    release_order: ReleaseOrder = ReleaseOrder.FIFO
    first_burst_immediate: bool = True

    def __post_init__(self):
        """Validate configuration on construction."""
        if self.requests_per_minute <= 0:
            raise ValueError("Rate limits must be positive")
        if self.interval_seconds < 0:
            raise ValueError("Interval must not be negative")
        # Accept plain strings coming from YAML or the CLI
        object.__setattr__(self, 'release_order', ReleaseOrder(self.release_order))


# ─────────────────────────────────────────────────────────────────────────────
# Task Queue
# ─────────────────────────────────────────────────────────────────────────────
class TaskQueue(Generic[T]):
    """Ordered set of pending tasks produced by the scan."""

    def __init__(self, release_order: ReleaseOrder = ReleaseOrder.FIFO):
        self.release_order = ReleaseOrder(release_order)
        self._items: Deque[T] = deque()

    def push(self, item: T) -> None:
        self._items.append(item)

    def pop(self) -> T:
        if self.release_order is ReleaseOrder.FIFO:
            return self._items.popleft()
        return self._items.pop()

    def pop_burst(self, limit: int) -> List[T]:
        """Pop up to ``limit`` items in release order."""
        burst = []
        while self._items and len(burst) < limit:
            burst.append(self.pop())
        return burst

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)


# ─────────────────────────────────────────────────────────────────────────────
# Burst Dispatcher
# ─────────────────────────────────────────────────────────────────────────────
class BurstDispatcher:
    """
    Releases queued tasks in bursts of at most ``requests_per_minute`` per
    interval. Each released task is started as its own asyncio task; the
    dispatcher never waits for them, so slow responses do not delay the
    next tick.
    """

    def __init__(self, config: Optional[RateLimitConfig] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.config = config or RateLimitConfig()
        self._sleep = sleep
        self.burst_sizes: List[int] = []

    async def run(self, queue: TaskQueue[T],
                  launch: Callable[[T], Awaitable[None]]) -> List["asyncio.Task[None]"]:
        """Drain ``queue``, starting ``launch(item)`` for each released item.

        Returns the started asyncio tasks once the queue is empty.
        """
        limit = self.config.requests_per_minute
        started: List[asyncio.Task] = []
        first = True

        logger.info(f"🚦 Dispatching {len(queue)} tasks: {limit} per "
                    f"{self.config.interval_seconds:g}s, {self.config.release_order.value} order")

        try:
            while queue:
                if not (first and self.config.first_burst_immediate):
                    await self._sleep(self.config.interval_seconds)
                first = False

                burst = queue.pop_burst(limit)
                for item in burst:
                    started.append(asyncio.create_task(launch(item)))

                self.burst_sizes.append(len(burst))
                logger.info(f"🚀 Burst #{len(self.burst_sizes)}: released {len(burst)} tasks, "
                            f"{len(queue)} still queued")
        except asyncio.CancelledError:
            for task in started:
                task.cancel()
            raise

        return started
