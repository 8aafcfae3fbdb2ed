"""In-process queuers with ordering, backpressure and concurrency control.

Provides a synchronous :class:`Queuer` that feeds one item at a time to a
worker, and an :class:`AsyncQueuer` that runs an async worker with a
concurrency ceiling. Both support FIFO/LIFO ordering, priorities, capacity
limits, expiry, deduplication and ``wait`` pacing between ticks.
"""

from pacekit.queue.async_queuer import AsyncQueuer, async_queue
from pacekit.queue.models import (
    AsyncQueuerState,
    DeduplicateStrategy,
    QueuePosition,
    QueueRecord,
    QueuerState,
    QueuerStatus,
)
from pacekit.queue.options import AsyncQueuerOptions, QueuerOptions
from pacekit.queue.queuer import Queuer, queue
from pacekit.queue.store import StateStore

__all__ = [
    "AsyncQueuer",
    "AsyncQueuerOptions",
    "AsyncQueuerState",
    "DeduplicateStrategy",
    "QueuePosition",
    "QueueRecord",
    "Queuer",
    "QueuerOptions",
    "QueuerState",
    "QueuerStatus",
    "StateStore",
    "async_queue",
    "queue",
]
