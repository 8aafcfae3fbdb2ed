"""Timer continuations for the tick loop.

Waiting is never a blocking sleep: a tick re-arms itself through a timer
handle. Inside an event loop that is ``loop.call_later``; a synchronous
queuer used outside any loop gets a daemon ``threading.Timer`` instead.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable
from typing import Protocol


class TimerHandle(Protocol):
    """Anything with a ``cancel()`` method."""

    def cancel(self) -> None: ...


def now_ms() -> float:
    """Wall-clock time in epoch milliseconds."""
    return time.time() * 1000


def call_later(delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
    """Run ``callback`` after ``delay_ms`` milliseconds.

    Args:
        delay_ms: Delay in milliseconds.
        callback: Zero-argument callable.

    Returns:
        A cancellable handle.
    """
    delay = delay_ms / 1000.0
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer
    return loop.call_later(delay, callback)
