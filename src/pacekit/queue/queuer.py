"""Synchronous queuer: one item at a time, optionally paced by ``wait``.

Usage::

    from pacekit.queue import Queuer

    queuer = Queuer(send_email, wait=100, max_size=50)
    queuer.add_item(message)
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from pacekit.logging import get_logger
from pacekit.queue.base import BaseQueuer
from pacekit.queue.models import QueuePosition
from pacekit.queue.options import QueuerOptions

log = get_logger("pacekit.queue.queuer")

TValue = TypeVar("TValue")
TResult = TypeVar("TResult")


class Queuer(BaseQueuer[TValue]):
    """Feeds queued items to ``fn`` one at a time.

    With ``wait == 0`` a tick drains the whole queue synchronously; with
    ``wait > 0`` it executes one item and schedules the next tick ``wait``
    milliseconds later. A worker exception raised during a tick is logged
    and the loop continues with the next item. ``execute`` and ``flush``
    let it propagate to the caller.
    """

    def __init__(self, fn: Callable[[TValue], Any], **options: Any) -> None:
        super().__init__(fn, QueuerOptions(**options))

    def execute(self, position: QueuePosition | str | None = None) -> TValue | None:
        """Take the next item and pass it to the worker.

        Args:
            position: Extraction end; defaults to ``get_items_from``.

        Returns:
            The executed item, or None if the queue was empty.
        """
        with self._lock:
            record = self._take_next(position)
            if record is None:
                return None
            self._fn(record.item)
            state = self.store.state
            self.store.set_state(
                execution_count=state.execution_count + 1,
                processed_keys=self._processed_keys_after(record.item),
            )
            self._emit(self._options.on_execute, record.item, self)
            return record.item

    def flush(
        self,
        num_items: int | None = None,
        position: QueuePosition | str | None = None,
    ) -> None:
        """Execute up to ``num_items`` pending items right now, ignoring ``wait``.

        Works whether or not the queuer is running. A pending tick is
        cancelled and re-armed afterwards if items remain.
        """
        with self._lock:
            if self.store.state.is_empty:
                return
            self._cancel_timer()
            self._disarm()
            remaining = self.store.state.size if num_items is None else num_items
            try:
                while remaining > 0 and not self.store.state.is_empty:
                    self.execute(position)
                    remaining -= 1
            finally:
                self._resume()

    def flush_as_batch(self, batch_fn: Callable[[list[TValue]], TResult]) -> TResult:
        """Remove every pending item and hand them to ``batch_fn`` in one call.

        The items bypass the worker, so no execution or processed key is
        recorded for them.
        """
        with self._lock:
            self._cancel_timer()
            self._disarm()
            items = self.store.state.items
            if items:
                self.store.set_state(records=())
                self._emit(self._options.on_items_change, self)
            log.debug("queuer_flushed_as_batch", queuer=self.key, count=len(items))
            return batch_fn(items)

    def _tick(self) -> None:
        with self._lock:
            if not self.store.state.is_running:
                self._disarm()
                return
            self._sweep_expired()
            while self.store.state.is_running and not self.store.state.is_empty:
                try:
                    self.execute()
                except Exception:
                    log.exception("queuer_worker_failed", queuer=self.key)
                if not self.store.state.is_running:
                    break
                wait = self.get_wait()
                if wait > 0:
                    # Keep the spacing even if the queue just drained.
                    self._schedule_tick(wait)
                    return
            self._disarm()


def queue(fn: Callable[[TValue], Any], **options: Any) -> Callable[..., bool]:
    """Build a :class:`Queuer` and return its bound ``add_item``.

    Example::

        enqueue = queue(print, wait=50)
        enqueue("hello")
    """
    return Queuer(fn, **options).add_item
