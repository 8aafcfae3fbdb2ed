"""Asynchronous queuer — bounded concurrency over an asyncio event loop.

Items move from the pending queue into an active set when a tick dispatches
them, and leave it when the worker settles. At most ``concurrency`` items
are active at once; ``wait`` spaces the tick that follows each settlement.

Usage::

    from pacekit.queue import AsyncQueuer

    queuer = AsyncQueuer(fetch_page, concurrency=4, on_error=report)
    queuer.add_item(url)
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pacekit.logging import get_logger
from pacekit.queue.base import BaseQueuer
from pacekit.queue.models import AsyncQueuerState, QueuePosition, QueueRecord, QueuerState
from pacekit.queue.options import AsyncQueuerOptions, resolve_option
from pacekit.queue.ordering import extraction_index, remove_at

log = get_logger("pacekit.queue.async_queuer")

TValue = TypeVar("TValue")
TResult = TypeVar("TResult")


def _without(records: tuple[QueueRecord[Any], ...], record: QueueRecord[Any]) -> tuple[QueueRecord[Any], ...]:
    return tuple(r for r in records if r is not record)


class AsyncQueuer(BaseQueuer[TValue]):
    """Runs an async worker over queued items with a concurrency ceiling.

    Ticks need a running event loop. A queuer built outside one keeps its
    items pending until ``start()`` or ``add_item()`` is called from inside
    a loop.
    """

    _state_cls = AsyncQueuerState
    _options: AsyncQueuerOptions

    def __init__(self, fn: Callable[[TValue], Awaitable[Any] | Any], **options: Any) -> None:
        self._tasks: set[asyncio.Task[None]] = set()
        super().__init__(fn, AsyncQueuerOptions(**options))

    @property
    def state(self) -> AsyncQueuerState:
        """The current snapshot."""
        return self.store.state  # type: ignore[no-any-return]

    def get_concurrency(self) -> int:
        """Concurrency ceiling, resolved now."""
        return max(1, int(resolve_option(self._options.concurrency, self)))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def execute(self, position: QueuePosition | str | None = None) -> Any:
        """Take the next item, run the worker on it and return its result.

        Returns:
            The worker's result, or None if the queue was empty or the worker
            failed with ``throw_on_error`` off.

        Raises:
            Exception: The worker's error when ``throw_on_error`` is on.
        """
        record = self._activate_next(position)
        if record is None:
            return None
        return await self._run(record)

    async def flush(
        self,
        num_items: int | None = None,
        position: QueuePosition | str | None = None,
    ) -> None:
        """Run up to ``num_items`` pending items one after another, now.

        Ignores ``wait`` and ``concurrency``, and works whether or not the
        queuer is running.
        """
        if self.store.state.is_empty:
            return
        self._cancel_timer()
        self._disarm()
        remaining = self.store.state.size if num_items is None else num_items
        try:
            while remaining > 0 and not self.store.state.is_empty:
                await self.execute(position)
                remaining -= 1
        finally:
            self._resume()

    async def flush_as_batch(self, batch_fn: Callable[[list[TValue]], Awaitable[TResult] | TResult]) -> TResult:
        """Remove every pending item and hand them to ``batch_fn`` in one call.

        Active items are not included. ``batch_fn`` may be sync or async.
        """
        self._cancel_timer()
        self._disarm()
        items = self.store.state.items
        if items:
            self.store.set_state(records=())
            self._emit(self._options.on_items_change, self)
        log.debug("queuer_flushed_as_batch", queuer=self.key, count=len(items))
        result = batch_fn(items)
        if inspect.isawaitable(result):
            return await result  # type: ignore[no-any-return]
        return result  # type: ignore[return-value]

    def peek_active_items(self) -> list[TValue]:
        """Items currently being processed."""
        return self.state.active_items

    def peek_pending_items(self) -> list[TValue]:
        """Items still waiting in the queue."""
        return self.state.items

    def peek_all_items(self) -> list[TValue]:
        """Active items followed by pending items."""
        state = self.state
        return state.active_items + state.items

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _active_count(self, state: QueuerState) -> int:
        return len(getattr(state, "active_records", ()))

    def _reset_fields(self) -> dict[str, Any]:
        # Active tasks keep running, so active_records survives a reset.
        fields = super()._reset_fields()
        fields.update(success_count=0, error_count=0, settled_count=0, last_result=None)
        return fields

    def _tick(self) -> None:
        if not self.store.state.is_running:
            self._disarm()
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.debug("queuer_tick_without_event_loop", queuer=self.key)
            self._disarm()
            return

        self._sweep_expired()
        while True:
            state = self.state
            if not state.is_running or state.is_empty:
                break
            if len(state.active_records) >= self.get_concurrency():
                break
            record = self._activate_next(None)
            if record is None:
                break
            task = loop.create_task(self._run_dispatched(record))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        self._disarm()

    def _activate_next(self, position: QueuePosition | str | None) -> QueueRecord[Any] | None:
        """Move the next pending record into the active set."""
        state = self.state
        index = extraction_index(
            state.records, self._position(position, self._options.get_items_from)
        )
        if index is None:
            return None
        record, remaining = remove_at(state.records, index)
        self.store.set_state(
            records=remaining,
            active_records=state.active_records + (record,),
            execution_count=state.execution_count + 1,
        )
        self._emit(self._options.on_items_change, self)
        self._emit(self._options.on_execute, record.item, self)
        return record

    async def _run(self, record: QueueRecord[Any]) -> Any:
        try:
            result = self._fn(record.item)
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            self.store.set_state(active_records=_without(self.state.active_records, record))
            raise
        except Exception as exc:
            state = self.state
            self.store.set_state(
                active_records=_without(state.active_records, record),
                error_count=state.error_count + 1,
                settled_count=state.settled_count + 1,
            )
            log.debug("queuer_task_failed", queuer=self.key, error=str(exc))
            self._emit(self._options.on_items_change, self)
            self._emit(self._options.on_error, exc, record.item, self)
            self._emit(self._options.on_settled, record.item, self)
            if self._options.should_throw:
                raise
            return None

        state = self.state
        self.store.set_state(
            active_records=_without(state.active_records, record),
            success_count=state.success_count + 1,
            settled_count=state.settled_count + 1,
            last_result=result,
            processed_keys=self._processed_keys_after(record.item),
        )
        self._emit(self._options.on_items_change, self)
        self._emit(self._options.on_success, result, record.item, self)
        self._emit(self._options.on_settled, record.item, self)
        return result

    async def _run_dispatched(self, record: QueueRecord[Any]) -> None:
        try:
            await self._run(record)
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("queuer_task_error", queuer=self.key)
        self._continue()

    def _continue(self) -> None:
        """Schedule the next tick after a dispatched item settles."""
        state = self.state
        if not state.is_running:
            return
        wait = self.get_wait()
        if wait > 0:
            if self._timer is None:
                self.store.set_state(pending_tick=True)
                self._schedule_tick(wait)
            return
        if not state.pending_tick:
            self._arm()


def async_queue(fn: Callable[[TValue], Awaitable[Any] | Any], **options: Any) -> Callable[..., bool]:
    """Build an :class:`AsyncQueuer` and return its bound ``add_item``."""
    return AsyncQueuer(fn, **options).add_item
