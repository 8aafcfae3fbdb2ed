"""Shared queuer engine — insertion, extraction, expiry, dedup and lifecycle.

:class:`BaseQueuer` owns the state store, the processed-key history and the
single timer handle used by the tick loop. Subclasses supply ``_tick`` and
the way an extracted item is executed.

All mutation goes through ``self.store.set_state`` and every step re-reads
``self.store.state``, so callbacks may call back into the queuer (add, stop,
flush) without working on a stale snapshot.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Hashable
from dataclasses import fields, replace
from functools import partial
from typing import Any, Generic, TypeVar

from pacekit.logging import get_logger
from pacekit.queue.dedup import ProcessedKeyHistory, default_item_key, find_pending
from pacekit.queue.expiration import duration_check, split_expired
from pacekit.queue.models import (
    DeduplicateStrategy,
    QueuePosition,
    QueueRecord,
    QueuerState,
    QueuerStatus,
)
from pacekit.queue.options import QueuerOptions, default_get_priority, resolve_option
from pacekit.queue.ordering import extraction_index, insert_record, remove_at, replace_at
from pacekit.queue.store import StateStore
from pacekit.queue.timers import TimerHandle, call_later, now_ms

log = get_logger("pacekit.queue.base")

TValue = TypeVar("TValue")

# Snapshot fields recomputed by ``_derive`` or owned by the engine.
_ENGINE_FIELDS = frozenset(
    {"records", "pending_tick", "active_records", "size", "is_empty", "is_full", "is_idle", "status"}
)

# Keys emitted by ``to_dict`` that a restore recomputes or cannot resume.
_SNAPSHOT_ONLY_FIELDS = frozenset(
    {"pending_tick", "size", "is_empty", "is_full", "is_idle", "status", "active_items"}
)


class BaseQueuer(Generic[TValue]):
    """Common machinery for :class:`Queuer` and :class:`AsyncQueuer`."""

    _state_cls: type[QueuerState] = QueuerState

    def __init__(self, fn: Callable[[TValue], Any], options: QueuerOptions) -> None:
        self._fn = fn
        self._options = options
        self._lock = threading.RLock()
        self._timer: TimerHandle | None = None
        self._timer_generation = 0
        self._history = ProcessedKeyHistory(options.max_tracked_keys)
        self.store: StateStore[Any] = StateStore(self._build_initial_state(), derive=self._derive)
        self.store.subscribe(self._publish_state)
        self._seed()

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------

    @property
    def options(self) -> QueuerOptions:
        """The current options."""
        return self._options

    @property
    def state(self) -> QueuerState:
        """The current snapshot."""
        return self.store.state  # type: ignore[no-any-return]

    @property
    def key(self) -> str:
        """Name used in log events."""
        return self._options.key or type(self).__name__

    def set_options(self, **changes: Any) -> None:
        """Merge ``changes`` into the current options.

        Raises:
            TypeError: If an option name is unknown.
            ValueError: If a value is invalid.
        """
        with self._lock:
            self._options = replace(self._options, **changes)
            if "max_tracked_keys" in changes:
                self._history.resize(self._options.max_tracked_keys)
            # Re-derive: max_size may have changed is_full.
            self.store.set_state(processed_keys=self._history.snapshot())

    def get_wait(self) -> float:
        """Delay in ms between ticks, resolved now."""
        return max(0.0, float(resolve_option(self._options.wait, self)))

    # ------------------------------------------------------------------
    # Adding and taking items
    # ------------------------------------------------------------------

    def add_item(self, item: TValue, position: QueuePosition | str | None = None) -> bool:
        """Add ``item`` and wake the scheduler if it is running and idle.

        Args:
            item: The value to enqueue.
            position: ``front`` or ``back``; defaults to ``add_items_to``.
                Ignored for prioritised items.

        Returns:
            True if the item was accepted (added or replaced a pending
            duplicate), False if it was rejected or deduplicated away.
        """
        with self._lock:
            if not self._insert(item, position):
                return False
            self._emit(self._options.on_items_change, self)
            state = self.store.state
            if state.is_running and not state.pending_tick:
                self._arm()
            return True

    def get_next_item(self, position: QueuePosition | str | None = None) -> TValue | None:
        """Remove and return the next item without executing it."""
        with self._lock:
            record = self._take_next(position)
            return None if record is None else record.item

    def peek_next_item(self, position: QueuePosition | str | None = None) -> TValue | None:
        """Return the item the next extraction would take, without removing it."""
        records = self.store.state.records
        index = extraction_index(records, self._position(position, self._options.get_items_from))
        return None if index is None else records[index].item

    def peek_all_items(self) -> list[TValue]:
        """Copy of every item held by the queuer."""
        return self.store.state.items

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin processing; arms the scheduler if items are pending."""
        with self._lock:
            was_running = self.store.state.is_running
            if not was_running:
                self.store.set_state(is_running=True)
                log.debug("queuer_started", queuer=self.key)
                self._emit(self._options.on_is_running_change, self)
            self._resume()

    def stop(self) -> None:
        """Stop admitting work to the worker. In-flight work is not aborted."""
        with self._lock:
            was_running = self.store.state.is_running
            self._cancel_timer()
            self.store.set_state(is_running=False, pending_tick=False)
            if was_running:
                log.debug("queuer_stopped", queuer=self.key)
                self._emit(self._options.on_is_running_change, self)

    def clear(self) -> None:
        """Drop all pending items. In-flight work is not touched."""
        with self._lock:
            if self.store.state.is_empty:
                return
            self.store.set_state(records=())
            self._emit(self._options.on_items_change, self)

    def reset(self, with_initial_items: bool = False) -> None:
        """Return counters, history, pending items and running flag to defaults.

        Args:
            with_initial_items: Re-add ``initial_items`` afterwards.
        """
        with self._lock:
            self._cancel_timer()
            before = self.store.state
            self._history.clear()
            self.store.set_state(**self._reset_fields())
            if with_initial_items:
                for item in self._options.initial_items:
                    self._insert(item, None)
            after = self.store.state
            if before.records or after.records:
                self._emit(self._options.on_items_change, self)
            if before.is_running != after.is_running:
                self._emit(self._options.on_is_running_change, self)
            self._resume()

    # ------------------------------------------------------------------
    # Processed-key history
    # ------------------------------------------------------------------

    def has_processed_key(self, key: Hashable) -> bool:
        """Whether ``key`` is in the processed-key history."""
        return key in self._history

    def peek_processed_keys(self) -> list[Hashable]:
        """Copy of the processed-key history, oldest first."""
        return list(self._history.snapshot())

    def clear_processed_keys(self) -> None:
        """Forget every processed key."""
        with self._lock:
            self._history.clear()
            self.store.set_state(processed_keys=())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _tick(self) -> None:
        raise NotImplementedError

    def _active_count(self, state: QueuerState) -> int:
        return 0

    def _reset_fields(self) -> dict[str, Any]:
        return {
            "records": (),
            "execution_count": 0,
            "expiration_count": 0,
            "rejection_count": 0,
            "processed_keys": (),
            "is_running": self._options.started,
            "pending_tick": False,
        }

    def _derive(self, state: QueuerState) -> QueuerState:
        size = len(state.records)
        max_size = self._options.max_size
        is_empty = size == 0
        is_idle = state.is_running and is_empty and self._active_count(state) == 0
        if not state.is_running:
            status = QueuerStatus.STOPPED
        elif is_idle:
            status = QueuerStatus.IDLE
        else:
            status = QueuerStatus.RUNNING
        return replace(
            state,
            size=size,
            is_empty=is_empty,
            is_full=max_size is not None and size >= max_size,
            is_idle=is_idle,
            status=status,
        )

    def _build_initial_state(self) -> QueuerState:
        opts = self._options
        seed = dict(opts.initial_state or {})
        items = seed.pop("items", None)
        timestamps = seed.pop("item_timestamps", None)
        for key in seed.pop("processed_keys", ()):
            self._history.add(key)
        is_running = seed.pop("is_running", opts.started)
        for name in _SNAPSHOT_ONLY_FIELDS:
            seed.pop(name, None)

        allowed = {f.name for f in fields(self._state_cls)} - _ENGINE_FIELDS
        unknown = set(seed) - allowed
        if unknown:
            raise ValueError(f"Unknown initial_state fields: {sorted(unknown)}")

        records: tuple[QueueRecord[Any], ...] = ()
        if items is not None:
            stamps = list(timestamps) if timestamps is not None else [now_ms()] * len(items)
            if len(stamps) != len(items):
                raise ValueError("initial_state items and item_timestamps differ in length")
            if opts.max_size is not None and len(items) > opts.max_size:
                raise ValueError(f"initial_state holds {len(items)} items, max_size is {opts.max_size}")
            records = tuple(
                QueueRecord(item=item, inserted_at=ts, priority=self._priority_of(item))
                for item, ts in zip(items, stamps, strict=True)
            )

        return self._state_cls(
            records=records,
            is_running=is_running,
            processed_keys=self._history.snapshot(),
            **seed,
        )

    def _seed(self) -> None:
        opts = self._options
        if opts.initial_state and "items" in opts.initial_state:
            changed = not self.store.state.is_empty
        else:
            changed = False
            for item in opts.initial_items:
                changed = self._insert(item, None) or changed
        if changed:
            self._emit(opts.on_items_change, self)
        self._resume()

    def _insert(self, item: TValue, position: QueuePosition | str | None) -> bool:
        """Dedup, capacity check and ordered insertion. No items-change event."""
        opts = self._options
        state = self.store.state

        if opts.deduplicate_items:
            key = self._item_key(item)
            if key in self._history:
                log.debug("queuer_duplicate_processed", queuer=self.key)
                self._emit(opts.on_duplicate, item, None, self)
                return False
            index = find_pending(state.records, key, self._item_key)
            if index is not None:
                existing = state.records[index]
                log.debug(
                    "queuer_duplicate_pending",
                    queuer=self.key,
                    strategy=opts.deduplicate_strategy.value,
                )
                self._emit(opts.on_duplicate, item, existing.item, self)
                if opts.deduplicate_strategy is DeduplicateStrategy.KEEP_FIRST:
                    return False
                # Re-read: on_duplicate may have mutated the queue.
                records = self.store.state.records
                index = find_pending(records, key, self._item_key)
                if index is None:
                    return False
                replacement = QueueRecord(
                    item=item,
                    inserted_at=records[index].inserted_at,
                    priority=records[index].priority,
                )
                self.store.set_state(records=replace_at(records, index, replacement))
                return True

        if state.is_full:
            self.store.set_state(rejection_count=state.rejection_count + 1)
            log.debug("queuer_item_rejected", queuer=self.key, size=state.size)
            self._emit(opts.on_reject, item, self)
            return False

        record = QueueRecord(item=item, inserted_at=now_ms(), priority=self._priority_of(item))
        records = insert_record(
            state.records, record, self._position(position, opts.add_items_to)
        )
        self.store.set_state(records=records)
        return True

    def _take_next(self, position: QueuePosition | str | None) -> QueueRecord[Any] | None:
        state = self.store.state
        index = extraction_index(
            state.records, self._position(position, self._options.get_items_from)
        )
        if index is None:
            return None
        record, remaining = remove_at(state.records, index)
        self.store.set_state(records=remaining)
        self._emit(self._options.on_items_change, self)
        return record

    def _sweep_expired(self) -> None:
        opts = self._options
        if opts.get_is_expired is None and opts.expiration_duration is None:
            return
        state = self.store.state
        if not state.records:
            return

        if opts.get_is_expired is not None:
            get_is_expired = opts.get_is_expired

            def check(record: QueueRecord[Any]) -> bool:
                return bool(get_is_expired(record.item, record.inserted_at))

        else:
            check = duration_check(opts.expiration_duration, now_ms())  # type: ignore[arg-type]

        kept, expired = split_expired(state.records, check)
        if not expired:
            return
        self.store.set_state(
            records=kept,
            expiration_count=state.expiration_count + len(expired),
        )
        log.debug("queuer_items_expired", queuer=self.key, count=len(expired))
        for record in expired:
            self._emit(opts.on_expire, record.item, self)
        self._emit(opts.on_items_change, self)

    def _processed_keys_after(self, item: TValue) -> tuple[Hashable, ...]:
        """Record ``item`` as consumed; returns the history for the next snapshot."""
        if self._options.deduplicate_items:
            self._history.add(self._item_key(item))
        return self._history.snapshot()

    def _item_key(self, item: Any) -> Hashable:
        get_item_key = self._options.get_item_key
        if get_item_key is None:
            return default_item_key(item)
        # User keys get the same unhashable fallback as items.
        return default_item_key(get_item_key(item))

    def _priority_of(self, item: Any) -> float | None:
        get_priority = self._options.get_priority or default_get_priority
        return get_priority(item)

    @staticmethod
    def _position(position: QueuePosition | str | None, default: QueuePosition | str) -> QueuePosition:
        return QueuePosition(position if position is not None else default)

    # Scheduler plumbing ------------------------------------------------

    def _arm(self) -> None:
        self.store.set_state(pending_tick=True)
        self._tick()

    def _disarm(self) -> None:
        if self.store.state.pending_tick and self._timer is None:
            self.store.set_state(pending_tick=False)

    def _resume(self) -> None:
        """Arm the scheduler if it is running, idle and has work."""
        state = self.store.state
        if state.is_running and not state.pending_tick and not state.is_empty:
            self._arm()

    def _schedule_tick(self, wait_ms: float) -> None:
        self._cancel_timer()
        self._timer = call_later(wait_ms, partial(self._on_timer, self._timer_generation))

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._timer_generation:
                return
            self._timer = None
            self._tick()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            self._timer_generation += 1

    def _publish_state(self, state: QueuerState) -> None:
        self._emit(self._options.on_state_change, state, self)

    def _emit(self, callback: Callable[..., Any] | None, *args: Any) -> None:
        """Invoke a user callback; a failure is logged and never propagates."""
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            log.exception(
                "queuer_callback_failed",
                queuer=self.key,
                callback=getattr(callback, "__name__", repr(callback)),
            )
