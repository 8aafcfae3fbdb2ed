"""Queuer options, with defaults drawn from :mod:`pacekit.config`.

``wait`` and ``concurrency`` are either a constant or a callable taking the
queuer; :func:`resolve_option` evaluates them at the point of use so a
computed value is never cached.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from pacekit.config import get_settings
from pacekit.queue.models import DeduplicateStrategy, QueuePosition

DynamicNumber = float | Callable[[Any], float]


def resolve_option(value: DynamicNumber, queuer: Any) -> float:
    """Evaluate a constant-or-computed option against ``queuer``."""
    if callable(value):
        return value(queuer)
    return value


def default_get_priority(item: Any) -> float | None:
    """Read an explicit ``priority`` attribute or mapping key, if numeric."""
    if isinstance(item, Mapping):
        value = item.get("priority")
    else:
        value = getattr(item, "priority", None)
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return value


@dataclass(kw_only=True)
class QueuerOptions:
    """Options shared by the synchronous and asynchronous queuers.

    Attributes:
        add_items_to: Default insertion end.
        get_items_from: Default extraction end.
        max_size: Backpressure ceiling (``None`` = unbounded).
        get_priority: Priority extractor; higher runs first. Overrides
            position-based insertion for items it returns a number for.
        expiration_duration: Max age in ms before a pending item expires
            (``None`` = never).
        get_is_expired: Custom expiry test ``(item, inserted_at_ms) -> bool``;
            takes precedence over ``expiration_duration``.
        deduplicate_items: Enable in-queue and cross-execution dedup.
        deduplicate_strategy: ``keep-first`` or ``keep-last``.
        get_item_key: Dedup key extractor (default: the item itself).
        max_tracked_keys: Capacity of the processed-key history.
        wait: Delay in ms between ticks, constant or ``fn(queuer)``.
        started: Initial running flag.
        initial_items: Items added at construction.
        initial_state: Partial snapshot to seed (``items``,
            ``item_timestamps``, ``processed_keys``, counters, ``is_running``).
        key: Name used in log events.
    """

    add_items_to: QueuePosition | str = QueuePosition.BACK
    get_items_from: QueuePosition | str = QueuePosition.FRONT
    max_size: int | None = None
    get_priority: Callable[[Any], float | None] | None = None
    expiration_duration: float | None = None
    get_is_expired: Callable[[Any, float], bool] | None = None
    deduplicate_items: bool = False
    deduplicate_strategy: DeduplicateStrategy | str = DeduplicateStrategy.KEEP_FIRST
    get_item_key: Callable[[Any], Hashable] | None = None
    max_tracked_keys: int = field(default_factory=lambda: get_settings().queuer_max_tracked_keys)
    wait: DynamicNumber = field(default_factory=lambda: get_settings().queuer_default_wait_ms)
    started: bool = field(default_factory=lambda: get_settings().queuer_started)
    initial_items: Sequence[Any] = ()
    initial_state: Mapping[str, Any] | None = None
    key: str | None = None

    # Callbacks
    on_items_change: Callable[[Any], None] | None = None
    on_reject: Callable[[Any, Any], None] | None = None
    on_expire: Callable[[Any, Any], None] | None = None
    on_duplicate: Callable[[Any, Any, Any], None] | None = None
    on_execute: Callable[[Any, Any], None] | None = None
    on_is_running_change: Callable[[Any], None] | None = None
    on_state_change: Callable[[Any, Any], None] | None = None

    def __post_init__(self) -> None:
        self.add_items_to = QueuePosition(self.add_items_to)
        self.get_items_from = QueuePosition(self.get_items_from)
        self.deduplicate_strategy = DeduplicateStrategy(self.deduplicate_strategy)
        if self.max_size is not None and self.max_size < 0:
            raise ValueError(f"max_size must be >= 0, got: {self.max_size}")
        if self.max_tracked_keys < 1:
            raise ValueError(f"max_tracked_keys must be >= 1, got: {self.max_tracked_keys}")
        if self.expiration_duration is not None and self.expiration_duration < 0:
            raise ValueError(
                f"expiration_duration must be >= 0, got: {self.expiration_duration}"
            )
        if not callable(self.wait) and self.wait < 0:
            raise ValueError(f"wait must be >= 0, got: {self.wait}")


@dataclass(kw_only=True)
class AsyncQueuerOptions(QueuerOptions):
    """Options for :class:`~pacekit.queue.async_queuer.AsyncQueuer`.

    Attributes:
        concurrency: Max in-flight tasks, constant or ``fn(queuer)``.
        throw_on_error: Re-raise worker errors after ``on_error``. Defaults
            to ``True`` unless ``on_error`` is given.
    """

    concurrency: DynamicNumber = field(
        default_factory=lambda: get_settings().queuer_default_concurrency
    )
    throw_on_error: bool | None = None
    on_success: Callable[[Any, Any, Any], None] | None = None
    on_error: Callable[[BaseException, Any, Any], None] | None = None
    on_settled: Callable[[Any, Any], None] | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if not callable(self.concurrency) and self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got: {self.concurrency}")

    @property
    def should_throw(self) -> bool:
        """Effective ``throw_on_error`` after applying the default."""
        if self.throw_on_error is not None:
            return self.throw_on_error
        return self.on_error is None
