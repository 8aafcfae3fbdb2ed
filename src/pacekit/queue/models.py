"""Queue models — position/strategy/status enums, records and state snapshots.

A record flows through: pending (``records``) -> active (async only,
``active_records``) -> settled, or leaves early by expiry, clear or reset.
Snapshots are frozen; the engine swaps in a new one on every mutation.
"""

from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

TValue = TypeVar("TValue")


class QueuePosition(str, Enum):
    """End of the queue an item is added to or taken from."""

    FRONT = "front"
    BACK = "back"


class DeduplicateStrategy(str, Enum):
    """What to do when an added item matches a pending one."""

    KEEP_FIRST = "keep-first"
    KEEP_LAST = "keep-last"


class QueuerStatus(str, Enum):
    """Coarse scheduler status derived from the snapshot."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class QueueRecord(Generic[TValue]):
    """A pending item plus its insertion time.

    Attributes:
        item: The caller-supplied value.
        inserted_at: Insertion time in epoch milliseconds.
        priority: Priority computed at insertion (``None`` when unprioritised).
    """

    item: TValue
    inserted_at: float
    priority: float | None = None


@dataclass(frozen=True)
class QueuerState:
    """Snapshot of a synchronous queuer.

    The trailing block of fields is derived by the engine on every mutation
    and must not be set directly.
    """

    records: tuple[QueueRecord[Any], ...] = ()
    execution_count: int = 0
    expiration_count: int = 0
    rejection_count: int = 0
    processed_keys: tuple[Hashable, ...] = ()
    is_running: bool = True
    pending_tick: bool = False

    # Derived
    size: int = 0
    is_empty: bool = True
    is_full: bool = False
    is_idle: bool = False
    status: QueuerStatus = QueuerStatus.IDLE

    @property
    def items(self) -> list[Any]:
        """Pending items in queue order."""
        return [record.item for record in self.records]

    @property
    def item_timestamps(self) -> list[float]:
        """Insertion timestamps, parallel to :attr:`items`."""
        return [record.inserted_at for record in self.records]

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary (e.g. for caller-side persistence)."""
        return {
            "items": self.items,
            "item_timestamps": self.item_timestamps,
            "execution_count": self.execution_count,
            "expiration_count": self.expiration_count,
            "rejection_count": self.rejection_count,
            "processed_keys": list(self.processed_keys),
            "is_running": self.is_running,
            "pending_tick": self.pending_tick,
            "size": self.size,
            "is_empty": self.is_empty,
            "is_full": self.is_full,
            "is_idle": self.is_idle,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class AsyncQueuerState(QueuerState):
    """Snapshot of an asynchronous queuer.

    Adds the active set and per-outcome counters.
    """

    active_records: tuple[QueueRecord[Any], ...] = ()
    success_count: int = 0
    error_count: int = 0
    settled_count: int = 0
    last_result: Any = None

    @property
    def active_items(self) -> list[Any]:
        """Items currently being processed."""
        return [record.item for record in self.active_records]

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary."""
        data = super().to_dict()
        data.update(
            {
                "active_items": self.active_items,
                "success_count": self.success_count,
                "error_count": self.error_count,
                "settled_count": self.settled_count,
                "last_result": self.last_result,
            }
        )
        return data
