"""In-queue duplicate lookup and the bounded processed-key history."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable, Hashable, Iterable
from typing import Any

from pacekit.queue.models import QueueRecord


def default_item_key(item: Any) -> Hashable:
    """Use the item itself as its key, or its ``repr`` when unhashable."""
    try:
        hash(item)
    except TypeError:
        return repr(item)
    return item  # type: ignore[no-any-return]


def find_pending(
    records: Iterable[QueueRecord[Any]],
    key: Hashable,
    get_item_key: Callable[[Any], Hashable],
) -> int | None:
    """Index of the first pending record whose key equals ``key``."""
    for index, record in enumerate(records):
        if get_item_key(record.item) == key:
            return index
    return None


class ProcessedKeyHistory:
    """Bounded, insertion-ordered set of processed keys.

    Adding past ``max_size`` evicts the oldest key. Re-adding a key moves it
    to the newest position.
    """

    def __init__(self, max_size: int, keys: Iterable[Hashable] = ()) -> None:
        self._max_size = max_size
        self._keys: OrderedDict[Hashable, None] = OrderedDict()
        for key in keys:
            self.add(key)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def max_size(self) -> int:
        return self._max_size

    def add(self, key: Hashable) -> None:
        """Record ``key`` as processed, evicting the oldest on overflow."""
        if key in self._keys:
            self._keys.move_to_end(key)
        else:
            self._keys[key] = None
        self._trim()

    def resize(self, max_size: int) -> None:
        """Change the capacity, evicting oldest keys if it shrinks."""
        self._max_size = max_size
        self._trim()

    def clear(self) -> None:
        self._keys.clear()

    def snapshot(self) -> tuple[Hashable, ...]:
        """Keys from oldest to newest."""
        return tuple(self._keys)

    def _trim(self) -> None:
        while len(self._keys) > self._max_size:
            self._keys.popitem(last=False)
