"""Versioned state store for queuer snapshots.

The store is the single mutation entry point: every change produces a new
frozen snapshot, run through a ``derive`` hook that recomputes the derived
fields, then published to subscribers.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from typing import Any, Generic, TypeVar

from pacekit.logging import get_logger

log = get_logger("pacekit.queue.store")

StateT = TypeVar("StateT")

Listener = Callable[[StateT], None]


class StateStore(Generic[StateT]):
    """Holds the current snapshot and notifies listeners on change."""

    def __init__(self, initial: StateT, derive: Callable[[StateT], StateT]) -> None:
        self._derive = derive
        self._state = derive(initial)
        self._version = 0
        self._listeners: list[Listener[StateT]] = []

    @property
    def state(self) -> StateT:
        """The current snapshot."""
        return self._state

    @property
    def version(self) -> int:
        """Number of mutations applied since construction."""
        return self._version

    def set_state(self, **changes: Any) -> StateT:
        """Apply ``changes`` atomically and publish the new snapshot.

        Args:
            **changes: Snapshot fields to replace.

        Returns:
            The new snapshot.
        """
        self._state = self._derive(replace(self._state, **changes))  # type: ignore[type-var]
        self._version += 1
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                log.exception("state_listener_failed", version=self._version)
        return self._state

    def subscribe(self, listener: Listener[StateT]) -> Callable[[], None]:
        """Register a listener called with every new snapshot.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
