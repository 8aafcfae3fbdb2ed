"""Expiration sweep over pending records."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pacekit.queue.models import QueueRecord

Records = tuple[QueueRecord[Any], ...]


def split_expired(
    records: Records,
    is_expired: Callable[[QueueRecord[Any]], bool],
) -> tuple[Records, Records]:
    """Partition ``records`` into (kept, expired), both in queue order."""
    kept: list[QueueRecord[Any]] = []
    expired: list[QueueRecord[Any]] = []
    for record in records:
        (expired if is_expired(record) else kept).append(record)
    return tuple(kept), tuple(expired)


def duration_check(expiration_duration: float, now_ms: float) -> Callable[[QueueRecord[Any]], bool]:
    """Build the default age test: older than ``expiration_duration`` ms."""

    def check(record: QueueRecord[Any]) -> bool:
        return now_ms - record.inserted_at > expiration_duration

    return check
