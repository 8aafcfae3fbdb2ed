"""Insertion and extraction rules for pending records.

Pure functions over record tuples. Priority is enforced at insertion time:
a prioritised record goes immediately before the first record with a
strictly lower priority, which keeps equal priorities in insertion order.
"""

from __future__ import annotations

from typing import Any

from pacekit.queue.models import QueuePosition, QueueRecord

Records = tuple[QueueRecord[Any], ...]


def insert_record(records: Records, record: QueueRecord[Any], position: QueuePosition) -> Records:
    """Return ``records`` with ``record`` inserted.

    Args:
        records: Current pending records.
        record: The new record.
        position: Requested end; ignored when the record has a priority.

    Returns:
        The new records tuple.
    """
    if record.priority is not None:
        for index, existing in enumerate(records):
            if existing.priority is not None and existing.priority < record.priority:
                return records[:index] + (record,) + records[index:]
        return records + (record,)

    if position is QueuePosition.FRONT:
        return (record,) + records
    return records + (record,)


def extraction_index(records: Records, position: QueuePosition) -> int | None:
    """Index of the record the next extraction takes, or ``None`` if empty.

    While any prioritised record is pending the front (highest priority)
    always wins, whatever ``position`` says.
    """
    if not records:
        return None
    if position is QueuePosition.FRONT or any(r.priority is not None for r in records):
        return 0
    return len(records) - 1


def remove_at(records: Records, index: int) -> tuple[QueueRecord[Any], Records]:
    """Split out the record at ``index``.

    Returns:
        Tuple of (removed record, remaining records).
    """
    return records[index], records[:index] + records[index + 1 :]


def replace_at(records: Records, index: int, record: QueueRecord[Any]) -> Records:
    """Return ``records`` with the record at ``index`` swapped for ``record``."""
    return records[:index] + (record,) + records[index + 1 :]
