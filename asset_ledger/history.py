"""
history.py - Asset history reconstruction

Rebuilds the ordered list of point-in-time snapshots of one asset from the
world state's change log for its key.

Rules:
    - A step whose value carries a non-empty payload becomes a HistoryEntry.
    - The value is inspected BEFORE the done flag: the terminal step may
      still carry a payload and it is kept.
    - Steps with an empty payload (e.g. deletions) are skipped entirely.
    - Entries keep the order the store emitted them in (oldest first).
    - The iterator is closed on every exit path.
"""

from __future__ import annotations
from bisect import bisect_right
from datetime import datetime
from typing import List, Optional

from .codec import decode
from .core import AssetRecord, HistoryEntry
from .store import HistoryIterator, WorldState


async def reconstruct_history(iterator: HistoryIterator) -> List[HistoryEntry]:
    """
    Drain a history iterator into snapshots, then close it.

    Args:
        iterator: Freshly opened iterator over one key's change log

    Returns:
        HistoryEntry list in store order (empty if the log is empty)

    Raises:
        DecodeError: If a non-empty payload is not a valid record
    """
    history: List[HistoryEntry] = []
    try:
        while True:
            step = await iterator.next()

            change = step.value
            if change is not None and change.value:
                history.append(HistoryEntry(
                    tx_id=change.tx_id,
                    timestamp=change.timestamp,
                    is_delete=bool(change.is_delete),
                    value=decode(change.value),
                ))

            if step.done:
                return history
    finally:
        await iterator.close()


async def load_history(store: WorldState, msisdn: str) -> List[HistoryEntry]:
    """Open the change log for msisdn and reconstruct it."""
    iterator = await store.get_history_for_key(msisdn)
    return await reconstruct_history(iterator)


def asset_at(history: List[HistoryEntry], timestamp: datetime) -> Optional[AssetRecord]:
    """
    Return the snapshot of an asset in effect at timestamp.

    Uses the latest entry committed at or before timestamp. Returns None
    before the first entry, or when that latest entry is a deletion.
    Deletions with an empty payload never reach the history, so they do
    not end the validity of the snapshot before them.
    """
    index = bisect_right([entry.timestamp for entry in history], timestamp)
    if index == 0:
        return None
    entry = history[index - 1]
    if entry.is_delete:
        return None
    return entry.value
