"""Queue position and wait estimate for a customer's order."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

BASE_MINUTES = 1
PER_ITEM_MINUTES = 2


@dataclass(frozen=True)
class QueueEntry:
    order_id: str
    item_count: int


@dataclass(frozen=True)
class QueueEstimate:
    position: Optional[int]
    queue_length: int
    eta_minutes: int


def estimate(
    order_id: str,
    active: Iterable[QueueEntry],
    *,
    base_minutes: int = BASE_MINUTES,
    per_item_minutes: int = PER_ITEM_MINUTES,
) -> QueueEstimate:
    """Locate ``order_id`` among ``active`` entries, oldest first.

    Line items of every entry before the target count towards the ETA. When
    the target is not in the list (it is no longer active) every entry counts.
    """
    entries = list(active)
    position: Optional[int] = None
    items_ahead = 0
    for index, entry in enumerate(entries):
        if entry.order_id == order_id:
            position = index
            break
        items_ahead += entry.item_count
    return QueueEstimate(
        position=position,
        queue_length=len(entries),
        eta_minutes=base_minutes + items_ahead * per_item_minutes,
    )
