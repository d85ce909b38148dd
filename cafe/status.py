"""Order status values and the rules for moving between them."""
from __future__ import annotations

from enum import Enum

from .exceptions import InvalidStatus, InvalidTransition


class OrderStatus(str, Enum):
    NEW = "NEW"
    PREPARING = "PREPARING"
    READY = "READY"
    COMPLETED = "COMPLETED"


LIFECYCLE = (
    OrderStatus.NEW,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.COMPLETED,
)

ACTIVE_STATUSES = frozenset({OrderStatus.NEW, OrderStatus.PREPARING})


def parse_status(value: object) -> OrderStatus:
    """Return the matching status, case-sensitively, or raise InvalidStatus."""
    if isinstance(value, OrderStatus):
        return value
    if isinstance(value, str):
        for status in LIFECYCLE:
            if status.value == value:
                return status
    raise InvalidStatus(f"Invalid status: {value!r}")


def next_status(status: OrderStatus | str) -> OrderStatus | None:
    current = parse_status(status)
    index = LIFECYCLE.index(current)
    if index + 1 < len(LIFECYCLE):
        return LIFECYCLE[index + 1]
    return None


def check_transition(current: OrderStatus | str, new: object, *, strict: bool = False) -> OrderStatus:
    """Validate ``new`` against ``current`` and return it as an OrderStatus.

    Without ``strict`` any recognized status is accepted, including moving
    backwards. With ``strict`` an order may stay where it is or move forward.
    """
    target = parse_status(new)
    if strict:
        source = parse_status(current)
        if LIFECYCLE.index(target) < LIFECYCLE.index(source):
            raise InvalidTransition(
                f"Cannot move order from {source.value} back to {target.value}"
            )
    return target
