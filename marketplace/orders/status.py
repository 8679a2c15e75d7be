import enum
from typing import Dict, FrozenSet

from ..common.errors import InvalidTransition, ValidationFailed


class OrderStatus(str, enum.Enum):
    AWAITING_WIRE = "awaiting_wire"
    ORDERED = "ordered"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.AWAITING_WIRE: frozenset({OrderStatus.ORDERED, OrderStatus.CANCELLED}),
    OrderStatus.ORDERED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset(
        {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED, OrderStatus.CANCELLED}
    ),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

INITIAL_STATUSES = frozenset({OrderStatus.ORDERED, OrderStatus.AWAITING_WIRE})


def parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationFailed(
            f"Unknown order status '{value}'",
            fields=[{"field": "status", "message": "unknown status"}],
        ) from None


def is_terminal(status: OrderStatus) -> bool:
    return not TRANSITIONS[status]


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(current: str, target: str) -> OrderStatus:
    """Return the target status, or raise if the move is not in the table."""
    src = OrderStatus(current)
    dst = parse_status(target)
    if is_terminal(src):
        raise InvalidTransition(
            f"Order is already {src.value}",
            current=src.value,
            requested=dst.value,
        )
    if not can_transition(src, dst):
        raise InvalidTransition(
            f"Cannot move order from {src.value} to {dst.value}",
            current=src.value,
            requested=dst.value,
        )
    return dst
