"""
Order Status State Machine

Defines the statuses an order passes through and the single mapping from a
board drop target to a new status.

    RECEIVED -> PREPARING -> READY -> SERVED
        \\___________\\__________\\______-> CANCELLED

DRAFT exists only for administrative create flows and never appears as a
board column.

The board accepts any move between known columns. Stricter rules live in
``can_transition`` and are applied by the server only when
``ENFORCE_STATUS_PIPELINE`` is switched on.
"""

import enum
from typing import Any, Iterable, Mapping, Optional


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    DRAFT = "DRAFT"
    RECEIVED = "RECEIVED"
    PREPARING = "PREPARING"
    READY = "READY"
    SERVED = "SERVED"
    CANCELLED = "CANCELLED"


# Board columns, left to right
BOARD_STATUSES: tuple[OrderStatus, ...] = (
    OrderStatus.RECEIVED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.SERVED,
    OrderStatus.CANCELLED,
)

PIPELINE: tuple[OrderStatus, ...] = (
    OrderStatus.DRAFT,
    OrderStatus.RECEIVED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.SERVED,
)

TERMINAL_STATUSES = frozenset({OrderStatus.SERVED, OrderStatus.CANCELLED})

_BOARD_VALUES = frozenset(s.value for s in BOARD_STATUSES)


def is_board_status(value: Any) -> bool:
    """True only for one of the five board column labels."""
    if isinstance(value, OrderStatus):
        value = value.value
    return isinstance(value, str) and value in _BOARD_VALUES


def parse_status(value: Any) -> OrderStatus:
    """
    Convert a wire value to an OrderStatus.

    Raises:
        ValueError: If the value is not a known status
    """
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().upper())
    except ValueError:
        valid = [s.value for s in OrderStatus]
        raise ValueError(f"Invalid status '{value}'. Options: {valid}")


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """
    Strict pipeline rule.

    Forward moves only, one or more steps; CANCELLED is reachable from any
    non-terminal state; SERVED and CANCELLED are terminal. Re-setting the
    current status is allowed.
    """
    if current == target:
        return True
    if current in TERMINAL_STATUSES:
        return False
    if target == OrderStatus.CANCELLED:
        return True
    if target == OrderStatus.DRAFT:
        return False
    return PIPELINE.index(target) > PIPELINE.index(current)


def _order_id(order: Mapping[str, Any]) -> Any:
    return order.get("id")


def resolve_drop_status(
    over_id: Optional[str],
    orders: Iterable[Mapping[str, Any]],
) -> Optional[str]:
    """
    Map a drop target id to a status label.

    A column id maps to itself. An order card id maps to that order's
    current status: position inside a column carries no meaning, landing
    on a card only says which column was meant.
    """
    if over_id is None:
        return None
    if is_board_status(over_id):
        return over_id
    for order in orders:
        if _order_id(order) == over_id:
            return order.get("status")
    return None


def resolve_drop(
    active_id: Optional[str],
    over_id: Optional[str],
    orders: Iterable[Mapping[str, Any]],
) -> Optional[tuple[str, OrderStatus]]:
    """
    Classify a finished drag as ``(order_id, new_status)`` or a no-op.

    Returns None when the drop target is missing, the resolved value is not
    a board status, the dragged order is unknown, or the order already has
    the resolved status.
    """
    orders = list(orders)

    if active_id is None or over_id is None:
        return None

    new_status = resolve_drop_status(over_id, orders)
    if not is_board_status(new_status):
        return None

    dragged = next((o for o in orders if _order_id(o) == active_id), None)
    if dragged is None or dragged.get("status") == new_status:
        return None

    return active_id, OrderStatus(new_status)
