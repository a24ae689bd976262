"""
Drag and Drop Glue

Turns raw pointer and keyboard input into ``DragEndEvent(active_id, over_id)``
for the board. The event only says where a card landed; what that means is
decided by ``resolve_drop`` in the order status module.

    - Pointer: a drag starts once the pointer has travelled more than the
      activation distance; the drop target is the droppable whose corners
      are closest to the dragged card's corners.
    - Keyboard: left/right arrows move the focused card one column.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

from qrmenu.services.order_status import BOARD_STATUSES, OrderStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def corners(self) -> tuple[Point, Point, Point, Point]:
        return (
            Point(self.left, self.top),
            Point(self.right, self.top),
            Point(self.left, self.bottom),
            Point(self.right, self.bottom),
        )

    def translate(self, dx: float, dy: float) -> "Rect":
        return Rect(self.left + dx, self.top + dy, self.width, self.height)


@dataclass(frozen=True)
class Droppable:
    """A drop target: a status column or an order card."""
    id: str
    rect: Rect


@dataclass(frozen=True)
class DragEndEvent:
    active_id: Optional[str]
    over_id: Optional[str]


def _distance(a: Point, b: Point) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def closest_corners(active: Rect, droppables: Iterable[Droppable]) -> Optional[str]:
    """
    Id of the droppable whose four corners have the smallest summed
    distance to the dragged rect's corners. Ties go to the earlier droppable.
    """
    best_id, best_score = None, math.inf
    active_corners = active.corners()
    for droppable in droppables:
        score = sum(_distance(a, b) for a, b in zip(active_corners, droppable.rect.corners()))
        if score < best_score:
            best_id, best_score = droppable.id, score
    return best_id


class PointerActivation:
    """
    One pointer gesture on a card.

    Presses that never travel past ``distance`` pixels are clicks and never
    produce a drop.
    """

    def __init__(self, active_id: str, origin: Point, rect: Rect, distance: float = 8.0):
        self.active_id = active_id
        self.origin = origin
        self.rect = rect
        self.distance = distance
        self.position = origin
        self.activated = False

    @property
    def delta(self) -> tuple[float, float]:
        return self.position.x - self.origin.x, self.position.y - self.origin.y

    def move_to(self, point: Point) -> bool:
        """Track the pointer. Returns True once the drag is active."""
        self.position = point
        if not self.activated and _distance(self.origin, point) > self.distance:
            self.activated = True
            logger.debug(f"Drag started: {self.active_id}")
        return self.activated

    def current_rect(self) -> Rect:
        dx, dy = self.delta
        return self.rect.translate(dx, dy)

    def release(self, droppables: Iterable[Droppable]) -> Optional[DragEndEvent]:
        """End of gesture. None for a click, else the drop event (``over_id`` may be None)."""
        if not self.activated:
            return None
        droppables = [d for d in droppables if d.id != self.active_id]
        return DragEndEvent(self.active_id, closest_corners(self.current_rect(), droppables))


LEFT = {"left", "arrowleft"}
RIGHT = {"right", "arrowright"}


def keyboard_move(
    order_id: str,
    direction: str,
    orders: Iterable[Mapping[str, Any]],
    columns: Sequence[OrderStatus] = BOARD_STATUSES,
) -> Optional[DragEndEvent]:
    """
    Move a focused card one column left or right.

    Returns the same event a pointer drop on the neighbouring column would
    produce, or None at the board edge / for an unknown card or key.
    """
    order = next((o for o in orders if o.get("id") == order_id), None)
    if order is None:
        return None

    keys = [c.value for c in columns]
    if order.get("status") not in keys:
        return None

    key = direction.strip().lower()
    if key in LEFT:
        step = -1
    elif key in RIGHT:
        step = 1
    else:
        return None

    index = keys.index(order["status"]) + step
    if not 0 <= index < len(keys):
        return None
    return DragEndEvent(order_id, keys[index])
