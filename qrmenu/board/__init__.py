"""
Order board client.

Drag cards between status columns; every move is shown at once and
reconciled with the server in the background.
"""

from qrmenu.board.board import OrderBoard
from qrmenu.board.cache import OrderKeys, QueryCache
from qrmenu.board.client import ApiError, OrdersApiClient
from qrmenu.board.coordinator import OrderUpdateCoordinator
from qrmenu.board.dnd import DragEndEvent, Droppable, Point, PointerActivation, Rect, closest_corners, keyboard_move
from qrmenu.board.notifications import BaseNotifier, InMemoryNotifier, LoggingNotifier, Notification

__all__ = [
    "OrderBoard",
    "OrderKeys",
    "QueryCache",
    "ApiError",
    "OrdersApiClient",
    "OrderUpdateCoordinator",
    "DragEndEvent",
    "Droppable",
    "Point",
    "PointerActivation",
    "Rect",
    "closest_corners",
    "keyboard_move",
    "BaseNotifier",
    "InMemoryNotifier",
    "LoggingNotifier",
    "Notification",
]
