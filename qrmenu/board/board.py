"""
Order Board

View-model of the kanban board staff use to move orders through the
kitchen. Holds the selected restaurant, filters, drag state and batch
selection; reads orders from the query cache and sends every change through
the optimistic update coordinator.
"""

import asyncio
import contextlib
import logging
from datetime import datetime, time, timezone
from typing import Any, Optional

from qrmenu.board.cache import OrderKeys, QueryCache
from qrmenu.board.client import ApiError
from qrmenu.board.coordinator import OrderUpdateCoordinator, OrdersApi, error_text
from qrmenu.board.dnd import DragEndEvent, Point, PointerActivation, Rect, keyboard_move
from qrmenu.board.notifications import BaseNotifier, LoggingNotifier
from qrmenu.core.config import get_settings
from qrmenu.services.order_status import BOARD_STATUSES, parse_status, resolve_drop

logger = logging.getLogger(__name__)

SORT_FIELDS = ("createdAt", "totalAmount")
SORT_ORDERS = ("asc", "desc")


def today_range(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Start and end of the current UTC day."""
    now = now or datetime.now(timezone.utc)
    day = now.date()
    return (
        datetime.combine(day, time.min, tzinfo=timezone.utc),
        datetime.combine(day, time.max, tzinfo=timezone.utc),
    )


class OrderBoard:
    """
    Order board for one restaurant at a time.

    Usage:
        async with OrdersApiClient() as api:
            board = OrderBoard(api, restaurant_id="...")
            await board.refresh()
            board.columns()["RECEIVED"]
            await board.drag_end(DragEndEvent(order_id, "PREPARING"))
    """

    def __init__(
        self,
        api: OrdersApi,
        restaurant_id: Optional[str] = None,
        cache: Optional[QueryCache] = None,
        notifier: Optional[BaseNotifier] = None,
        poll_interval: Optional[float] = None,
        drag_distance: Optional[float] = None,
        toast_duration: Optional[float] = None,
    ):
        settings = get_settings()

        self.api = api
        self.cache = cache or QueryCache()
        self.notifier = notifier or LoggingNotifier()
        self.coordinator = OrderUpdateCoordinator(
            self.cache,
            api,
            self.notifier,
            toast_duration=toast_duration if toast_duration is not None else settings.board_toast_duration,
        )
        self.poll_interval = poll_interval if poll_interval is not None else settings.board_poll_interval
        self.drag_distance = drag_distance if drag_distance is not None else settings.board_drag_distance

        self.restaurant_id = restaurant_id
        self.status_filter = "ALL"
        self.sort_by = "createdAt"
        self.sort_order = "desc"
        self._date_range: Optional[tuple[datetime, datetime]] = None

        self.active_id: Optional[str] = None
        self.batch_mode = False
        self._selected: dict[str, None] = {}
        self._poll_task: Optional[asyncio.Task] = None

    # =========================================================================
    # FILTERS & DATA
    # =========================================================================

    @property
    def date_range(self) -> tuple[datetime, datetime]:
        """The range set through ``set_filters``, otherwise today (recomputed on every read)."""
        return self._date_range or today_range()

    def filters(self) -> dict[str, Any]:
        start, end = self.date_range
        return {
            "status": None if self.status_filter == "ALL" else self.status_filter,
            "sortBy": self.sort_by,
            "sortOrder": self.sort_order,
            "startDate": start.isoformat(),
            "endDate": end.isoformat(),
        }

    @property
    def list_key(self) -> tuple:
        return OrderKeys.list({"restaurantId": self.restaurant_id, **self.filters()})

    def set_filters(
        self,
        status: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
        date_range: Optional[tuple[datetime, datetime]] = None,
    ) -> None:
        if date_range is not None:
            start, end = date_range
            if start > end:
                raise ValueError("date_range start must not be after its end")
            self._date_range = (start, end)
        if status is not None:
            self.status_filter = "ALL" if status.upper() == "ALL" else parse_status(status).value
        if sort_by is not None:
            if sort_by not in SORT_FIELDS:
                raise ValueError(f"sort_by must be one of {SORT_FIELDS}")
            self.sort_by = sort_by
        if sort_order is not None:
            if sort_order not in SORT_ORDERS:
                raise ValueError(f"sort_order must be one of {SORT_ORDERS}")
            self.sort_order = sort_order

    def follow_today(self) -> None:
        """Drop a custom date range; the board shows the current day again."""
        self._date_range = None

    def select_restaurant(self, restaurant_id: str) -> None:
        if restaurant_id != self.restaurant_id:
            self.restaurant_id = restaurant_id
            self.clear_selection()

    def orders(self) -> list[dict[str, Any]]:
        data = self.cache.get(self.list_key)
        if isinstance(data, dict) and isinstance(data.get("orders"), list):
            return data["orders"]
        return []

    def columns(self) -> dict[str, list[dict[str, Any]]]:
        """Cached orders grouped by board column, in list order."""
        grouped: dict[str, list[dict[str, Any]]] = {s.value: [] for s in BOARD_STATUSES}
        for order in self.orders():
            if order.get("status") in grouped:
                grouped[order["status"]].append(order)
        return grouped

    def is_updating(self, order_id: str) -> bool:
        return self.coordinator.is_updating(order_id)

    async def refresh(self) -> list[dict[str, Any]]:
        """Load the order list for the current restaurant and filters."""
        if not self.restaurant_id:
            return []

        restaurant_id, filters = self.restaurant_id, self.filters()

        async def fetch_orders() -> dict[str, Any]:
            return await self.api.list_orders(restaurant_id, **filters)

        try:
            await self.cache.fetch(self.list_key, fetch_orders)
        except Exception as e:
            logger.warning(f"Loading orders failed: {error_text(e)}")
            self.notifier.error(f"Failed to load orders: {error_text(e)}")
        return self.orders()

    # =========================================================================
    # POLLING
    # =========================================================================

    def start_polling(self) -> asyncio.Task:
        """Refresh every ``poll_interval`` seconds in the background."""
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll_loop())
            logger.info(f"Polling orders every {self.poll_interval}s")
        return self._poll_task

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.refresh()
            except Exception:
                logger.exception("Order poll failed, retrying next interval")
            await asyncio.sleep(self.poll_interval)

    async def stop_polling(self) -> None:
        if self._poll_task is None:
            return
        self._poll_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._poll_task
        self._poll_task = None

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    # =========================================================================
    # DRAG & DROP
    # =========================================================================

    def drag_start(self, active_id: str) -> None:
        self.active_id = active_id

    def pointer_down(self, order_id: str, origin: Point, rect: Rect) -> PointerActivation:
        """Begin tracking a pointer gesture on a card."""
        gesture = PointerActivation(order_id, origin, rect, distance=self.drag_distance)
        self.active_id = order_id
        return gesture

    async def drag_end(self, event: Optional[DragEndEvent]) -> bool:
        """
        Apply a finished drag. No-op drops (no target, unknown target, same
        column) issue no request and leave the cache untouched.
        """
        self.active_id = None
        if event is None:
            return False

        drop = resolve_drop(event.active_id, event.over_id, self.orders())
        if drop is None:
            logger.debug(f"Ignored drop {event.active_id} → {event.over_id}")
            return False

        order_id, new_status = drop
        return await self.coordinator.request_status_change(order_id, new_status)

    async def move_with_keyboard(self, order_id: str, direction: str) -> bool:
        return await self.drag_end(keyboard_move(order_id, direction, self.orders()))

    # =========================================================================
    # BATCH MODE
    # =========================================================================

    def toggle_batch_mode(self) -> bool:
        if self.batch_mode:
            self.clear_selection()
        self.batch_mode = not self.batch_mode
        return self.batch_mode

    def toggle_select(self, order_id: str, checked: bool) -> None:
        if checked:
            self._selected[order_id] = None
        else:
            self._selected.pop(order_id, None)

    def clear_selection(self) -> None:
        self._selected.clear()

    @property
    def selected_ids(self) -> list[str]:
        return list(self._selected)

    async def apply_bulk_update(self, status: str) -> bool:
        """Move every selected order to ``status``. Leaves batch mode on success."""
        ids = self.selected_ids
        if not ids:
            return False

        ok = await self.coordinator.request_bulk_status_change(ids, status)
        if ok:
            self.clear_selection()
            self.batch_mode = False
        return ok

    # =========================================================================
    # STATS & EXPORT
    # =========================================================================

    async def stats(self, period: str = "today") -> Optional[dict[str, Any]]:
        if not self.restaurant_id:
            return None
        restaurant_id = self.restaurant_id

        async def fetch_stats() -> dict[str, Any]:
            return await self.api.order_stats(restaurant_id, period)

        try:
            return await self.cache.fetch(OrderKeys.stats(restaurant_id, period), fetch_stats)
        except ApiError as e:
            self.notifier.error(f"Failed to load statistics: {e.message}")
            return None

    async def export(self, format: str = "csv") -> Optional[bytes]:
        if not self.restaurant_id:
            return None
        filters = {k: v for k, v in self.filters().items() if k in ("status", "startDate", "endDate")}
        try:
            content = await self.api.export_orders(self.restaurant_id, format, **filters)
        except Exception as e:
            self.notifier.error(f"Failed to export orders: {error_text(e)}")
            return None
        self.notifier.success(f"Orders exported successfully as {format.upper()}")
        return content
