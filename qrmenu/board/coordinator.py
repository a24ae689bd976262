"""
Optimistic Update Coordinator

Every order mutation issued by the board goes through here:

    1. cancel in-flight list refetches
    2. snapshot the cached order lists
    3. write the expected result into the cache (the board redraws at once)
    4. call the API
    5. success: notify; failure: restore the touched orders and notify
    6. either way, invalidate the lists so the server state wins

Failures never propagate: each call returns True on confirmed success and
False otherwise.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, Protocol

from qrmenu.board.cache import OrderKeys, QueryCache, order_lists
from qrmenu.board.client import ApiError
from qrmenu.board.notifications import BaseNotifier
from qrmenu.services.order_status import OrderStatus, parse_status

logger = logging.getLogger(__name__)


class OrdersApi(Protocol):
    async def list_orders(self, restaurant_id: str, **filters: Any) -> dict[str, Any]: ...

    async def update_order_status(self, order_id: str, status: str) -> dict[str, Any]: ...

    async def bulk_update_status(self, order_ids: list[str], status: str) -> dict[str, Any]: ...

    async def create_order(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    async def delete_order(self, order_id: str) -> None: ...

    async def order_stats(self, restaurant_id: str, period: str = "today") -> dict[str, Any]: ...

    async def export_orders(self, restaurant_id: str, format: str = "csv", **filters: Any) -> bytes: ...


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _has_orders(data: Any) -> bool:
    return isinstance(data, dict) and isinstance(data.get("orders"), list)


def error_text(exc: BaseException) -> str:
    if isinstance(exc, ApiError):
        return exc.message
    return str(exc) or type(exc).__name__


# =============================================================================
# CACHE UPDATERS
# =============================================================================

def with_status(ids: set[str], status: str, updated_at: str) -> Callable[[Any], Any]:
    """Updater setting ``status`` / ``updatedAt`` on the given orders of a list."""
    def apply(data: Any) -> Any:
        if not _has_orders(data) or not any(o.get("id") in ids for o in data["orders"]):
            return data
        return {
            **data,
            "orders": [
                {**o, "status": status, "updatedAt": updated_at} if o.get("id") in ids else o
                for o in data["orders"]
            ],
        }
    return apply


def without(ids: set[str]) -> Callable[[Any], Any]:
    """Updater removing the given orders from a list."""
    def apply(data: Any) -> Any:
        if not _has_orders(data) or not any(o.get("id") in ids for o in data["orders"]):
            return data
        return {**data, "orders": [o for o in data["orders"] if o.get("id") not in ids]}
    return apply


def prepend(order: dict[str, Any]) -> Callable[[Any], Any]:
    def apply(data: Any) -> Any:
        if not _has_orders(data):
            return data
        return {**data, "orders": [order, *data["orders"]]}
    return apply


def restore(ids: set[str]) -> Callable[[Any, Any], Any]:
    """
    Revert only the given orders to their snapshot values.

    Orders changed by someone else since the snapshot keep their current
    value; when nothing else changed the result equals the snapshot.
    """
    def revert(current: Any, previous: Any) -> Any:
        if not _has_orders(current) or not _has_orders(previous):
            return previous
        before = {o.get("id"): o for o in previous["orders"] if o.get("id") in ids}
        if not before:
            return current
        return {**current, "orders": [before.get(o.get("id"), o) for o in current["orders"]]}
    return revert


def restore_removed(ids: set[str]) -> Callable[[Any, Any], Any]:
    """Revert a removal: the removed orders go back to their snapshot positions."""
    def revert(current: Any, previous: Any) -> Any:
        if not _has_orders(current) or not _has_orders(previous):
            return previous
        orders = list(current["orders"])
        present = {o.get("id") for o in orders}
        for index, order in enumerate(previous["orders"]):
            if order.get("id") in ids and order.get("id") not in present:
                orders.insert(min(index, len(orders)), order)
        return {**current, "orders": orders}
    return revert


def drop_placeholder(temp_id: str) -> Callable[[Any, Any], Any]:
    def revert(current: Any, previous: Any) -> Any:
        if not _has_orders(current):
            return previous
        return {**current, "orders": [o for o in current["orders"] if o.get("id") != temp_id]}
    return revert


# =============================================================================
# COORDINATOR
# =============================================================================

class OrderUpdateCoordinator:
    """
    Applies order mutations optimistically and reconciles with the server.

    While a status change for an order is in flight, further changes for
    that order are refused (no cache write, no request).
    """

    def __init__(
        self,
        cache: QueryCache,
        api: OrdersApi,
        notifier: BaseNotifier,
        toast_duration: float = 3.0,
    ):
        self.cache = cache
        self.api = api
        self.notifier = notifier
        self.toast_duration = toast_duration
        self._in_flight: set[str] = set()

    def is_updating(self, order_id: str) -> bool:
        return order_id in self._in_flight

    @property
    def updating(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    async def _settle(self) -> None:
        try:
            await self.cache.invalidate(order_lists)
        except Exception as e:
            logger.warning(f"Refetch after mutation failed: {error_text(e)}")

    def is_cached(self, order_id: str) -> bool:
        """True when some cached order list holds ``order_id``."""
        return any(
            _has_orders(data) and any(o.get("id") == order_id for o in data["orders"])
            for _, data in self.cache.get_all(order_lists)
        )

    def _lock(self, ids: Iterable[str]) -> bool:
        ids = set(ids)
        busy = ids & self._in_flight
        if busy:
            logger.info(f"Status change refused, update already in flight for {sorted(busy)}")
            return False
        self._in_flight |= ids
        return True

    # -------------------------------------------------------------------------
    # status changes
    # -------------------------------------------------------------------------

    async def request_status_change(self, order_id: str, new_status: Any) -> bool:
        """
        Move one order to ``new_status``.

        Only orders shown in a cached list can be moved; anything else is
        ignored without a request.
        """
        try:
            status = parse_status(new_status).value
        except ValueError as e:
            self.notifier.error(f"Failed to update order status: {e}")
            return False

        if not self.is_cached(order_id):
            logger.info(f"Status change ignored, order {order_id} is not on the board")
            return False

        if not self._lock([order_id]):
            return False

        ids = {order_id}
        try:
            async with self.cache.optimistic(
                order_lists,
                apply=with_status(ids, status, _now_iso()),
                revert=restore(ids),
            ):
                await self.api.update_order_status(order_id, status)
        except Exception as e:
            logger.warning(f"Status update of {order_id} to {status} rolled back: {error_text(e)}")
            self.notifier.error(f"Failed to update order status: {error_text(e)}")
            return False
        else:
            logger.info(f"Order {order_id} → {status}")
            self.notifier.success(
                f"Order status updated to {status}",
                key=f"order-update-{order_id}",
                duration=self.toast_duration,
            )
            return True
        finally:
            self._in_flight.discard(order_id)
            await self._settle()

    async def request_bulk_status_change(self, order_ids: Iterable[str], new_status: Any) -> bool:
        """Move several orders to one status; all of them change or none does."""
        ids_list = list(dict.fromkeys(order_ids))
        count = len(ids_list)
        if not ids_list:
            return False

        try:
            status = parse_status(new_status).value
        except ValueError as e:
            self.notifier.error(f"Failed to update {count} orders: {e}")
            return False

        if not self._lock(ids_list):
            return False

        ids = set(ids_list)
        try:
            async with self.cache.optimistic(
                order_lists,
                apply=with_status(ids, status, _now_iso()),
                revert=restore(ids),
            ):
                await self.api.bulk_update_status(ids_list, status)
        except Exception as e:
            logger.warning(f"Bulk update of {count} orders to {status} rolled back: {error_text(e)}")
            self.notifier.error(f"Failed to update {count} orders: {error_text(e)}")
            return False
        else:
            logger.info(f"{count} orders → {status}")
            self.notifier.success(f"Updated {count} orders to {status}", duration=self.toast_duration)
            return True
        finally:
            self._in_flight.difference_update(ids)
            await self._settle()

    # -------------------------------------------------------------------------
    # create / delete
    # -------------------------------------------------------------------------

    async def create_order(self, payload: dict[str, Any]) -> Optional[dict[str, Any]]:
        """
        Create a DRAFT order. A placeholder with a ``temp-<ms>`` id sits at
        the head of every cached list until the server answers.
        """
        temp_id = f"temp-{int(time.time() * 1000)}"
        now = _now_iso()
        placeholder = {
            "id": temp_id,
            **payload,
            "status": OrderStatus.DRAFT.value,
            "createdAt": now,
            "updatedAt": now,
        }

        try:
            async with self.cache.optimistic(
                order_lists,
                apply=prepend(placeholder),
                revert=drop_placeholder(temp_id),
            ):
                created = await self.api.create_order(payload)
        except Exception as e:
            self.notifier.error(f"Failed to create order: {error_text(e)}")
            return None
        else:
            self.notifier.success("Order created successfully")
            return created
        finally:
            await self._settle()

    async def delete_order(self, order_id: str) -> bool:
        ids = {order_id}
        try:
            async with self.cache.optimistic(
                order_lists,
                apply=without(ids),
                revert=restore_removed(ids),
            ):
                await self.api.delete_order(order_id)
        except Exception as e:
            self.notifier.error(f"Failed to delete order: {error_text(e)}")
            return False
        else:
            self.cache.remove(lambda key: key == OrderKeys.detail(order_id))
            self.notifier.success("Order deleted successfully")
            return True
        finally:
            await self._settle()
