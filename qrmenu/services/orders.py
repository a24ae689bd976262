"""
Order Service

Everything the API does with orders:
    - public submission (order + lines + customizations in one transaction)
    - board listing with filters, sorting and pagination
    - single and bulk status updates
    - administrative create (DRAFT) and delete
    - statistics for the dashboard
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from qrmenu.core.config import get_settings
from qrmenu.core.exceptions import Conflict, NotFound, ValidationFailed
from qrmenu.models import (
    Category,
    CustomizationGroup,
    CustomizationOption,
    Menu,
    MenuItem,
    Order,
    OrderItem,
    OrderItemCustomization,
    OrderStatus,
    QRCode,
    Restaurant,
    utcnow,
)
from qrmenu.schemas import AdminOrderCreate, OrderLineIn, PublicOrderCreate
from qrmenu.services.order_status import can_transition, parse_status

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

SORT_COLUMNS = {
    "createdAt": Order.created_at,
    "totalAmount": Order.total_amount,
    "status": Order.status,
}

STATS_PERIODS = ("today", "week", "month")

ORDER_LOAD_OPTIONS = (
    selectinload(Order.qr_code),
    selectinload(Order.order_items).selectinload(OrderItem.menu_item),
    selectinload(Order.order_items)
    .selectinload(OrderItem.customizations)
    .selectinload(OrderItemCustomization.option),
)


def money(value: Any) -> Decimal:
    """Round to cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _status_or_400(value: str) -> OrderStatus:
    try:
        return parse_status(value)
    except ValueError:
        raise ValidationFailed("Invalid status")


# =============================================================================
# PRICING
# =============================================================================

@dataclass
class PricedLine:
    """A validated order line with prices resolved."""
    menu_item_id: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    special_instructions: Optional[str] = None
    options: list[CustomizationOption] = field(default_factory=list)


async def price_lines(
    db: AsyncSession,
    restaurant_id: str,
    lines: Sequence[OrderLineIn],
    menu_id: Optional[str] = None,
) -> tuple[list[PricedLine], Decimal]:
    """
    Validate order lines against the catalogue and compute prices.

    Items must be available and belong to the restaurant; with ``menu_id``
    they must also sit in an active category of that menu. A positive
    client unit price is kept, otherwise the item price is used.
    Customization modifiers are added to each portion.

    Raises:
        ValidationFailed: Unknown/unavailable item or foreign customization
    """
    item_ids = {line.menu_item_id for line in lines}

    query = (
        select(MenuItem)
        .join(Category, MenuItem.category_id == Category.id)
        .where(
            MenuItem.id.in_(item_ids),
            MenuItem.restaurant_id == restaurant_id,
            MenuItem.is_available.is_(True),
        )
    )
    if menu_id:
        query = query.where(Category.menu_id == menu_id, Category.is_active.is_(True))

    result = await db.execute(query)
    menu_by_id = {mi.id: mi for mi in result.scalars().all()}

    for line in lines:
        if line.menu_item_id not in menu_by_id:
            raise ValidationFailed(f"Menu item not found or unavailable: {line.menu_item_id}")

    priced: list[PricedLine] = []
    total = Decimal("0.00")

    for line in lines:
        item = menu_by_id[line.menu_item_id]

        options: list[CustomizationOption] = []
        if line.customization_option_ids:
            wanted = set(line.customization_option_ids)
            result = await db.execute(
                select(CustomizationOption)
                .join(CustomizationGroup, CustomizationOption.group_id == CustomizationGroup.id)
                .where(
                    CustomizationOption.id.in_(wanted),
                    CustomizationGroup.restaurant_id == restaurant_id,
                )
            )
            options = list(result.scalars().all())
            if len(options) != len(wanted):
                raise ValidationFailed(
                    f"Invalid customization options provided for item {line.menu_item_id}"
                )

        if line.unit_price is not None and line.unit_price > 0:
            unit_price = money(line.unit_price)
        else:
            unit_price = money(item.price)

        modifiers = sum((money(o.price_modifier) for o in options), Decimal("0.00"))
        line_total = money((unit_price + modifiers) * line.quantity)
        total += line_total

        priced.append(PricedLine(
            menu_item_id=item.id,
            quantity=line.quantity,
            unit_price=unit_price,
            total_price=line_total,
            special_instructions=line.special_instructions,
            options=options,
        ))

    return priced, money(total)


def _build_order_items(order: Order, lines: Iterable[PricedLine]) -> None:
    for line in lines:
        order_item = OrderItem(
            menu_item_id=line.menu_item_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total_price=line.total_price,
            special_instructions=line.special_instructions,
        )
        for option in line.options:
            order_item.customizations.append(OrderItemCustomization(
                customization_option_id=option.id,
                price_modifier=money(option.price_modifier),
            ))
        order.order_items.append(order_item)


# =============================================================================
# PUBLIC SUBMISSION
# =============================================================================

async def _resolve_qr_code(
    db: AsyncSession,
    payload: PublicOrderCreate,
) -> Optional[QRCode]:
    """Find the table's QR code from token, id or table number (in that order)."""
    if payload.qr_token:
        result = await db.execute(select(QRCode).where(QRCode.qr_token == payload.qr_token))
        qr = result.scalar_one_or_none()
        if not qr or not qr.is_active or qr.restaurant_id != payload.restaurant_id:
            raise ValidationFailed("Invalid QR token")
        return qr

    if payload.qr_code_id:
        qr = await db.get(QRCode, payload.qr_code_id)
        if not qr or not qr.is_active or qr.restaurant_id != payload.restaurant_id:
            raise ValidationFailed("Invalid QR code")
        return qr

    if payload.table_number:
        result = await db.execute(
            select(QRCode).where(
                QRCode.restaurant_id == payload.restaurant_id,
                QRCode.table_number == payload.table_number,
                QRCode.is_active.is_(True),
            ).limit(1)
        )
        qr = result.scalar_one_or_none()
        if not qr:
            # Unknown table: register a code for it on the fly
            qr = QRCode(restaurant_id=payload.restaurant_id, table_number=payload.table_number)
            db.add(qr)
            logger.info(f"Auto-created QR code for table {payload.table_number}")
        return qr

    return None


async def submit_public_order(db: AsyncSession, payload: PublicOrderCreate) -> dict[str, Any]:
    """
    Create a customer order from the public menu.

    The order, its lines, their customizations and the QR scan counter are
    written in one transaction; any failure rolls all of it back.

    Returns:
        dict with order_id, menu_name, total_amount, estimated_time
    """
    settings = get_settings()

    restaurant = await db.get(Restaurant, payload.restaurant_id)
    if not restaurant:
        raise NotFound("Restaurant not found")

    menu_query = (
        select(Menu)
        .where(
            Menu.restaurant_id == restaurant.id,
            Menu.is_active.is_(True),
            Menu.is_published.is_(True),
        )
        .order_by(Menu.updated_at.desc())
        .limit(1)
    )
    if payload.menu_id:
        menu_query = menu_query.where(Menu.id == payload.menu_id)
    target_menu = (await db.execute(menu_query)).scalar_one_or_none()
    if not target_menu:
        raise ValidationFailed("No published menu available for this restaurant")

    try:
        qr = await _resolve_qr_code(db, payload)
        lines, total = await price_lines(db, restaurant.id, payload.items, menu_id=target_menu.id)

        now = utcnow()
        order = Order(
            restaurant_id=restaurant.id,
            customer_language=payload.customer_language,
            special_requests=payload.special_requests,
            status=OrderStatus.RECEIVED,
            submitted_at=now,
            total_amount=total,
        )
        if qr is not None:
            order.qr_code = qr
            qr.scan_count = (qr.scan_count or 0) + 1
            qr.last_scanned = now

        _build_order_items(order, lines)
        db.add(order)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"Order {order.id} submitted for restaurant {restaurant.id} "
        f"(menu={target_menu.id}, total={total}, items={len(lines)})"
    )

    return {
        "order_id": order.id,
        "menu_name": target_menu.name,
        "total_amount": f"{total:.2f}",
        "estimated_time": settings.estimated_prep_time,
    }


# =============================================================================
# QUERIES
# =============================================================================

async def list_orders(
    db: AsyncSession,
    restaurant_id: str,
    status: Optional[str] = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> tuple[list[Order], int]:
    """
    Orders of one restaurant for the board.

    Returns:
        (orders on the requested page, total matching orders)
    """
    settings = get_settings()
    limit = min(limit or settings.orders_page_limit, settings.orders_page_limit)
    page = max(page, 1)

    if not restaurant_id:
        raise ValidationFailed("restaurantId is required")
    if sort_by not in SORT_COLUMNS:
        raise ValidationFailed(f"sortBy must be one of: {list(SORT_COLUMNS)}")
    if sort_order not in ("asc", "desc"):
        raise ValidationFailed("sortOrder must be asc or desc")

    conditions = [Order.restaurant_id == restaurant_id]
    if status and status.upper() != "ALL":
        conditions.append(Order.status == _status_or_400(status))
    if start_date:
        conditions.append(Order.created_at >= start_date)
    if end_date:
        conditions.append(Order.created_at <= end_date)
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(Order.id.like(f"{search}%"), Order.special_requests.ilike(pattern)))

    column = SORT_COLUMNS[sort_by]
    ordering = column.asc() if sort_order == "asc" else column.desc()

    count_result = await db.execute(select(func.count(Order.id)).where(*conditions))
    total = count_result.scalar() or 0

    result = await db.execute(
        select(Order)
        .options(*ORDER_LOAD_OPTIONS)
        .where(*conditions)
        .order_by(ordering, Order.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


def pagination(page: int, limit: int, total: int) -> dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


async def get_order(db: AsyncSession, order_id: str) -> Order:
    result = await db.execute(
        select(Order)
        .options(*ORDER_LOAD_OPTIONS)
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise NotFound(f"Order {order_id} not found")
    return order


async def _load_orders(db: AsyncSession, order_ids: Iterable[str]) -> list[Order]:
    result = await db.execute(
        select(Order)
        .options(*ORDER_LOAD_OPTIONS)
        .where(Order.id.in_(list(order_ids)))
        .order_by(Order.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


# =============================================================================
# STATUS UPDATES
# =============================================================================

async def update_order_status(db: AsyncSession, order_id: str, status: str) -> Order:
    """
    Overwrite an order's status.

    No version check: the last write wins. With ENFORCE_STATUS_PIPELINE the
    move must also be legal under ``can_transition``.
    """
    new_status = _status_or_400(status)

    order = await db.get(Order, order_id)
    if not order:
        raise NotFound(f"Order {order_id} not found")

    previous = order.status
    if get_settings().enforce_status_pipeline and not can_transition(previous, new_status):
        raise Conflict(f"Invalid status transition from {previous.value} to {new_status.value}")

    order.status = new_status
    order.updated_at = utcnow()
    await db.commit()

    logger.info(f"Order {order_id} status {previous.value} → {new_status.value}")
    return await get_order(db, order_id)


async def bulk_update_status(
    db: AsyncSession,
    order_ids: Sequence[str],
    status: str,
) -> tuple[int, list[Order]]:
    """
    Set one status on many orders in a single transaction.

    Returns:
        (number of rows updated, the orders after the update)
    """
    new_status = _status_or_400(status)
    ids = list(dict.fromkeys(order_ids))

    try:
        if get_settings().enforce_status_pipeline:
            result = await db.execute(select(Order.id, Order.status).where(Order.id.in_(ids)))
            for oid, current in result.all():
                if not can_transition(current, new_status):
                    raise Conflict(
                        f"Invalid status transition for order {oid} "
                        f"from {current.value} to {new_status.value}"
                    )

        result = await db.execute(
            update(Order)
            .where(Order.id.in_(ids))
            .values(status=new_status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        updated = result.rowcount or 0
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Bulk update: {updated} orders → {new_status.value}")
    return updated, await _load_orders(db, ids)


# =============================================================================
# ADMINISTRATIVE
# =============================================================================

async def create_admin_order(db: AsyncSession, payload: AdminOrderCreate) -> Order:
    """Staff-created order. Starts as DRAFT and is never shown on the board."""
    restaurant = await db.get(Restaurant, payload.restaurant_id)
    if not restaurant:
        raise NotFound("Restaurant not found")

    if payload.qr_code_id:
        qr = await db.get(QRCode, payload.qr_code_id)
        if not qr or qr.restaurant_id != restaurant.id:
            raise ValidationFailed("Invalid QR code")

    lines, total = ([], Decimal("0.00"))
    if payload.items:
        lines, total = await price_lines(db, restaurant.id, payload.items)

    order = Order(
        restaurant_id=restaurant.id,
        qr_code_id=payload.qr_code_id,
        customer_language=payload.customer_language,
        special_requests=payload.special_requests,
        status=OrderStatus.DRAFT,
        total_amount=total,
    )
    _build_order_items(order, lines)

    db.add(order)
    await db.commit()

    logger.info(f"Draft order {order.id} created for restaurant {restaurant.id}")
    return await get_order(db, order.id)


async def delete_order(db: AsyncSession, order_id: str) -> None:
    """Physically remove an order and its lines."""
    order = await get_order(db, order_id)
    await db.delete(order)
    await db.commit()
    logger.warning(f"Order {order_id} deleted")


# =============================================================================
# STATISTICS
# =============================================================================

def period_start(period: str, now: datetime) -> datetime:
    """First instant included in a stats period."""
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def top_menu_items(orders: Iterable[Order], limit: int = 5) -> list[dict[str, Any]]:
    """Most ordered items by quantity: ``[{id, name, price, count, revenue}, ...]``."""
    item_stats: dict[str, dict[str, Any]] = {}
    for o in orders:
        for line in o.order_items:
            key = line.menu_item_id or "unknown"
            entry = item_stats.setdefault(key, {
                "id": line.menu_item_id,
                "name": line.menu_item.name if line.menu_item else "Unknown Item",
                "price": line.menu_item.price if line.menu_item else None,
                "count": 0,
                "revenue": Decimal("0"),
            })
            entry["count"] += line.quantity
            entry["revenue"] += Decimal(line.total_price)

    top = sorted(item_stats.values(), key=lambda e: e["count"], reverse=True)[:limit]
    for entry in top:
        entry["revenue"] = money(entry["revenue"])
    return top


def hourly_counts(orders: Iterable[Order]) -> list[int]:
    hourly = [0] * 24
    for o in orders:
        hourly[o.created_at.hour] += 1
    return hourly


def status_counts(orders: Iterable[Order]) -> dict[str, int]:
    counts = {s.value: 0 for s in OrderStatus}
    for o in orders:
        counts[o.status.value] += 1
    return counts


def revenue_summary(orders: Sequence[Order]) -> tuple[Decimal, Decimal]:
    """(total revenue, average order value), both rounded to cents."""
    total = money(sum((Decimal(o.total_amount) for o in orders), Decimal("0")))
    average = money(total / len(orders)) if orders else Decimal("0.00")
    return total, average


async def order_stats(
    db: AsyncSession,
    restaurant_id: str,
    period: str = "today",
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Aggregate orders of a restaurant over today / the last week / this month."""
    if not restaurant_id:
        raise ValidationFailed("restaurantId is required")
    if period not in STATS_PERIODS:
        period = "today"

    now = now or datetime.now(timezone.utc)
    start = period_start(period, now)

    result = await db.execute(
        select(Order)
        .options(*ORDER_LOAD_OPTIONS)
        .where(
            Order.restaurant_id == restaurant_id,
            Order.created_at >= start,
            Order.created_at <= now,
        )
        .order_by(Order.created_at.desc())
    )
    orders = list(result.scalars().all())

    total_orders = len(orders)
    total_revenue, average = revenue_summary(orders)

    hourly = hourly_counts(orders) if period == "today" else [0] * 24

    return {
        "total_orders": total_orders,
        "orders_by_status": status_counts(orders),
        "total_revenue": total_revenue,
        "average_order_value": average,
        "recent_orders": orders[:10],
        "top_menu_items": top_menu_items(orders),
        "hourly_distribution": hourly,
        "period": period,
        "date_range": {"start": start, "end": now},
    }


async def orders_for_export(
    db: AsyncSession,
    restaurant_id: str,
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> list[Order]:
    """Every matching order, newest first, without pagination."""
    if not restaurant_id:
        raise ValidationFailed("restaurantId is required")

    conditions = [Order.restaurant_id == restaurant_id]
    if status and status.upper() != "ALL":
        conditions.append(Order.status == _status_or_400(status))
    if start_date:
        conditions.append(Order.created_at >= start_date)
    if end_date:
        conditions.append(Order.created_at <= end_date)

    result = await db.execute(
        select(Order)
        .options(*ORDER_LOAD_OPTIONS)
        .where(*conditions)
        .order_by(Order.created_at.desc())
    )
    return list(result.scalars().all())
