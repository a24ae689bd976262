"""
Analytics Service

Dashboard figures derived from orders and QR scans:
    - per QR code: scans, orders placed from the table, languages, items
    - per restaurant: totals, status split, popular items, language usage
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from qrmenu.models import Menu, Order, QRCode
from qrmenu.services import catalog
from qrmenu.services.orders import (
    ORDER_LOAD_OPTIONS,
    STATS_PERIODS,
    hourly_counts,
    period_start,
    revenue_summary,
    status_counts,
    top_menu_items,
)
from qrmenu.services.qr_codes import get_qr_code

logger = logging.getLogger(__name__)


async def qr_code_analytics(
    db: AsyncSession,
    qr_id: str,
    period: str = "today",
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Activity of one table's code over today / the last week / this month."""
    qr = await get_qr_code(db, qr_id)
    if period not in STATS_PERIODS:
        period = "today"

    now = now or datetime.now(timezone.utc)
    start = period_start(period, now)

    result = await db.execute(
        select(Order)
        .options(*ORDER_LOAD_OPTIONS)
        .where(
            Order.qr_code_id == qr.id,
            Order.created_at >= start,
            Order.created_at <= now,
        )
        .order_by(Order.created_at.desc())
    )
    orders = list(result.scalars().all())

    total_revenue, average = revenue_summary(orders)
    languages = Counter(o.customer_language for o in orders)

    return {
        "qr_code_id": qr.id,
        "table_number": qr.table_number,
        "total_scans": qr.scan_count or 0,
        "last_scanned": qr.last_scanned,
        "total_orders": len(orders),
        "total_revenue": total_revenue,
        "average_order_value": average,
        "popular_languages": [{"language": lang, "count": n} for lang, n in languages.most_common(5)],
        "popular_menu_items": top_menu_items(orders),
        "hourly_activity": hourly_counts(orders) if period == "today" else [0] * 24,
        "recent_activity": [
            {
                "order_id": o.id,
                "status": o.status.value,
                "total_amount": o.total_amount,
                "timestamp": o.created_at,
            }
            for o in orders[:20]
        ],
        "period": period,
        "date_range": {"start": start, "end": now},
    }


async def restaurant_analytics(
    db: AsyncSession,
    restaurant_id: str,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Restaurant-wide figures. Order based numbers honour the date range;
    menu and QR code numbers describe the current state.
    """
    await catalog.get_restaurant(db, restaurant_id)

    conditions = [Order.restaurant_id == restaurant_id]
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
    orders = list(result.scalars().all())
    total_revenue, average = revenue_summary(orders)

    usage: dict[str, dict[str, Any]] = {}
    for o in orders:
        entry = usage.setdefault(o.customer_language, {
            "language_code": o.customer_language,
            "usage_count": 0,
            "last_used": o.created_at,
        })
        entry["usage_count"] += 1

    codes = (await db.execute(
        select(QRCode)
        .where(QRCode.restaurant_id == restaurant_id)
        .order_by(QRCode.scan_count.desc(), QRCode.table_number.asc())
    )).scalars().all()

    menus, published = (await db.execute(
        select(
            func.count(Menu.id),
            func.count(Menu.id).filter(Menu.is_published.is_(True)),
        ).where(Menu.restaurant_id == restaurant_id)
    )).one()

    popular = [
        {"id": e["id"], "name": e["name"], "price": e["price"], "order_count": e["count"]}
        for e in top_menu_items(orders, limit=10)
    ]

    logger.info(f"Analytics for restaurant {restaurant_id}: {len(orders)} orders")
    return {
        "metrics": {
            "total_orders": len(orders),
            "total_revenue": total_revenue,
            "average_order_value": average,
            "qr_scans": sum(qr.scan_count or 0 for qr in codes),
            "active_qr_codes": sum(1 for qr in codes if qr.is_active),
            "menus": menus or 0,
            "published_menus": published or 0,
        },
        "orders_by_status": status_counts(orders),
        "popular_items": popular,
        "language_usage": sorted(usage.values(), key=lambda e: e["usage_count"], reverse=True),
        "qr_code_stats": codes,
        "date_range": {"start_date": start_date, "end_date": end_date},
    }
