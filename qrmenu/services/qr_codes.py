"""
QR Code Service

Table QR codes: creation (single and bulk), activation toggles, scan
tracking, counters and export.
"""

import logging
from collections import Counter, defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from qrmenu.core.exceptions import Conflict, NotFound, ValidationFailed
from qrmenu.models import Menu, Order, QRCode, Restaurant, utcnow
from qrmenu.schemas import QRCodeBulkCreate, QRCodeCreate, QRCodeUpdate
from qrmenu.services.orders import money

logger = logging.getLogger(__name__)


async def _resolve_owner(
    db: AsyncSession,
    menu_id: Optional[str],
    restaurant_id: Optional[str],
) -> tuple[str, Optional[str]]:
    """(restaurant_id, menu_id) for a new code; a bare restaurant gets its first active menu."""
    if not menu_id and not restaurant_id:
        raise ValidationFailed("menuId or restaurantId is required")

    if menu_id:
        menu = await db.get(Menu, menu_id)
        if not menu:
            raise NotFound("Menu not found")
        return menu.restaurant_id, menu.id

    if not await db.get(Restaurant, restaurant_id):
        raise NotFound("Restaurant not found")

    result = await db.execute(
        select(Menu.id)
        .where(Menu.restaurant_id == restaurant_id, Menu.is_active.is_(True))
        .order_by(Menu.created_at.asc())
        .limit(1)
    )
    return restaurant_id, result.scalar_one_or_none()


async def _active_tables(db: AsyncSession, restaurant_id: str, exclude_id: Optional[str] = None) -> set[str]:
    query = select(QRCode.table_number).where(
        QRCode.restaurant_id == restaurant_id,
        QRCode.is_active.is_(True),
    )
    if exclude_id:
        query = query.where(QRCode.id != exclude_id)
    result = await db.execute(query)
    return {t for t in result.scalars().all() if t}


async def list_qr_codes(
    db: AsyncSession,
    restaurant_id: Optional[str] = None,
    menu_id: Optional[str] = None,
) -> list[QRCode]:
    """Codes of a menu (plus the restaurant's codes without a menu) or of a restaurant."""
    if menu_id:
        menu = await db.get(Menu, menu_id)
        if not menu:
            raise NotFound("Menu not found")
        condition = or_(
            QRCode.menu_id == menu_id,
            (QRCode.restaurant_id == menu.restaurant_id) & QRCode.menu_id.is_(None),
        )
    elif restaurant_id:
        condition = QRCode.restaurant_id == restaurant_id
    else:
        raise ValidationFailed("menuId or restaurantId is required")

    result = await db.execute(
        select(QRCode)
        .where(condition)
        .order_by(QRCode.table_number.asc(), QRCode.created_at.desc())
        .limit(200)
    )
    return list(result.scalars().all())


async def get_qr_code(db: AsyncSession, qr_id: str) -> QRCode:
    qr = await db.get(QRCode, qr_id)
    if not qr:
        raise NotFound("QR code not found")
    return qr


async def create_qr_code(db: AsyncSession, payload: QRCodeCreate) -> QRCode:
    restaurant_id, menu_id = await _resolve_owner(db, payload.menu_id, payload.restaurant_id)
    table = payload.table_number.strip()
    if not table:
        raise ValidationFailed("tableNumber is required")

    if table in await _active_tables(db, restaurant_id):
        raise Conflict(f"QR code for table {table} already exists")

    qr = QRCode(
        restaurant_id=restaurant_id,
        menu_id=menu_id,
        table_number=table,
        name=payload.name or f"Table {table}",
    )
    db.add(qr)
    await db.commit()
    await db.refresh(qr)

    logger.info(f"QR code created for table {table} (restaurant={restaurant_id})")
    return qr


async def bulk_create_qr_codes(db: AsyncSession, payload: QRCodeBulkCreate) -> tuple[list[QRCode], list[str]]:
    """
    Create one code per table number.

    Returns:
        (created codes, table numbers skipped because an active code exists)
    """
    restaurant_id, menu_id = await _resolve_owner(db, payload.menu_id, payload.restaurant_id)
    existing = await _active_tables(db, restaurant_id)

    created: list[QRCode] = []
    skipped: list[str] = []
    for raw in payload.table_numbers:
        table = raw.strip()
        if not table:
            continue
        if table in existing:
            skipped.append(table)
            continue
        qr = QRCode(
            restaurant_id=restaurant_id,
            menu_id=menu_id,
            table_number=table,
            name=f"Table {table}",
        )
        db.add(qr)
        created.append(qr)
        existing.add(table)

    await db.commit()
    for qr in created:
        await db.refresh(qr)

    logger.info(f"Bulk QR: {len(created)} created, {len(skipped)} skipped")
    return created, skipped


async def update_qr_code(db: AsyncSession, qr_id: str, payload: QRCodeUpdate) -> QRCode:
    qr = await get_qr_code(db, qr_id)
    changes = payload.model_dump(exclude_unset=True)

    new_table = (changes.get("table_number") or qr.table_number or "").strip()
    becomes_active = changes.get("is_active", qr.is_active)
    if becomes_active and new_table in await _active_tables(db, qr.restaurant_id, exclude_id=qr.id):
        raise Conflict(f"QR code for table {new_table} already exists")

    for key, value in changes.items():
        setattr(qr, key, value)

    await db.commit()
    await db.refresh(qr)
    return qr


async def delete_qr_code(db: AsyncSession, qr_id: str) -> None:
    qr = await get_qr_code(db, qr_id)
    await db.delete(qr)
    await db.commit()


async def resolve_token(db: AsyncSession, token: str) -> QRCode:
    """Active code for a scanned token. Records the scan."""
    if not token:
        raise ValidationFailed("token is required")

    result = await db.execute(select(QRCode).where(QRCode.qr_token == token))
    qr = result.scalar_one_or_none()
    if not qr or not qr.is_active:
        raise NotFound("QR not found")

    qr.scan_count = (qr.scan_count or 0) + 1
    qr.last_scanned = utcnow()
    await db.commit()
    await db.refresh(qr)
    return qr


async def qr_stats(db: AsyncSession, restaurant_id: str) -> dict[str, int]:
    result = await db.execute(
        select(
            func.count(QRCode.id),
            func.count(QRCode.id).filter(QRCode.is_active.is_(True)),
            func.coalesce(func.sum(QRCode.scan_count), 0),
        ).where(QRCode.restaurant_id == restaurant_id)
    )
    total, active, scans = result.one()
    return {
        "total": total or 0,
        "active": active or 0,
        "inactive": (total or 0) - (active or 0),
        "total_scans": int(scans or 0),
    }


async def public_tables(db: AsyncSession, restaurant_id: str) -> list[str]:
    """Table numbers a customer can pick from: active codes, oldest first."""
    if not restaurant_id:
        raise ValidationFailed("restaurantId is required")

    result = await db.execute(
        select(QRCode.table_number)
        .where(
            QRCode.restaurant_id == restaurant_id,
            QRCode.is_active.is_(True),
            QRCode.table_number.is_not(None),
        )
        .order_by(QRCode.created_at.asc())
        .limit(200)
    )
    return [t for t in result.scalars().all() if t]


# =============================================================================
# EXPORT
# =============================================================================

async def qr_codes_for_export(
    db: AsyncSession,
    restaurant_id: str,
    is_active: Optional[bool] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> list[dict[str, Any]]:
    """
    Codes of a restaurant (newest first) with the totals of the orders
    placed through them.

    Returns:
        ``[{"qr_code", "total_orders", "total_revenue", "popular_languages"}, ...]``
        where ``popular_languages`` holds the three most used order languages
    """
    if not restaurant_id:
        raise ValidationFailed("restaurantId is required")

    conditions = [QRCode.restaurant_id == restaurant_id]
    if is_active is not None:
        conditions.append(QRCode.is_active.is_(is_active))
    if start_date:
        conditions.append(QRCode.created_at >= start_date)
    if end_date:
        conditions.append(QRCode.created_at <= end_date)

    result = await db.execute(select(QRCode).where(*conditions).order_by(QRCode.created_at.desc()))
    codes = list(result.scalars().all())

    placed = await db.execute(
        select(Order.qr_code_id, Order.total_amount, Order.customer_language)
        .where(Order.qr_code_id.in_([qr.id for qr in codes]))
    )
    revenue: dict[str, Decimal] = defaultdict(Decimal)
    languages: dict[str, Counter] = defaultdict(Counter)
    for qr_id, amount, language in placed.all():
        revenue[qr_id] += Decimal(amount)
        languages[qr_id][language] += 1

    return [
        {
            "qr_code": qr,
            "total_orders": sum(languages[qr.id].values()),
            "total_revenue": money(revenue[qr.id]),
            "popular_languages": [
                {"language": lang, "count": count} for lang, count in languages[qr.id].most_common(3)
            ],
        }
        for qr in codes
    ]
