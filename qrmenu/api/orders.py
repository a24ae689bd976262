"""
Order board endpoints: listing, status updates, stats and exports.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from qrmenu.core.config import get_settings
from qrmenu.core.exceptions import ValidationFailed
from qrmenu.database import get_db
from qrmenu.schemas import (
    AdminOrderCreate,
    BulkStatusUpdate,
    BulkUpdateResponse,
    ErrorResponse,
    OrderListResponse,
    OrderOut,
    OrderResponse,
    OrderStatsResponse,
    OrderStatusUpdate,
)
from qrmenu.services import orders as order_service
from qrmenu.services.exporter import OrderExporter
from qrmenu.tasks import export_orders_to_excel

router = APIRouter(prefix="/api/orders", tags=["Orders"])
logger = logging.getLogger(__name__)

ERRORS = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}


@router.get("", response_model=OrderListResponse, responses=ERRORS, summary="List Orders")
async def list_orders(
    restaurant_id: Optional[str] = Query(None, alias="restaurantId"),
    status: Optional[str] = Query(None),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
) -> OrderListResponse:
    """Orders of one restaurant, newest first unless asked otherwise."""
    limit = min(limit or get_settings().orders_page_limit, get_settings().orders_page_limit)
    orders, total = await order_service.list_orders(
        db,
        restaurant_id,
        status=status,
        sort_by=sort_by,
        sort_order=sort_order,
        start_date=start_date,
        end_date=end_date,
        search=search,
        page=page,
        limit=limit,
    )
    return OrderListResponse(
        orders=[OrderOut.model_validate(o) for o in orders],
        pagination=order_service.pagination(page, limit, total),
    )


@router.post("", response_model=OrderResponse, status_code=201, responses=ERRORS, summary="Create Draft Order")
async def create_order(payload: AdminOrderCreate, db: AsyncSession = Depends(get_db)) -> OrderResponse:
    order = await order_service.create_admin_order(db, payload)
    return OrderResponse(order=OrderOut.model_validate(order))


@router.patch("", response_model=OrderResponse, responses=ERRORS, summary="Update Order Status")
async def update_order_status(payload: OrderStatusUpdate, db: AsyncSession = Depends(get_db)) -> OrderResponse:
    order = await order_service.update_order_status(db, payload.order_id, payload.status)
    return OrderResponse(order=OrderOut.model_validate(order))


@router.patch("/bulk", response_model=BulkUpdateResponse, responses=ERRORS, summary="Bulk Update Order Status")
async def bulk_update_status(payload: BulkStatusUpdate, db: AsyncSession = Depends(get_db)) -> BulkUpdateResponse:
    updated, orders = await order_service.bulk_update_status(db, payload.order_ids, payload.status)
    status = orders[0].status.value if orders else payload.status.upper()
    return BulkUpdateResponse(
        data={"updated": updated, "orders": [OrderOut.model_validate(o) for o in orders]},
        message=f"Successfully updated {updated} orders to {status}",
    )


@router.get("/stats", response_model=OrderStatsResponse, responses=ERRORS, summary="Order Statistics")
async def order_stats(
    restaurant_id: Optional[str] = Query(None, alias="restaurantId"),
    period: str = Query("today"),
    db: AsyncSession = Depends(get_db),
) -> OrderStatsResponse:
    stats = await order_service.order_stats(db, restaurant_id, period)
    stats["recent_orders"] = [OrderOut.model_validate(o) for o in stats["recent_orders"]]
    return OrderStatsResponse(data=stats)


@router.get("/export", responses=ERRORS, summary="Export Orders (CSV / JSON)")
async def export_orders(
    restaurant_id: Optional[str] = Query(None, alias="restaurantId"),
    format: str = Query("csv"),
    status: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
) -> Any:
    if format not in ("csv", "json"):
        raise ValidationFailed("format must be csv or json")

    orders = await order_service.orders_for_export(db, restaurant_id, status, start_date, end_date)

    if format == "json":
        return {
            "success": True,
            "data": [OrderOut.model_validate(o) for o in orders],
            "exportInfo": {
                "restaurantId": restaurant_id,
                "totalOrders": len(orders),
                "dateRange": {"startDate": start_date, "endDate": end_date},
                "exportedAt": datetime.now(timezone.utc),
            },
        }

    content = OrderExporter.to_csv(OrderExporter.rows(orders))
    filename = OrderExporter.csv_filename(restaurant_id)
    logger.info(f"CSV export of {len(orders)} orders for restaurant {restaurant_id}")
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/export/xlsx", status_code=202, responses=ERRORS, summary="Queue Excel Export")
async def export_orders_xlsx(
    restaurant_id: Optional[str] = Query(None, alias="restaurantId"),
    status: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Hand the rows to the Celery worker, which appends them to the workbook."""
    orders = await order_service.orders_for_export(db, restaurant_id, status, start_date, end_date)
    rows = OrderExporter.rows(orders)

    task = export_orders_to_excel.delay(rows, restaurant_id)
    logger.info(f"Excel export of {len(rows)} orders queued as task {task.id}")

    return {"success": True, "taskId": task.id, "queued": len(rows)}


@router.get("/{order_id}", response_model=OrderResponse, responses=ERRORS, summary="Get Order")
async def get_order(order_id: str, db: AsyncSession = Depends(get_db)) -> OrderResponse:
    order = await order_service.get_order(db, order_id)
    return OrderResponse(order=OrderOut.model_validate(order))


@router.delete("/{order_id}", responses=ERRORS, summary="Delete Order")
async def delete_order(order_id: str, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    await order_service.delete_order(db, order_id)
    return {"success": True, "message": f"Order {order_id} deleted"}
