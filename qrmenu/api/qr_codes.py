"""
QR code management endpoints, including per-table analytics and export.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from qrmenu.core.exceptions import ValidationFailed
from qrmenu.database import get_db
from qrmenu.schemas import (
    ErrorResponse,
    QRCodeAnalyticsResponse,
    QRCodeBulkCreate,
    QRCodeCreate,
    QRCodeExportOut,
    QRCodeOut,
    QRCodeStats,
    QRCodeUpdate,
)
from qrmenu.services import analytics, qr_codes
from qrmenu.services.exporter import QRCodeExporter

router = APIRouter(prefix="/api/qrcodes", tags=["QR Codes"])
logger = logging.getLogger(__name__)

ERRORS = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}


@router.get("", responses=ERRORS)
async def list_qr_codes(
    restaurant_id: Optional[str] = Query(None, alias="restaurantId"),
    menu_id: Optional[str] = Query(None, alias="menuId"),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    codes = await qr_codes.list_qr_codes(db, restaurant_id=restaurant_id, menu_id=menu_id)
    return {"success": True, "qrCodes": [QRCodeOut.model_validate(qr) for qr in codes]}


@router.post("", response_model=QRCodeOut, status_code=201, responses=ERRORS)
async def create_qr_code(payload: QRCodeCreate, db: AsyncSession = Depends(get_db)) -> QRCodeOut:
    return QRCodeOut.model_validate(await qr_codes.create_qr_code(db, payload))


@router.post("/bulk", status_code=201, responses=ERRORS)
async def bulk_create_qr_codes(payload: QRCodeBulkCreate, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    created, skipped = await qr_codes.bulk_create_qr_codes(db, payload)
    return {
        "success": True,
        "created": [QRCodeOut.model_validate(qr) for qr in created],
        "skipped": skipped,
        "message": f"Created {len(created)} QR codes",
    }


@router.get("/stats", response_model=QRCodeStats, responses=ERRORS)
async def qr_code_stats(
    restaurant_id: str = Query(..., alias="restaurantId"),
    db: AsyncSession = Depends(get_db),
) -> QRCodeStats:
    return QRCodeStats(**await qr_codes.qr_stats(db, restaurant_id))


@router.get("/export", responses=ERRORS, summary="Export QR Codes (CSV / JSON)")
async def export_qr_codes(
    restaurant_id: Optional[str] = Query(None, alias="restaurantId"),
    format: str = Query("csv"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
) -> Any:
    if format not in ("csv", "json"):
        raise ValidationFailed("format must be csv or json")

    entries = await qr_codes.qr_codes_for_export(db, restaurant_id, is_active, start_date, end_date)

    if format == "json":
        return {
            "success": True,
            "data": [
                QRCodeExportOut.model_validate({
                    **QRCodeOut.model_validate(e["qr_code"]).model_dump(),
                    "total_orders": e["total_orders"],
                    "total_revenue": e["total_revenue"],
                    "popular_languages": e["popular_languages"],
                })
                for e in entries
            ],
            "exportInfo": {
                "restaurantId": restaurant_id,
                "totalQRCodes": len(entries),
                "dateRange": {"startDate": start_date, "endDate": end_date},
                "exportedAt": datetime.now(timezone.utc),
            },
        }

    filename = QRCodeExporter.csv_filename(restaurant_id)
    logger.info(f"CSV export of {len(entries)} QR codes for restaurant {restaurant_id}")
    return Response(
        content=QRCodeExporter.to_csv(entries),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{qr_id}/analytics", response_model=QRCodeAnalyticsResponse, responses=ERRORS)
async def qr_code_analytics(
    qr_id: str,
    period: str = Query("today"),
    db: AsyncSession = Depends(get_db),
) -> QRCodeAnalyticsResponse:
    """Scans and orders of one table over today / the last week / this month."""
    return QRCodeAnalyticsResponse(data=await analytics.qr_code_analytics(db, qr_id, period))


@router.get("/{qr_id}", response_model=QRCodeOut, responses=ERRORS)
async def get_qr_code(qr_id: str, db: AsyncSession = Depends(get_db)) -> QRCodeOut:
    return QRCodeOut.model_validate(await qr_codes.get_qr_code(db, qr_id))


@router.patch("/{qr_id}", response_model=QRCodeOut, responses=ERRORS)
async def update_qr_code(qr_id: str, payload: QRCodeUpdate, db: AsyncSession = Depends(get_db)) -> QRCodeOut:
    return QRCodeOut.model_validate(await qr_codes.update_qr_code(db, qr_id, payload))


@router.delete("/{qr_id}", responses=ERRORS)
async def delete_qr_code(qr_id: str, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    await qr_codes.delete_qr_code(db, qr_id)
    return {"success": True}
