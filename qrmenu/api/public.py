"""
Customer-facing endpoints: published menus, QR scans and order submission.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from qrmenu.database import get_db
from qrmenu.schemas import (
    ErrorResponse,
    PublicMenuOut,
    PublicOrderCreate,
    PublicOrderResponse,
    PublicQRCodeOut,
)
from qrmenu.services import catalog, qr_codes
from qrmenu.services import orders as order_service

router = APIRouter(prefix="/api/public", tags=["Public"])
logger = logging.getLogger(__name__)

ERRORS = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


@router.get("/menus/{menu_id}", response_model=PublicMenuOut, responses=ERRORS)
async def get_public_menu(menu_id: str, db: AsyncSession = Depends(get_db)) -> PublicMenuOut:
    return PublicMenuOut.model_validate(await catalog.get_public_menu(db, menu_id))


@router.get("/qr", responses=ERRORS)
async def scan_qr(token: str = Query(""), db: AsyncSession = Depends(get_db)) -> dict:
    qr = await qr_codes.resolve_token(db, token)
    return {"success": True, "qr": PublicQRCodeOut.model_validate(qr)}


@router.post("/orders", response_model=PublicOrderResponse, status_code=201, responses=ERRORS)
async def submit_order(payload: PublicOrderCreate, db: AsyncSession = Depends(get_db)) -> PublicOrderResponse:
    """
    Submit an order from the public menu.

    The new order lands in the RECEIVED column of the restaurant's board.
    """
    result = await order_service.submit_public_order(db, payload)
    return PublicOrderResponse(**result)


@router.get("/tables", responses=ERRORS)
async def list_tables(restaurant_id: str = Query("", alias="restaurantId"), db: AsyncSession = Depends(get_db)) -> dict:
    """Table numbers with an active QR code, for the manual table picker."""
    return {"success": True, "tables": await qr_codes.public_tables(db, restaurant_id)}
