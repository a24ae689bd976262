"""
Restaurant and menu management endpoints, plus restaurant analytics and FAQ.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from qrmenu.database import get_db
from qrmenu.schemas import (
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    ErrorResponse,
    FaqCreate,
    FaqOut,
    FaqUpdate,
    MenuCreate,
    MenuItemCreate,
    MenuItemOut,
    MenuItemUpdate,
    MenuOut,
    MenuSummary,
    MenuUpdate,
    QRCodeScanStats,
    RestaurantAnalyticsResponse,
    RestaurantCreate,
    RestaurantListResponse,
    RestaurantOut,
    RestaurantUpdate,
)
from qrmenu.services import analytics, catalog
from qrmenu.services.orders import pagination

logger = logging.getLogger(__name__)

ERRORS = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}

restaurants_router = APIRouter(prefix="/api/restaurants", tags=["Restaurants"])
router = APIRouter(prefix="/api", tags=["Menus"])


# =============================================================================
# RESTAURANTS
# =============================================================================

@restaurants_router.get("", response_model=RestaurantListResponse)
async def list_restaurants(
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> RestaurantListResponse:
    restaurants, total = await catalog.list_restaurants(db, search=search, page=page, limit=limit)
    return RestaurantListResponse(
        restaurants=[RestaurantOut.model_validate(r) for r in restaurants],
        pagination=pagination(page, limit, total),
    )


@restaurants_router.post("", response_model=RestaurantOut, status_code=201, responses=ERRORS)
async def create_restaurant(payload: RestaurantCreate, db: AsyncSession = Depends(get_db)) -> RestaurantOut:
    return RestaurantOut.model_validate(await catalog.create_restaurant(db, payload))


@restaurants_router.get("/{restaurant_id}", response_model=RestaurantOut, responses=ERRORS)
async def get_restaurant(restaurant_id: str, db: AsyncSession = Depends(get_db)) -> RestaurantOut:
    return RestaurantOut.model_validate(await catalog.get_restaurant(db, restaurant_id))


@restaurants_router.patch("/{restaurant_id}", response_model=RestaurantOut, responses=ERRORS)
async def update_restaurant(
    restaurant_id: str,
    payload: RestaurantUpdate,
    db: AsyncSession = Depends(get_db),
) -> RestaurantOut:
    return RestaurantOut.model_validate(await catalog.update_restaurant(db, restaurant_id, payload))


@restaurants_router.delete("/{restaurant_id}", responses=ERRORS)
async def delete_restaurant(restaurant_id: str, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    await catalog.delete_restaurant(db, restaurant_id)
    return {"success": True}


@restaurants_router.get("/{restaurant_id}/analytics", response_model=RestaurantAnalyticsResponse, responses=ERRORS)
async def restaurant_analytics(
    restaurant_id: str,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
) -> RestaurantAnalyticsResponse:
    data = await analytics.restaurant_analytics(db, restaurant_id, start_date, end_date)
    data["qr_code_stats"] = [QRCodeScanStats.model_validate(qr) for qr in data["qr_code_stats"]]
    return RestaurantAnalyticsResponse(data=data)


# =============================================================================
# FAQ
# =============================================================================

@restaurants_router.get("/{restaurant_id}/faqs", response_model=list[FaqOut])
async def list_faqs(restaurant_id: str, db: AsyncSession = Depends(get_db)) -> list[FaqOut]:
    """Active FAQ entries shown to customers."""
    return [FaqOut.model_validate(f) for f in await catalog.list_faqs(db, restaurant_id)]


@restaurants_router.post("/{restaurant_id}/faqs", response_model=FaqOut, status_code=201, responses=ERRORS)
async def create_faq(restaurant_id: str, payload: FaqCreate, db: AsyncSession = Depends(get_db)) -> FaqOut:
    return FaqOut.model_validate(await catalog.create_faq(db, restaurant_id, payload))


@restaurants_router.patch("/{restaurant_id}/faqs/{faq_id}", response_model=FaqOut, responses=ERRORS)
async def update_faq(
    restaurant_id: str,
    faq_id: str,
    payload: FaqUpdate,
    db: AsyncSession = Depends(get_db),
) -> FaqOut:
    return FaqOut.model_validate(await catalog.update_faq(db, restaurant_id, faq_id, payload))


@restaurants_router.delete("/{restaurant_id}/faqs/{faq_id}", responses=ERRORS)
async def delete_faq(restaurant_id: str, faq_id: str, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    await catalog.delete_faq(db, restaurant_id, faq_id)
    return {"success": True}


# =============================================================================
# MENUS
# =============================================================================

@router.get("/menus", response_model=list[MenuSummary])
async def list_menus(
    restaurant_id: str = Query(..., alias="restaurantId"),
    db: AsyncSession = Depends(get_db),
) -> list[MenuSummary]:
    return [MenuSummary.model_validate(m) for m in await catalog.list_menus(db, restaurant_id)]


@router.post("/menus", response_model=MenuOut, status_code=201, responses=ERRORS)
async def create_menu(payload: MenuCreate, db: AsyncSession = Depends(get_db)) -> MenuOut:
    return MenuOut.model_validate(await catalog.create_menu(db, payload))


@router.get("/menus/{menu_id}", response_model=MenuOut, responses=ERRORS)
async def get_menu(menu_id: str, db: AsyncSession = Depends(get_db)) -> MenuOut:
    return MenuOut.model_validate(await catalog.get_menu(db, menu_id))


@router.patch("/menus/{menu_id}", response_model=MenuOut, responses=ERRORS)
async def update_menu(menu_id: str, payload: MenuUpdate, db: AsyncSession = Depends(get_db)) -> MenuOut:
    return MenuOut.model_validate(await catalog.update_menu(db, menu_id, payload))


@router.delete("/menus/{menu_id}", responses=ERRORS)
async def delete_menu(menu_id: str, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    await catalog.delete_menu(db, menu_id)
    return {"success": True}


@router.post("/menus/{menu_id}/duplicate", response_model=MenuOut, status_code=201, responses=ERRORS)
async def duplicate_menu(
    menu_id: str,
    name: Optional[str] = Body(None, embed=True),
    db: AsyncSession = Depends(get_db),
) -> MenuOut:
    return MenuOut.model_validate(await catalog.duplicate_menu(db, menu_id, name=name))


# =============================================================================
# CATEGORIES & ITEMS
# =============================================================================

@router.post("/menus/{menu_id}/categories", response_model=CategoryOut, status_code=201, responses=ERRORS)
async def create_category(
    menu_id: str,
    payload: CategoryCreate,
    db: AsyncSession = Depends(get_db),
) -> CategoryOut:
    return CategoryOut.model_validate(await catalog.create_category(db, menu_id, payload))


@router.patch("/categories/{category_id}", response_model=CategoryOut, responses=ERRORS)
async def update_category(
    category_id: str,
    payload: CategoryUpdate,
    db: AsyncSession = Depends(get_db),
) -> CategoryOut:
    return CategoryOut.model_validate(await catalog.update_category(db, category_id, payload))


@router.delete("/categories/{category_id}", responses=ERRORS)
async def delete_category(category_id: str, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    await catalog.delete_category(db, category_id)
    return {"success": True}


@router.post("/categories/{category_id}/items", response_model=MenuItemOut, status_code=201, responses=ERRORS)
async def create_item(
    category_id: str,
    payload: MenuItemCreate,
    db: AsyncSession = Depends(get_db),
) -> MenuItemOut:
    return MenuItemOut.model_validate(await catalog.create_item(db, category_id, payload))


@router.patch("/items/{item_id}", response_model=MenuItemOut, responses=ERRORS)
async def update_item(item_id: str, payload: MenuItemUpdate, db: AsyncSession = Depends(get_db)) -> MenuItemOut:
    return MenuItemOut.model_validate(await catalog.update_item(db, item_id, payload))


@router.delete("/items/{item_id}", responses=ERRORS)
async def delete_item(item_id: str, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    await catalog.delete_item(db, item_id)
    return {"success": True}
