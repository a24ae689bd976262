"""
Staff account endpoints and the managers of each restaurant.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from qrmenu.database import get_db
from qrmenu.models import StaffRole
from qrmenu.schemas import ErrorResponse, ManagerAssign, StaffCreate, StaffOut, StaffUpdate
from qrmenu.services import staff as staff_service

router = APIRouter(prefix="/api/users", tags=["Staff"])
managers_router = APIRouter(prefix="/api/restaurants", tags=["Staff"])
logger = logging.getLogger(__name__)

ERRORS = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}


@router.get("", response_model=list[StaffOut])
async def list_staff(
    restaurant_id: Optional[str] = Query(None, alias="restaurantId"),
    role: Optional[StaffRole] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> list[StaffOut]:
    users = await staff_service.list_staff(db, restaurant_id=restaurant_id, role=role)
    return [StaffOut.model_validate(u) for u in users]


@router.post("", response_model=StaffOut, status_code=201, responses=ERRORS)
async def create_staff(payload: StaffCreate, db: AsyncSession = Depends(get_db)) -> StaffOut:
    return StaffOut.model_validate(await staff_service.create_staff(db, payload))


@router.get("/{user_id}", response_model=StaffOut, responses=ERRORS)
async def get_staff(user_id: str, db: AsyncSession = Depends(get_db)) -> StaffOut:
    return StaffOut.model_validate(await staff_service.get_staff(db, user_id))


@router.patch("/{user_id}", response_model=StaffOut, responses=ERRORS)
async def update_staff(user_id: str, payload: StaffUpdate, db: AsyncSession = Depends(get_db)) -> StaffOut:
    return StaffOut.model_validate(await staff_service.update_staff(db, user_id, payload))


@router.delete("/{user_id}", responses=ERRORS)
async def delete_staff(user_id: str, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    await staff_service.delete_staff(db, user_id)
    return {"success": True}


# =============================================================================
# RESTAURANT MANAGERS
# =============================================================================

@managers_router.get("/{restaurant_id}/managers", response_model=list[StaffOut], responses=ERRORS)
async def list_managers(restaurant_id: str, db: AsyncSession = Depends(get_db)) -> list[StaffOut]:
    return [StaffOut.model_validate(u) for u in await staff_service.list_managers(db, restaurant_id)]


@managers_router.post("/{restaurant_id}/managers", response_model=StaffOut, responses=ERRORS)
async def assign_manager(
    restaurant_id: str,
    payload: ManagerAssign,
    db: AsyncSession = Depends(get_db),
) -> StaffOut:
    return StaffOut.model_validate(await staff_service.assign_manager(db, restaurant_id, payload.user_id))


@managers_router.delete("/{restaurant_id}/managers/{user_id}", responses=ERRORS)
async def remove_manager(restaurant_id: str, user_id: str, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    user = await staff_service.remove_manager(db, restaurant_id, user_id)
    return {"success": True, "message": "Manager removed successfully", "user": StaffOut.model_validate(user)}
