"""
Staff Service

Staff accounts (ADMIN / MANAGER). Passwords are stored as bcrypt hashes and
never leave this module.
"""

import logging
from typing import Optional

from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from qrmenu.core.exceptions import Conflict, NotFound, ValidationFailed
from qrmenu.models import Restaurant, StaffRole, User
from qrmenu.schemas import StaffCreate, StaffUpdate

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    raw = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return pwd_context.hash(raw.decode("utf-8", errors="ignore"))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    raw = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return pwd_context.verify(raw.decode("utf-8", errors="ignore"), hashed_password)


async def _check_restaurant(db: AsyncSession, role: StaffRole, restaurant_id: Optional[str]) -> None:
    if role == StaffRole.MANAGER and not restaurant_id:
        raise ValidationFailed("Managers must be assigned to a restaurant")
    if restaurant_id and not await db.get(Restaurant, restaurant_id):
        raise NotFound("Restaurant not found")


async def list_staff(
    db: AsyncSession,
    restaurant_id: Optional[str] = None,
    role: Optional[StaffRole] = None,
) -> list[User]:
    query = select(User).order_by(User.created_at.desc())
    if restaurant_id:
        query = query.where(User.restaurant_id == restaurant_id)
    if role:
        query = query.where(User.role == role)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_staff(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


async def create_staff(db: AsyncSession, payload: StaffCreate) -> User:
    existing = await db.execute(select(User.id).where(User.email == payload.email))
    if existing.scalar_one_or_none():
        raise Conflict("A user with this email already exists")

    await _check_restaurant(db, payload.role, payload.restaurant_id)

    user = User(
        email=payload.email,
        name=payload.name,
        role=payload.role,
        restaurant_id=payload.restaurant_id,
        password_hash=hash_password(payload.password),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info(f"Staff account created: {user.email} ({user.role.value})")
    return user


async def update_staff(db: AsyncSession, user_id: str, payload: StaffUpdate) -> User:
    user = await get_staff(db, user_id)
    changes = payload.model_dump(exclude_unset=True)

    password = changes.pop("password", None)
    if password:
        user.password_hash = hash_password(password)

    role = changes.get("role", user.role)
    restaurant_id = changes.get("restaurant_id", user.restaurant_id)
    if "role" in changes or "restaurant_id" in changes:
        await _check_restaurant(db, role, restaurant_id)

    for key, value in changes.items():
        setattr(user, key, value)

    await db.commit()
    await db.refresh(user)
    return user


async def delete_staff(db: AsyncSession, user_id: str) -> None:
    user = await get_staff(db, user_id)
    await db.delete(user)
    await db.commit()
    logger.warning(f"Staff account {user.email} deleted")


async def authenticate(db: AsyncSession, email: str, password: str) -> Optional[User]:
    """The active user matching the credentials, or None."""
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    user = result.scalar_one_or_none()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        return None
    return user


# =============================================================================
# RESTAURANT MANAGERS
# =============================================================================

async def list_managers(db: AsyncSession, restaurant_id: str) -> list[User]:
    if not await db.get(Restaurant, restaurant_id):
        raise NotFound("Restaurant not found")
    return await list_staff(db, restaurant_id=restaurant_id, role=StaffRole.MANAGER)


async def assign_manager(db: AsyncSession, restaurant_id: str, user_id: Optional[str]) -> User:
    """Make an existing account the manager of ``restaurant_id``."""
    if not user_id:
        raise ValidationFailed("User ID is required")
    await _check_restaurant(db, StaffRole.MANAGER, restaurant_id)
    user = await get_staff(db, user_id)

    user.role = StaffRole.MANAGER
    user.restaurant_id = restaurant_id
    await db.commit()
    await db.refresh(user)

    logger.info(f"{user.email} now manages restaurant {restaurant_id}")
    return user


async def remove_manager(db: AsyncSession, restaurant_id: str, user_id: str) -> User:
    """
    Take a manager off a restaurant. Managers always belong to a restaurant,
    so the account is deactivated rather than detached.
    """
    user = await db.get(User, user_id)
    if not user or user.restaurant_id != restaurant_id or user.role != StaffRole.MANAGER:
        raise NotFound("Manager not found for this restaurant")

    user.is_active = False
    await db.commit()
    await db.refresh(user)

    logger.warning(f"Manager {user.email} removed from restaurant {restaurant_id}")
    return user
