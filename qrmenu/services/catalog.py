"""
Catalogue Service

Restaurants, menus, categories, menu items and FAQ entries. Plain CRUD on
top of the async session; every function commits its own unit of work.
"""

import logging
import re
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from qrmenu.core.exceptions import NotFound, ValidationFailed
from qrmenu.models import Category, Faq, Menu, MenuItem, Restaurant
from qrmenu.schemas import (
    CategoryCreate,
    CategoryUpdate,
    FaqCreate,
    FaqUpdate,
    MenuCreate,
    MenuItemCreate,
    MenuItemUpdate,
    MenuUpdate,
    RestaurantCreate,
    RestaurantUpdate,
)

logger = logging.getLogger(__name__)

MENU_LOAD_OPTIONS = (
    selectinload(Menu.restaurant),
    selectinload(Menu.categories).selectinload(Category.items),
)


def _apply(instance: Any, changes: dict[str, Any]) -> None:
    for key, value in changes.items():
        setattr(instance, key, value)


# =============================================================================
# RESTAURANTS
# =============================================================================

def slugify(name: str) -> str:
    """'Chez Léa & Co' -> 'chez-l-a-co'"""
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug or "restaurant"


async def unique_slug(db: AsyncSession, name: str, exclude_id: Optional[str] = None) -> str:
    """Slug from the name, suffixed -2, -3, ... until no other restaurant uses it."""
    base = slugify(name)
    query = select(Restaurant.slug).where(Restaurant.slug.like(f"{base}%"))
    if exclude_id:
        query = query.where(Restaurant.id != exclude_id)
    taken = set((await db.execute(query)).scalars().all())

    slug, n = base, 2
    while slug in taken:
        slug = f"{base}-{n}"
        n += 1
    return slug


async def list_restaurants(
    db: AsyncSession,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Restaurant], int]:
    conditions = []
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(Restaurant.name.ilike(pattern), Restaurant.address.ilike(pattern)))

    total = (await db.execute(select(func.count(Restaurant.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(Restaurant)
        .where(*conditions)
        .order_by(Restaurant.created_at.desc())
        .offset((max(page, 1) - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def get_restaurant(db: AsyncSession, restaurant_id: str) -> Restaurant:
    restaurant = await db.get(Restaurant, restaurant_id)
    if not restaurant:
        raise NotFound("Restaurant not found")
    return restaurant


async def create_restaurant(db: AsyncSession, payload: RestaurantCreate) -> Restaurant:
    restaurant = Restaurant(
        **payload.model_dump(),
        slug=await unique_slug(db, payload.name),
    )
    db.add(restaurant)
    await db.commit()
    await db.refresh(restaurant)

    logger.info(f"Restaurant created: {restaurant.slug}")
    return restaurant


async def update_restaurant(db: AsyncSession, restaurant_id: str, payload: RestaurantUpdate) -> Restaurant:
    restaurant = await get_restaurant(db, restaurant_id)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("name") and changes["name"] != restaurant.name:
        restaurant.slug = await unique_slug(db, changes["name"], exclude_id=restaurant.id)
    _apply(restaurant, changes)

    await db.commit()
    await db.refresh(restaurant)
    return restaurant


async def delete_restaurant(db: AsyncSession, restaurant_id: str) -> None:
    restaurant = await get_restaurant(db, restaurant_id)
    await db.delete(restaurant)
    await db.commit()
    logger.warning(f"Restaurant {restaurant_id} deleted")


# =============================================================================
# MENUS
# =============================================================================

def _build_category(restaurant_id: str, payload: CategoryCreate) -> Category:
    category = Category(**payload.model_dump(exclude={"items"}))
    for item in payload.items:
        category.items.append(MenuItem(restaurant_id=restaurant_id, **item.model_dump()))
    return category


async def list_menus(db: AsyncSession, restaurant_id: str) -> list[Menu]:
    result = await db.execute(
        select(Menu).where(Menu.restaurant_id == restaurant_id).order_by(Menu.updated_at.desc())
    )
    return list(result.scalars().all())


async def get_menu(db: AsyncSession, menu_id: str) -> Menu:
    """Menu with its categories and items."""
    result = await db.execute(
        select(Menu)
        .options(*MENU_LOAD_OPTIONS)
        .where(Menu.id == menu_id)
        .execution_options(populate_existing=True)
    )
    menu = result.scalar_one_or_none()
    if not menu:
        raise NotFound("Menu not found")
    return menu


async def create_menu(db: AsyncSession, payload: MenuCreate) -> Menu:
    await get_restaurant(db, payload.restaurant_id)

    menu = Menu(
        restaurant_id=payload.restaurant_id,
        name=payload.name.strip(),
        description=payload.description,
        is_active=payload.is_active,
        is_published=payload.is_published,
        theme=payload.theme.model_dump(by_alias=True),
    )
    for category in payload.categories:
        menu.categories.append(_build_category(payload.restaurant_id, category))

    db.add(menu)
    await db.commit()

    logger.info(f"Menu '{menu.name}' created with {len(payload.categories)} categories")
    return await get_menu(db, menu.id)


async def update_menu(db: AsyncSession, menu_id: str, payload: MenuUpdate) -> Menu:
    menu = await get_menu(db, menu_id)
    changes = payload.model_dump(exclude_unset=True, exclude={"theme"})
    _apply(menu, changes)
    if payload.theme is not None:
        menu.theme = payload.theme.model_dump(by_alias=True)

    await db.commit()
    return await get_menu(db, menu_id)


async def delete_menu(db: AsyncSession, menu_id: str) -> None:
    menu = await get_menu(db, menu_id)
    await db.delete(menu)
    await db.commit()
    logger.warning(f"Menu {menu_id} deleted")


async def duplicate_menu(db: AsyncSession, menu_id: str, name: Optional[str] = None) -> Menu:
    """Copy a menu with its categories and items. The copy starts unpublished."""
    original = await get_menu(db, menu_id)

    copy = Menu(
        restaurant_id=original.restaurant_id,
        name=name or f"{original.name} (Copy)",
        description=original.description,
        is_active=True,
        is_published=False,
        theme=dict(original.theme or {}),
    )
    for category in original.categories:
        new_category = Category(
            name=category.name,
            description=category.description,
            display_order=category.display_order,
            is_active=category.is_active,
        )
        for item in category.items:
            new_category.items.append(MenuItem(
                restaurant_id=original.restaurant_id,
                name=item.name,
                description=item.description,
                price=item.price,
                image_url=item.image_url,
                preparation_time=item.preparation_time,
                calories=item.calories,
                is_vegetarian=item.is_vegetarian,
                is_vegan=item.is_vegan,
                is_gluten_free=item.is_gluten_free,
                is_spicy=item.is_spicy,
                spice_level=item.spice_level,
                is_bestseller=item.is_bestseller,
                is_available=item.is_available,
                display_order=item.display_order,
            ))
        copy.categories.append(new_category)

    db.add(copy)
    await db.commit()

    logger.info(f"Menu {menu_id} duplicated as {copy.id}")
    return await get_menu(db, copy.id)


async def get_public_menu(db: AsyncSession, menu_id: str) -> dict[str, Any]:
    """Customer view: active categories with available items only."""
    menu = await get_menu(db, menu_id)
    if not menu.is_active or not menu.is_published:
        raise NotFound("Menu not found")

    categories = []
    for category in menu.categories:
        if not category.is_active:
            continue
        categories.append({
            "id": category.id,
            "menu_id": category.menu_id,
            "name": category.name,
            "description": category.description,
            "display_order": category.display_order,
            "is_active": category.is_active,
            "items": [item for item in category.items if item.is_available],
        })

    return {
        "id": menu.id,
        "name": menu.name,
        "description": menu.description,
        "restaurant_id": menu.restaurant_id,
        "restaurant_name": menu.restaurant.name,
        "theme": menu.theme,
        "categories": categories,
    }


# =============================================================================
# CATEGORIES & ITEMS
# =============================================================================

async def _get_category(db: AsyncSession, category_id: str) -> Category:
    result = await db.execute(
        select(Category)
        .options(selectinload(Category.menu), selectinload(Category.items))
        .where(Category.id == category_id)
        .execution_options(populate_existing=True)
    )
    category = result.scalar_one_or_none()
    if not category:
        raise NotFound("Category not found")
    return category


async def create_category(db: AsyncSession, menu_id: str, payload: CategoryCreate) -> Category:
    menu = await db.get(Menu, menu_id)
    if not menu:
        raise NotFound("Menu not found")

    category = _build_category(menu.restaurant_id, payload)
    category.menu_id = menu.id
    db.add(category)
    await db.commit()
    return await _get_category(db, category.id)


async def update_category(db: AsyncSession, category_id: str, payload: CategoryUpdate) -> Category:
    category = await _get_category(db, category_id)
    _apply(category, payload.model_dump(exclude_unset=True))
    await db.commit()
    return await _get_category(db, category_id)


async def delete_category(db: AsyncSession, category_id: str) -> None:
    category = await _get_category(db, category_id)
    await db.delete(category)
    await db.commit()


async def create_item(db: AsyncSession, category_id: str, payload: MenuItemCreate) -> MenuItem:
    category = await _get_category(db, category_id)

    item = MenuItem(
        restaurant_id=category.menu.restaurant_id,
        category_id=category.id,
        **payload.model_dump(),
    )
    db.add(item)
    await db.commit()
    await db.refresh(item)

    logger.info(f"Menu item '{item.name}' added to category {category_id}")
    return item


async def get_item(db: AsyncSession, item_id: str) -> MenuItem:
    item = await db.get(MenuItem, item_id)
    if not item:
        raise NotFound("Menu item not found")
    return item


async def update_item(db: AsyncSession, item_id: str, payload: MenuItemUpdate) -> MenuItem:
    item = await get_item(db, item_id)
    changes = payload.model_dump(exclude_unset=True)
    if "price" in changes and changes["price"] is None:
        raise ValidationFailed("Price cannot be empty")
    _apply(item, changes)

    await db.commit()
    await db.refresh(item)
    return item


async def delete_item(db: AsyncSession, item_id: str) -> None:
    item = await get_item(db, item_id)
    await db.delete(item)
    await db.commit()


# =============================================================================
# FAQ
# =============================================================================

async def list_faqs(db: AsyncSession, restaurant_id: str) -> list[Faq]:
    """Active entries, most viewed first."""
    result = await db.execute(
        select(Faq)
        .where(Faq.restaurant_id == restaurant_id, Faq.is_active.is_(True))
        .order_by(Faq.view_count.desc(), Faq.created_at.asc())
    )
    return list(result.scalars().all())


async def _get_faq(db: AsyncSession, restaurant_id: str, faq_id: str) -> Faq:
    faq = await db.get(Faq, faq_id)
    if not faq or faq.restaurant_id != restaurant_id:
        raise NotFound("FAQ not found")
    return faq


async def create_faq(db: AsyncSession, restaurant_id: str, payload: FaqCreate) -> Faq:
    await get_restaurant(db, restaurant_id)
    question, answer = payload.question.strip(), payload.answer.strip()
    if not question or not answer:
        raise ValidationFailed("Question and answer are required")

    faq = Faq(restaurant_id=restaurant_id, question=question, answer=answer, category=payload.category)
    db.add(faq)
    await db.commit()
    await db.refresh(faq)

    logger.info(f"FAQ {faq.id} created for restaurant {restaurant_id}")
    return faq


async def update_faq(db: AsyncSession, restaurant_id: str, faq_id: str, payload: FaqUpdate) -> Faq:
    faq = await _get_faq(db, restaurant_id, faq_id)
    changes = payload.model_dump(exclude_unset=True)
    if any(changes.get(k, "") is None for k in ("question", "answer")):
        raise ValidationFailed("Question and answer are required")
    _apply(faq, changes)

    await db.commit()
    await db.refresh(faq)
    return faq


async def delete_faq(db: AsyncSession, restaurant_id: str, faq_id: str) -> None:
    faq = await _get_faq(db, restaurant_id, faq_id)
    await db.delete(faq)
    await db.commit()
    logger.info(f"FAQ {faq_id} deleted")
