"""
Seed Script

Creates a demo restaurant with a published menu, customization options and
table QR codes, then prints the ids the simulation needs.
Run from project root: python scripts/seed.py
"""

import asyncio
import os
import sys
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from qrmenu.core.config import setup_logging
from qrmenu.database import async_session_maker, engine, init_db
from qrmenu.models import CustomizationGroup, CustomizationOption
from qrmenu.schemas import (
    CategoryCreate,
    MenuCreate,
    MenuItemCreate,
    QRCodeBulkCreate,
    RestaurantCreate,
    StaffCreate,
)
from qrmenu.services import catalog, qr_codes, staff

MENU = {
    "Pizzas": [
        ("Pizza Margherita", "14.99", {"is_vegetarian": True, "is_bestseller": True}),
        ("Pepperoni Pizza", "16.99", {"is_spicy": True, "spice_level": 2}),
    ],
    "Starters": [
        ("Caesar Salad", "8.99", {}),
        ("Garlic Bread", "5.99", {"is_vegetarian": True}),
    ],
    "Desserts & Drinks": [
        ("Tiramisu", "7.99", {"is_vegetarian": True}),
        ("Sparkling Water", "3.49", {"is_vegan": True, "is_gluten_free": True}),
    ],
}

EXTRAS = [("Extra cheese", "1.50"), ("Extra basil", "0.50"), ("Gluten-free base", "2.00")]


async def seed() -> dict:
    await init_db()

    async with async_session_maker() as db:
        restaurant = await catalog.create_restaurant(db, RestaurantCreate(
            name="Trattoria Demo",
            description="Seeded demo restaurant",
            address="1 Main St",
        ))

        menu = await catalog.create_menu(db, MenuCreate(
            restaurant_id=restaurant.id,
            name="All Day Menu",
            is_published=True,
            categories=[
                CategoryCreate(
                    name=category,
                    display_order=i,
                    items=[
                        MenuItemCreate(name=name, price=Decimal(price), display_order=j, **flags)
                        for j, (name, price, flags) in enumerate(items)
                    ],
                )
                for i, (category, items) in enumerate(MENU.items())
            ],
        ))

        group = CustomizationGroup(restaurant_id=restaurant.id, name="Extras")
        for name, modifier in EXTRAS:
            group.options.append(CustomizationOption(name=name, price_modifier=Decimal(modifier)))
        db.add(group)
        await db.commit()

        codes, _ = await qr_codes.bulk_create_qr_codes(db, QRCodeBulkCreate(
            menu_id=menu.id,
            table_numbers=[str(n) for n in range(1, 11)],
        ))

        manager = await staff.create_staff(db, StaffCreate(
            email=f"manager@{restaurant.slug}.example",
            name="Demo Manager",
            password="changeme123",
            restaurant_id=restaurant.id,
        ))

        return {
            "restaurant_id": restaurant.id,
            "menu_id": menu.id,
            "item_ids": [item.id for c in menu.categories for item in c.items],
            "option_ids": [o.id for o in group.options],
            "qr_tokens": [qr.qr_token for qr in codes],
            "manager": manager.email,
        }


async def main() -> None:
    setup_logging()
    try:
        ids = await seed()
    finally:
        await engine.dispose()

    print("=" * 70)
    print("🌱 SEED COMPLETE")
    print("=" * 70)
    print(f"Restaurant: {ids['restaurant_id']}")
    print(f"Menu:       {ids['menu_id']}")
    print(f"Items:      {len(ids['item_ids'])}")
    print(f"QR codes:   {len(ids['qr_tokens'])} (first token {ids['qr_tokens'][0]})")
    print(f"Manager:    {ids['manager']}")
    print("=" * 70)
    print(f"Next: python scripts/simulate.py --restaurant {ids['restaurant_id']}")


if __name__ == "__main__":
    asyncio.run(main())
