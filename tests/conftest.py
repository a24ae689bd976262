import os

# Must be set before qrmenu is imported: the engine is built at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENFORCE_STATUS_PIPELINE"] = "false"

import asyncio
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, Optional

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from qrmenu.core.config import get_settings

get_settings.cache_clear()

from qrmenu.database import Base, engine_options, get_db
from qrmenu.main import app
from qrmenu.models import CustomizationGroup, CustomizationOption
from qrmenu.schemas import CategoryCreate, MenuCreate, MenuItemCreate, QRCodeCreate, RestaurantCreate
from qrmenu.services import catalog, qr_codes

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# =============================================================================
# DATABASE & APP
# =============================================================================

@pytest.fixture
async def engine():
    engine = create_async_engine(TEST_DATABASE_URL, **engine_options(TEST_DATABASE_URL))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def settings():
    """The cached settings. Change attributes through ``monkeypatch`` only."""
    return get_settings()


@pytest.fixture
def strict_pipeline(monkeypatch, settings):
    monkeypatch.setattr(settings, "enforce_status_pipeline", True)


@pytest.fixture
async def seeded(db):
    """
    One restaurant with a published menu:
        Pizzas (active): Margherita 12.50, Diavola 14.00, Sold Out Special (unavailable)
        Seasonal (inactive): Pumpkin Soup
    plus an "Extra cheese" option (+1.50) and a QR code for table 5.
    """
    restaurant = await catalog.create_restaurant(db, RestaurantCreate(name="Trattoria Test"))
    menu = await catalog.create_menu(db, MenuCreate(
        restaurant_id=restaurant.id,
        name="Dinner",
        is_published=True,
        categories=[
            CategoryCreate(name="Pizzas", display_order=0, items=[
                MenuItemCreate(name="Margherita", price=Decimal("12.50"), display_order=0),
                MenuItemCreate(name="Diavola", price=Decimal("14.00"), is_spicy=True, display_order=1),
                MenuItemCreate(name="Sold Out Special", price=Decimal("20.00"), is_available=False, display_order=2),
            ]),
            CategoryCreate(name="Seasonal", display_order=1, is_active=False, items=[
                MenuItemCreate(name="Pumpkin Soup", price=Decimal("7.00")),
            ]),
        ],
    ))

    group = CustomizationGroup(restaurant_id=restaurant.id, name="Extras")
    cheese = CustomizationOption(name="Extra cheese", price_modifier=Decimal("1.50"))
    group.options.append(cheese)
    db.add(group)
    await db.commit()

    qr = await qr_codes.create_qr_code(db, QRCodeCreate(menu_id=menu.id, table_number="5"))

    pizzas, seasonal = menu.categories
    margherita, diavola, sold_out = pizzas.items
    return SimpleNamespace(
        restaurant=restaurant,
        menu=menu,
        margherita=margherita,
        diavola=diavola,
        sold_out=sold_out,
        soup=seasonal.items[0],
        cheese=cheese,
        qr=qr,
    )


@pytest.fixture
def place_order(client, seeded):
    """Submit a customer order through the public endpoint and return its id."""
    async def place(items: Optional[list[dict[str, Any]]] = None, **extra: Any) -> str:
        payload = {
            "restaurantId": seeded.restaurant.id,
            "qrToken": seeded.qr.qr_token,
            "items": items or [{"menuItemId": seeded.margherita.id, "quantity": 1}],
            **extra,
        }
        response = await client.post("/api/public/orders", json=payload)
        assert response.status_code == 201, response.text
        return response.json()["orderId"]

    return place


# =============================================================================
# BOARD FAKES
# =============================================================================

def make_order(order_id: str, status: str, total: str = "10.00") -> dict[str, Any]:
    return {
        "id": order_id,
        "restaurantId": "r1",
        "status": status,
        "totalAmount": total,
        "createdAt": "2026-01-01T12:00:00+00:00",
        "updatedAt": "2026-01-01T12:00:00+00:00",
        "qrCode": {"id": f"qr-{order_id}", "tableNumber": "5"},
        "orderItems": [],
    }


class FakeOrdersApi:
    """
    In-memory orders API.

    ``gate`` (an asyncio.Event) holds every mutation until it is set;
    ``fail_with`` / ``fail_for`` make mutations raise.
    """

    def __init__(self, orders: Optional[list[dict[str, Any]]] = None):
        self.orders = [dict(o) for o in orders or []]
        self.calls: list[tuple] = []
        self.gate: Optional[asyncio.Event] = None
        self.fail_with: Optional[BaseException] = None
        self.fail_for: dict[str, BaseException] = {}
        self.list_error: Optional[BaseException] = None

    @property
    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if c[0] not in ("list_orders", "order_stats")]

    def status_of(self, order_id: str) -> Optional[str]:
        return next((o["status"] for o in self.orders if o["id"] == order_id), None)

    async def _mutate(self, name: str, *args: Any, ids: tuple = ()) -> None:
        self.calls.append((name, *args))
        if self.gate is not None:
            await self.gate.wait()
        for order_id in ids:
            if order_id in self.fail_for:
                raise self.fail_for[order_id]
        if self.fail_with is not None:
            raise self.fail_with

    async def list_orders(self, restaurant_id: str, **filters: Any) -> dict[str, Any]:
        self.calls.append(("list_orders", restaurant_id, filters))
        if self.list_error is not None:
            raise self.list_error
        orders = [dict(o) for o in self.orders]
        return {
            "success": True,
            "orders": orders,
            "pagination": {"page": 1, "limit": 100, "total": len(orders), "totalPages": 1},
        }

    async def update_order_status(self, order_id: str, status: str) -> dict[str, Any]:
        await self._mutate("update_order_status", order_id, status, ids=(order_id,))
        for order in self.orders:
            if order["id"] == order_id:
                order["status"] = status
                return dict(order)
        raise KeyError(order_id)

    async def bulk_update_status(self, order_ids: list[str], status: str) -> dict[str, Any]:
        await self._mutate("bulk_update_status", list(order_ids), status, ids=tuple(order_ids))
        updated = [o for o in self.orders if o["id"] in order_ids]
        for order in updated:
            order["status"] = status
        return {"updated": len(updated), "orders": [dict(o) for o in updated]}

    async def create_order(self, payload: dict[str, Any]) -> dict[str, Any]:
        await self._mutate("create_order", payload)
        order = {**make_order(f"new-{len(self.orders) + 1}", "DRAFT"), **payload}
        self.orders.insert(0, order)
        return dict(order)

    async def delete_order(self, order_id: str) -> None:
        await self._mutate("delete_order", order_id, ids=(order_id,))
        self.orders = [o for o in self.orders if o["id"] != order_id]

    async def order_stats(self, restaurant_id: str, period: str = "today") -> dict[str, Any]:
        self.calls.append(("order_stats", restaurant_id, period))
        return {"totalOrders": len(self.orders), "period": period}

    async def export_orders(self, restaurant_id: str, format: str = "csv", **filters: Any) -> bytes:
        await self._mutate("export_orders", restaurant_id, format)
        return b'"Order ID"\n' + b"".join(f'"{o["id"]}"\n'.encode() for o in self.orders)


@pytest.fixture
def board_orders() -> list[dict[str, Any]]:
    return [
        make_order("o1", "RECEIVED", "12.50"),
        make_order("o2", "READY", "30.00"),
        make_order("o3", "PREPARING", "8.00"),
        make_order("o4", "SERVED", "21.00"),
    ]


@pytest.fixture
def fake_api(board_orders) -> FakeOrdersApi:
    return FakeOrdersApi(board_orders)


async def drain(predicate=None, rounds: int = 20) -> None:
    """Let scheduled tasks run until ``predicate()`` holds (or ``rounds`` loop turns passed)."""
    for _ in range(rounds):
        if predicate is not None and predicate():
            return
        await asyncio.sleep(0)
