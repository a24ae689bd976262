"""
HTTP routers. Each module owns one resource; ``routers`` lists them in the
order they are mounted on the app.
"""

from qrmenu.api.menus import restaurants_router, router as menus_router
from qrmenu.api.orders import router as orders_router
from qrmenu.api.public import router as public_router
from qrmenu.api.qr_codes import router as qr_codes_router
from qrmenu.api.staff import managers_router, router as staff_router

routers = [
    orders_router,
    public_router,
    restaurants_router,
    menus_router,
    qr_codes_router,
    staff_router,
    managers_router,
]

__all__ = ["routers"]
