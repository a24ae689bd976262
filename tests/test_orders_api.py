from types import SimpleNamespace

import pytest

from qrmenu import main
from qrmenu.api import orders as orders_api


async def list_orders(client, seeded, **params):
    response = await client.get("/api/orders", params={"restaurantId": seeded.restaurant.id, **params})
    assert response.status_code == 200, response.text
    return response.json()


# =============================================================================
# LISTING
# =============================================================================

async def test_list_requires_restaurant(client):
    response = await client.get("/api/orders")
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "restaurantId is required"}


async def test_list_shape(client, seeded, place_order):
    order_id = await place_order(specialRequests="No onions")

    data = await list_orders(client, seeded)

    assert data["success"] is True
    assert data["pagination"] == {"page": 1, "limit": 100, "total": 1, "totalPages": 1}
    order = data["orders"][0]
    assert order["id"] == order_id
    assert order["restaurantId"] == seeded.restaurant.id
    assert order["status"] == "RECEIVED"
    assert order["totalAmount"] == "12.50"
    assert order["specialRequests"] == "No onions"
    assert order["qrCode"]["tableNumber"] == "5"
    assert order["submittedAt"] is not None
    line = order["orderItems"][0]
    assert line["menuItem"]["name"] == "Margherita"
    assert line["quantity"] == 1
    assert line["unitPrice"] == "12.50"


async def test_list_filters_by_status(client, seeded, place_order):
    first = await place_order()
    await place_order()
    await client.patch("/api/orders", json={"orderId": first, "status": "READY"})

    ready = await list_orders(client, seeded, status="READY")
    assert [o["id"] for o in ready["orders"]] == [first]

    everything = await list_orders(client, seeded, status="ALL")
    assert everything["pagination"]["total"] == 2


async def test_list_unknown_status_is_rejected(client, seeded):
    response = await client.get("/api/orders", params={"restaurantId": seeded.restaurant.id, "status": "LOST"})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid status"


async def test_list_search(client, seeded, place_order):
    await place_order(specialRequests="Birthday table")
    other = await place_order()

    found = await list_orders(client, seeded, search="birthday")
    assert found["pagination"]["total"] == 1

    by_id = await list_orders(client, seeded, search=other[:8])
    assert [o["id"] for o in by_id["orders"]] == [other]


async def test_list_sort_and_paginate(client, seeded, place_order):
    await place_order(items=[{"menuItemId": seeded.diavola.id, "quantity": 3}])
    await place_order()
    await place_order(items=[{"menuItemId": seeded.diavola.id, "quantity": 1}])

    data = await list_orders(client, seeded, sortBy="totalAmount", sortOrder="asc")
    assert [o["totalAmount"] for o in data["orders"]] == ["12.50", "14.00", "42.00"]

    page = await list_orders(client, seeded, sortBy="totalAmount", sortOrder="desc", page=2, limit=2)
    assert [o["totalAmount"] for o in page["orders"]] == ["12.50"]
    assert page["pagination"] == {"page": 2, "limit": 2, "total": 3, "totalPages": 2}


async def test_list_rejects_unknown_sort(client, seeded):
    response = await client.get("/api/orders", params={"restaurantId": seeded.restaurant.id, "sortBy": "name"})
    assert response.status_code == 400


async def test_list_date_range(client, seeded, place_order):
    await place_order()

    past = await list_orders(
        client, seeded, startDate="2000-01-01T00:00:00+00:00", endDate="2000-01-02T00:00:00+00:00"
    )
    assert past["orders"] == []

    recent = await list_orders(client, seeded, startDate="2000-01-01T00:00:00+00:00")
    assert len(recent["orders"]) == 1


async def test_get_order(client, place_order):
    order_id = await place_order()

    response = await client.get(f"/api/orders/{order_id}")
    assert response.status_code == 200
    assert response.json()["order"]["id"] == order_id

    missing = await client.get("/api/orders/nope")
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "error": "Order nope not found"}


# =============================================================================
# STATUS UPDATES
# =============================================================================

async def test_update_status(client, place_order):
    order_id = await place_order()

    response = await client.patch("/api/orders", json={"orderId": order_id, "status": "preparing"})

    assert response.status_code == 200
    order = response.json()["order"]
    assert order["status"] == "PREPARING"
    assert order["updatedAt"] >= order["createdAt"]


async def test_update_status_is_blind_overwrite_by_default(client, place_order):
    order_id = await place_order()
    await client.patch("/api/orders", json={"orderId": order_id, "status": "SERVED"})

    response = await client.patch("/api/orders", json={"orderId": order_id, "status": "RECEIVED"})

    assert response.status_code == 200
    assert response.json()["order"]["status"] == "RECEIVED"


async def test_update_status_validation(client, place_order):
    order_id = await place_order()

    missing = await client.patch("/api/orders", json={"status": "READY"})
    assert missing.status_code == 400
    assert missing.json()["success"] is False
    assert "orderId" in missing.json()["error"]

    bogus = await client.patch("/api/orders", json={"orderId": order_id, "status": "LOST"})
    assert bogus.status_code == 400
    assert bogus.json()["error"] == "Invalid status"


async def test_update_status_unknown_order(client):
    response = await client.patch("/api/orders", json={"orderId": "ghost", "status": "READY"})
    assert response.status_code == 404
    assert response.json()["error"] == "Order ghost not found"


async def test_strict_pipeline_rejects_backwards_moves(client, place_order, strict_pipeline):
    order_id = await place_order()
    assert (await client.patch("/api/orders", json={"orderId": order_id, "status": "READY"})).status_code == 200

    response = await client.patch("/api/orders", json={"orderId": order_id, "status": "PREPARING"})

    assert response.status_code == 409
    assert response.json()["error"] == "Invalid status transition from READY to PREPARING"

    cancel = await client.patch("/api/orders", json={"orderId": order_id, "status": "CANCELLED"})
    assert cancel.status_code == 200

    reopen = await client.patch("/api/orders", json={"orderId": order_id, "status": "RECEIVED"})
    assert reopen.status_code == 409


async def test_bulk_update(client, seeded, place_order):
    ids = [await place_order() for _ in range(3)]

    response = await client.patch("/api/orders/bulk", json={"orderIds": ids, "status": "CANCELLED"})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Successfully updated 3 orders to CANCELLED"
    assert body["data"]["updated"] == 3
    assert {o["status"] for o in body["data"]["orders"]} == {"CANCELLED"}

    data = await list_orders(client, seeded, status="CANCELLED")
    assert data["pagination"]["total"] == 3


async def test_bulk_update_validation(client, place_order):
    order_id = await place_order()

    empty = await client.patch("/api/orders/bulk", json={"orderIds": [], "status": "READY"})
    assert empty.status_code == 400

    bogus = await client.patch("/api/orders/bulk", json={"orderIds": [order_id], "status": "LOST"})
    assert bogus.status_code == 400
    assert bogus.json()["error"] == "Invalid status"


async def test_strict_bulk_update_is_all_or_nothing(client, seeded, place_order, strict_pipeline):
    served = await place_order()
    fresh = await place_order()
    await client.patch("/api/orders", json={"orderId": served, "status": "SERVED"})

    response = await client.patch("/api/orders/bulk", json={"orderIds": [fresh, served], "status": "READY"})

    assert response.status_code == 409
    assert (await client.get(f"/api/orders/{fresh}")).json()["order"]["status"] == "RECEIVED"
    assert (await client.get(f"/api/orders/{served}")).json()["order"]["status"] == "SERVED"


# =============================================================================
# ADMIN CREATE / DELETE
# =============================================================================

async def test_create_draft_order(client, seeded):
    response = await client.post("/api/orders", json={
        "restaurantId": seeded.restaurant.id,
        "specialRequests": "Phone order",
        "items": [{"menuItemId": seeded.diavola.id, "quantity": 2}],
    })

    assert response.status_code == 201
    order = response.json()["order"]
    assert order["status"] == "DRAFT"
    assert order["totalAmount"] == "28.00"
    assert order["submittedAt"] is None


async def test_create_draft_for_unknown_restaurant(client):
    response = await client.post("/api/orders", json={"restaurantId": "ghost"})
    assert response.status_code == 404
    assert response.json()["error"] == "Restaurant not found"


async def test_delete_order(client, place_order):
    order_id = await place_order()

    response = await client.delete(f"/api/orders/{order_id}")
    assert response.status_code == 200
    assert response.json()["success"] is True

    assert (await client.get(f"/api/orders/{order_id}")).status_code == 404
    assert (await client.delete(f"/api/orders/{order_id}")).status_code == 404


# =============================================================================
# STATS
# =============================================================================

async def test_stats(client, seeded, place_order):
    await place_order()
    second = await place_order(items=[{"menuItemId": seeded.diavola.id, "quantity": 2}])
    await client.patch("/api/orders", json={"orderId": second, "status": "SERVED"})

    response = await client.get("/api/orders/stats", params={"restaurantId": seeded.restaurant.id})

    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["totalOrders"] == 2
    assert stats["totalRevenue"] == "40.50"
    assert stats["averageOrderValue"] == "20.25"
    assert stats["ordersByStatus"] == {
        "DRAFT": 0, "RECEIVED": 1, "PREPARING": 0, "READY": 0, "SERVED": 1, "CANCELLED": 0,
    }
    assert stats["topMenuItems"][0] == {"name": "Diavola", "count": 2, "revenue": "28.00"}
    assert len(stats["hourlyDistribution"]) == 24
    assert sum(stats["hourlyDistribution"]) == 2
    assert len(stats["recentOrders"]) == 2
    assert stats["period"] == "today"


async def test_stats_for_empty_restaurant(client, seeded):
    response = await client.get("/api/orders/stats", params={"restaurantId": seeded.restaurant.id, "period": "month"})
    stats = response.json()["data"]
    assert stats["totalOrders"] == 0
    assert stats["averageOrderValue"] == "0.00"
    assert stats["period"] == "month"
    assert sum(stats["hourlyDistribution"]) == 0


async def test_stats_require_restaurant(client):
    assert (await client.get("/api/orders/stats")).status_code == 400


# =============================================================================
# EXPORT
# =============================================================================

async def test_export_csv(client, seeded, place_order):
    order_id = await place_order(specialRequests='Say "hi"')

    response = await client.get("/api/orders/export", params={"restaurantId": seeded.restaurant.id})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    disposition = response.headers["content-disposition"]
    assert disposition.startswith(f'attachment; filename="orders-{seeded.restaurant.id}-')
    lines = response.text.strip().split("\n")
    assert lines[0].startswith('"Order ID","Status","Total Amount","Table Number"')
    assert lines[1].startswith(f'"{order_id}","RECEIVED","12.50","5"')
    assert '"Say ""hi"""' in lines[1]
    assert '"Margherita (1x $12.50)"' in lines[1]


async def test_export_json(client, seeded, place_order):
    await place_order()

    response = await client.get(
        "/api/orders/export", params={"restaurantId": seeded.restaurant.id, "format": "json"}
    )

    body = response.json()
    assert body["success"] is True
    assert body["exportInfo"]["totalOrders"] == 1
    assert body["exportInfo"]["restaurantId"] == seeded.restaurant.id
    assert body["data"][0]["totalAmount"] == "12.50"


async def test_export_rejects_unknown_format(client, seeded):
    response = await client.get("/api/orders/export", params={"restaurantId": seeded.restaurant.id, "format": "pdf"})
    assert response.status_code == 400
    assert response.json()["error"] == "format must be csv or json"


async def test_export_xlsx_is_queued(client, seeded, place_order, monkeypatch):
    await place_order()
    queued = []

    def delay(rows, restaurant_id):
        queued.append((rows, restaurant_id))
        return SimpleNamespace(id="task-123")

    monkeypatch.setattr(orders_api, "export_orders_to_excel", SimpleNamespace(delay=delay))

    response = await client.post("/api/orders/export/xlsx", params={"restaurantId": seeded.restaurant.id})

    assert response.status_code == 202
    assert response.json() == {"success": True, "taskId": "task-123", "queued": 1}
    rows, restaurant_id = queued[0]
    assert restaurant_id == seeded.restaurant.id
    assert rows[0]["Total Amount"] == "12.50"


# =============================================================================
# APP
# =============================================================================

class FakeRedis:
    def __init__(self, healthy):
        self.healthy = healthy

    def ping(self):
        if not self.healthy:
            raise ConnectionError("connection refused")
        return True

    def close(self):
        pass


@pytest.mark.parametrize("healthy, status", [(True, "operational"), (False, "degraded")])
async def test_health(client, monkeypatch, healthy, status):
    fake = SimpleNamespace(Redis=SimpleNamespace(from_url=lambda url, **kwargs: FakeRedis(healthy)))
    monkeypatch.setattr(main, "redis", fake)

    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == status
    assert body["database"] == "healthy"


async def test_root(client):
    body = (await client.get("/")).json()
    assert body["health"] == "/health"
