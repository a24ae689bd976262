import pytest


@pytest.fixture
async def two_orders(seeded, place_order):
    """A Margherita in English and two Diavolas in Italian, both from table 5."""
    await place_order()
    await place_order(
        items=[{"menuItemId": seeded.diavola.id, "quantity": 2}],
        customerLanguage="it",
    )


# =============================================================================
# QR CODE ANALYTICS
# =============================================================================

async def test_qr_code_analytics(client, seeded, two_orders):
    response = await client.get(f"/api/qrcodes/{seeded.qr.id}/analytics")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["tableNumber"] == "5"
    assert data["totalScans"] == 2
    assert data["lastScanned"] is not None
    assert data["totalOrders"] == 2
    assert data["totalRevenue"] == "40.50"
    assert data["averageOrderValue"] == "20.25"
    assert sorted(lang["language"] for lang in data["popularLanguages"]) == ["en", "it"]
    assert data["popularMenuItems"][0] == {"name": "Diavola", "count": 2, "revenue": "28.00"}
    assert len(data["hourlyActivity"]) == 24
    assert sum(data["hourlyActivity"]) == 2
    assert [a["type"] for a in data["recentActivity"]] == ["order", "order"]
    assert {a["status"] for a in data["recentActivity"]} == {"RECEIVED"}
    assert data["period"] == "today"


async def test_qr_code_analytics_only_counts_its_table(client, seeded, place_order):
    await place_order(qrToken=None, tableNumber="9")

    data = (await client.get(f"/api/qrcodes/{seeded.qr.id}/analytics")).json()["data"]

    assert data["totalOrders"] == 0
    assert data["totalRevenue"] == "0.00"
    assert data["popularLanguages"] == []
    assert data["recentActivity"] == []


async def test_qr_code_analytics_periods(client, seeded, two_orders):
    week = (await client.get(f"/api/qrcodes/{seeded.qr.id}/analytics", params={"period": "week"})).json()
    assert week["data"]["period"] == "week"
    assert week["data"]["totalOrders"] == 2
    assert week["data"]["hourlyActivity"] == [0] * 24

    unknown = (await client.get(f"/api/qrcodes/{seeded.qr.id}/analytics", params={"period": "decade"})).json()
    assert unknown["data"]["period"] == "today"


async def test_qr_code_analytics_for_unknown_code(client):
    response = await client.get("/api/qrcodes/ghost/analytics")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "QR code not found"}


# =============================================================================
# RESTAURANT ANALYTICS
# =============================================================================

async def test_restaurant_analytics(client, seeded, two_orders):
    await client.post(f"/api/menus/{seeded.menu.id}/duplicate")

    response = await client.get(f"/api/restaurants/{seeded.restaurant.id}/analytics")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["metrics"] == {
        "totalOrders": 2,
        "totalRevenue": "40.50",
        "averageOrderValue": "20.25",
        "qrScans": 2,
        "activeQrCodes": 1,
        "menus": 2,
        "publishedMenus": 1,
    }
    assert data["ordersByStatus"]["RECEIVED"] == 2
    assert data["ordersByStatus"]["SERVED"] == 0
    assert data["popularItems"][0] == {
        "id": seeded.diavola.id,
        "name": "Diavola",
        "price": "14.00",
        "orderCount": 2,
    }
    assert sorted((u["languageCode"], u["usageCount"]) for u in data["languageUsage"]) == [("en", 1), ("it", 1)]
    assert data["qrCodeStats"][0]["tableNumber"] == "5"
    assert data["qrCodeStats"][0]["scanCount"] == 2
    assert data["dateRange"] == {"startDate": None, "endDate": None}


async def test_restaurant_analytics_date_range(client, seeded, two_orders):
    response = await client.get(
        f"/api/restaurants/{seeded.restaurant.id}/analytics",
        params={"startDate": "2099-01-01T00:00:00+00:00"},
    )

    data = response.json()["data"]
    assert data["metrics"]["totalOrders"] == 0
    assert data["metrics"]["totalRevenue"] == "0.00"
    assert data["popularItems"] == []
    # scans describe the codes, not the range
    assert data["metrics"]["qrScans"] == 2


async def test_restaurant_analytics_for_unknown_restaurant(client):
    response = await client.get("/api/restaurants/ghost/analytics")

    assert response.status_code == 404
    assert response.json()["error"] == "Restaurant not found"
