async def submit(client, payload):
    return await client.post("/api/public/orders", json=payload)


def order_payload(seeded, **overrides):
    return {
        "restaurantId": seeded.restaurant.id,
        "qrToken": seeded.qr.qr_token,
        "items": [{"menuItemId": seeded.margherita.id, "quantity": 1}],
        **overrides,
    }


async def order_count(client, seeded):
    response = await client.get("/api/orders", params={"restaurantId": seeded.restaurant.id})
    return response.json()["pagination"]["total"]


# =============================================================================
# MENU & QR
# =============================================================================

async def test_public_menu_hides_inactive_and_unavailable(client, seeded):
    response = await client.get(f"/api/public/menus/{seeded.menu.id}")

    assert response.status_code == 200
    menu = response.json()
    assert menu["restaurantName"] == "Trattoria Test"
    assert menu["theme"]["primaryColor"] == "#4f46e5"
    assert [c["name"] for c in menu["categories"]] == ["Pizzas"]
    assert [i["name"] for i in menu["categories"][0]["items"]] == ["Margherita", "Diavola"]
    assert menu["categories"][0]["items"][1]["isSpicy"] is True


async def test_unpublished_menu_is_not_public(client, seeded):
    await client.patch(f"/api/menus/{seeded.menu.id}", json={"isPublished": False})

    response = await client.get(f"/api/public/menus/{seeded.menu.id}")

    assert response.status_code == 404
    assert response.json()["error"] == "Menu not found"


async def test_scan_records_visit(client, seeded):
    response = await client.get("/api/public/qr", params={"token": seeded.qr.qr_token})

    assert response.status_code == 200
    qr = response.json()["qr"]
    assert qr["tableNumber"] == "5"
    assert qr["menuId"] == seeded.menu.id

    stored = (await client.get(f"/api/qrcodes/{seeded.qr.id}")).json()
    assert stored["scanCount"] == 1
    assert stored["lastScanned"] is not None


async def test_scan_errors(client, seeded):
    missing = await client.get("/api/public/qr")
    assert missing.status_code == 400
    assert missing.json()["error"] == "token is required"

    unknown = await client.get("/api/public/qr", params={"token": "nope"})
    assert unknown.status_code == 404
    assert unknown.json()["error"] == "QR not found"

    await client.patch(f"/api/qrcodes/{seeded.qr.id}", json={"isActive": False})
    inactive = await client.get("/api/public/qr", params={"token": seeded.qr.qr_token})
    assert inactive.status_code == 404


async def test_tables_lists_active_codes(client, seeded):
    for table in ("2", "3"):
        await client.post("/api/qrcodes", json={"restaurantId": seeded.restaurant.id, "tableNumber": table})
    await client.patch(f"/api/qrcodes/{seeded.qr.id}", json={"isActive": False})

    response = await client.get("/api/public/tables", params={"restaurantId": seeded.restaurant.id})

    assert response.status_code == 200
    assert response.json() == {"success": True, "tables": ["2", "3"]}


async def test_tables_errors(client):
    missing = await client.get("/api/public/tables")
    assert missing.status_code == 400
    assert missing.json()["error"] == "restaurantId is required"

    unknown = await client.get("/api/public/tables", params={"restaurantId": "ghost"})
    assert unknown.json()["tables"] == []


# =============================================================================
# ORDER SUBMISSION
# =============================================================================

async def test_submit_order(client, seeded):
    response = await submit(client, order_payload(seeded, items=[
        {"menuItemId": seeded.margherita.id, "quantity": 2},
        {"menuItemId": seeded.diavola.id, "quantity": 1, "specialInstructions": "well done"},
    ]))

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["menuName"] == "Dinner"
    assert body["totalAmount"] == "39.00"
    assert body["estimatedTime"] == "15-20 minutes"

    order = (await client.get(f"/api/orders/{body['orderId']}")).json()["order"]
    assert order["status"] == "RECEIVED"
    assert order["qrCodeId"] == seeded.qr.id
    lines = {line["menuItem"]["name"]: line for line in order["orderItems"]}
    assert lines["Margherita"]["totalPrice"] == "25.00"
    assert lines["Diavola"]["specialInstructions"] == "well done"


async def test_submit_counts_the_scan(client, seeded):
    await submit(client, order_payload(seeded))
    await submit(client, order_payload(seeded))

    stored = (await client.get(f"/api/qrcodes/{seeded.qr.id}")).json()
    assert stored["scanCount"] == 2


async def test_customizations_add_to_line_price(client, seeded):
    response = await submit(client, order_payload(seeded, items=[{
        "menuItemId": seeded.margherita.id,
        "quantity": 2,
        "customizationOptionIds": [seeded.cheese.id],
    }]))

    assert response.status_code == 201
    assert response.json()["totalAmount"] == "28.00"

    order = (await client.get(f"/api/orders/{response.json()['orderId']}")).json()["order"]
    line = order["orderItems"][0]
    assert line["unitPrice"] == "12.50"
    assert line["customizations"][0]["priceModifier"] == "1.50"
    assert line["customizations"][0]["option"]["name"] == "Extra cheese"


async def test_unknown_customization_rolls_back(client, seeded):
    response = await submit(client, order_payload(seeded, items=[
        {"menuItemId": seeded.diavola.id, "quantity": 1},
        {"menuItemId": seeded.margherita.id, "quantity": 1, "customizationOptionIds": ["bogus"]},
    ]))

    assert response.status_code == 400
    assert response.json()["error"] == (
        f"Invalid customization options provided for item {seeded.margherita.id}"
    )
    assert await order_count(client, seeded) == 0
    assert (await client.get(f"/api/qrcodes/{seeded.qr.id}")).json()["scanCount"] == 0


async def test_client_unit_price_is_kept(client, seeded):
    response = await submit(client, order_payload(seeded, items=[
        {"menuItemId": seeded.margherita.id, "quantity": 2, "unitPrice": "10.00"},
        {"menuItemId": seeded.diavola.id, "quantity": 1, "unitPrice": 0},
    ]))

    assert response.json()["totalAmount"] == "34.00"


async def test_quantity_below_one_means_one(client, seeded):
    response = await submit(client, order_payload(seeded, items=[
        {"menuItemId": seeded.margherita.id, "quantity": 0},
    ]))

    assert response.status_code == 201
    assert response.json()["totalAmount"] == "12.50"


async def test_unavailable_item_is_rejected(client, seeded):
    response = await submit(client, order_payload(seeded, items=[{"menuItemId": seeded.sold_out.id}]))

    assert response.status_code == 400
    assert response.json()["error"] == f"Menu item not found or unavailable: {seeded.sold_out.id}"


async def test_item_in_inactive_category_is_rejected(client, seeded):
    response = await submit(client, order_payload(seeded, items=[{"menuItemId": seeded.soup.id}]))
    assert response.status_code == 400


async def test_item_of_another_restaurant_is_rejected(client, seeded):
    other = (await client.post("/api/restaurants", json={"name": "Other Place"})).json()
    menu = (await client.post("/api/menus", json={
        "restaurantId": other["id"],
        "name": "Other",
        "isPublished": True,
        "categories": [{"name": "Mains", "items": [{"name": "Burger", "price": "9.00"}]}],
    })).json()
    burger_id = menu["categories"][0]["items"][0]["id"]

    response = await submit(client, order_payload(seeded, items=[{"menuItemId": burger_id}]))

    assert response.status_code == 400
    assert burger_id in response.json()["error"]


async def test_unknown_restaurant(client, seeded):
    response = await submit(client, order_payload(seeded, restaurantId="ghost"))
    assert response.status_code == 404
    assert response.json()["error"] == "Restaurant not found"


async def test_restaurant_without_published_menu(client, seeded):
    await client.patch(f"/api/menus/{seeded.menu.id}", json={"isPublished": False})

    response = await submit(client, order_payload(seeded))

    assert response.status_code == 400
    assert response.json()["error"] == "No published menu available for this restaurant"


async def test_explicit_menu_must_be_published(client, seeded):
    copy = (await client.post(f"/api/menus/{seeded.menu.id}/duplicate")).json()

    response = await submit(client, order_payload(seeded, menuId=copy["id"]))

    assert response.status_code == 400


async def test_invalid_qr_token(client, seeded):
    response = await submit(client, order_payload(seeded, qrToken="not-a-token"))
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid QR token"


async def test_qr_code_of_another_restaurant(client, seeded):
    other = (await client.post("/api/restaurants", json={"name": "Other Place"})).json()
    qr = (await client.post("/api/qrcodes", json={"restaurantId": other["id"], "tableNumber": "1"})).json()

    response = await submit(client, order_payload(seeded, qrToken=None, qrCodeId=qr["id"]))

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid QR code"


async def test_unknown_table_gets_a_qr_code(client, seeded):
    response = await submit(client, order_payload(seeded, qrToken=None, tableNumber="12"))

    assert response.status_code == 201
    codes = (await client.get("/api/qrcodes", params={"restaurantId": seeded.restaurant.id})).json()["qrCodes"]
    table_12 = next(qr for qr in codes if qr["tableNumber"] == "12")
    assert table_12["scanCount"] == 1


async def test_known_table_reuses_its_qr_code(client, seeded):
    response = await submit(client, order_payload(seeded, qrToken=None, tableNumber="5"))

    order = (await client.get(f"/api/orders/{response.json()['orderId']}")).json()["order"]
    assert order["qrCodeId"] == seeded.qr.id


async def test_order_without_table(client, seeded):
    response = await submit(client, order_payload(seeded, qrToken=None))

    order = (await client.get(f"/api/orders/{response.json()['orderId']}")).json()["order"]
    assert order["qrCode"] is None


async def test_empty_order_is_rejected(client, seeded):
    response = await submit(client, order_payload(seeded, items=[]))
    assert response.status_code == 400
    assert response.json()["success"] is False
