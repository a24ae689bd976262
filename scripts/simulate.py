"""
Rush Hour Simulation Script

Fires concurrent customer orders at the public API, then drives the order
board: moves cards across columns (some of them at the same time) and
finishes with a bulk update.
Run from project root: python scripts/simulate.py --restaurant <id>
"""

import asyncio
import sys
import os
import random
import time
import argparse
from datetime import datetime
from typing import Any

import httpx
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from qrmenu.board import DragEndEvent, InMemoryNotifier, OrderBoard, OrdersApiClient

# Configuration
API_BASE_URL = "http://localhost:8001"
TOTAL_ORDERS = 30

LANGUAGES = ["en", "en", "en", "fr", "de", "es"]
REQUESTS = [None, None, "No onions please", "Allergic to nuts", "Birthday table", "Bring extra napkins"]


async def load_menu(client: httpx.AsyncClient, restaurant_id: str) -> dict[str, Any]:
    """Published menu items and the restaurant's QR tokens."""
    menus = (await client.get(f"{API_BASE_URL}/api/menus", params={"restaurantId": restaurant_id})).json()
    published = [m for m in menus if m["isPublished"] and m["isActive"]]
    if not published:
        raise SystemExit("No published menu - run scripts/seed.py first")

    menu = (await client.get(f"{API_BASE_URL}/api/public/menus/{published[0]['id']}")).json()
    items = [item for category in menu["categories"] for item in category["items"]]

    codes = (await client.get(f"{API_BASE_URL}/api/qrcodes", params={"restaurantId": restaurant_id})).json()
    tokens = [qr["qrToken"] for qr in codes["qrCodes"] if qr["isActive"]]

    return {"menu_id": menu["id"], "items": items, "tokens": tokens}


def generate_order_payload(restaurant_id: str, catalog: dict[str, Any]) -> dict[str, Any]:
    """Random customer order for the public endpoint."""
    items = random.sample(catalog["items"], k=min(len(catalog["items"]), random.randint(1, 4)))
    payload = {
        "restaurantId": restaurant_id,
        "menuId": catalog["menu_id"],
        "customerLanguage": random.choice(LANGUAGES),
        "specialRequests": random.choice(REQUESTS),
        "items": [{"menuItemId": item["id"], "quantity": random.randint(1, 3)} for item in items],
    }
    if catalog["tokens"]:
        payload["qrToken"] = random.choice(catalog["tokens"])
    else:
        payload["tableNumber"] = str(random.randint(1, 20))
    return payload


async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    restaurant_id: str,
    catalog: dict[str, Any],
) -> dict[str, Any]:
    payload = generate_order_payload(restaurant_id, catalog)
    start_time = time.time()

    try:
        response = await client.post(f"{API_BASE_URL}/api/public/orders", json=payload, timeout=30.0)
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            data = response.json()
            return {
                "order_num": order_num,
                "success": True,
                "order_id": data.get("orderId"),
                "total": float(data.get("totalAmount", 0)),
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


async def run_kitchen(restaurant_id: str, moves: int) -> InMemoryNotifier:
    """Move orders across the board the way a busy kitchen would."""
    notifier = InMemoryNotifier()

    async with OrdersApiClient(base_url=API_BASE_URL) as api:
        board = OrderBoard(api, restaurant_id=restaurant_id, notifier=notifier)
        await board.refresh()

        columns = board.columns()
        print(f"\n📋 Board: " + ", ".join(f"{k}={len(v)}" for k, v in columns.items()))

        received = columns["RECEIVED"]
        drags = [
            board.drag_end(DragEndEvent(order["id"], "PREPARING"))
            for order in received[:moves]
        ]
        results = await asyncio.gather(*drags)
        print(f"🔥 Dragged {sum(results)}/{len(drags)} orders to PREPARING")

        for order in board.columns()["PREPARING"][: moves // 2]:
            await board.move_with_keyboard(order["id"], "right")

        ready = [o["id"] for o in board.columns()["READY"]]
        if ready:
            board.toggle_batch_mode()
            for order_id in ready:
                board.toggle_select(order_id, True)
            await board.apply_bulk_update("SERVED")

        await board.refresh()
        print(f"📋 Board: " + ", ".join(f"{k}={len(v)}" for k, v in board.columns().items()))

    return notifier


async def run_simulation(restaurant_id: str, num_orders: int = TOTAL_ORDERS, moves: int = 10) -> dict[str, Any]:
    print("=" * 70)
    print("🔥 RUSH HOUR SIMULATION")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()
    async with httpx.AsyncClient() as client:
        catalog = await load_menu(client, restaurant_id)
        tasks = [send_order(client, i + 1, restaurant_id, catalog) for i in range(num_orders)]
        results = await asyncio.gather(*tasks)
    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"   Average Response: {avg_time}s")
        print(f"   💰 Total Revenue: ${sum(r['total'] for r in successful):.2f}")

    for f in failed[:5]:
        print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    notifier = await run_kitchen(restaurant_id, moves)

    print("\n" + "=" * 70)
    print("🔔 BOARD NOTIFICATIONS")
    print("=" * 70)
    for n in notifier.notifications:
        print(f"   [{n.kind}] {n.message}")

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rush Hour Simulation Script")
    parser.add_argument("--restaurant", required=True, help="Restaurant id (see scripts/seed.py)")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--moves", type=int, default=10, help="Cards to drag to PREPARING")
    args = parser.parse_args()

    asyncio.run(run_simulation(args.restaurant, args.orders, args.moves))
