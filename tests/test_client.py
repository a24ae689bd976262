import json

import httpx
import pytest

from qrmenu.board.client import ApiError, OrdersApiClient


def make_client(handler):
    return OrdersApiClient(base_url="http://board.test", transport=httpx.MockTransport(handler))


async def test_list_orders_sends_filters():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"success": True, "orders": [], "pagination": {"total": 0}})

    async with make_client(handler) as api:
        data = await api.list_orders("r1", status=None, sortBy="createdAt", search="")

    assert data["orders"] == []
    assert seen["path"] == "/api/orders"
    assert seen["params"] == {"restaurantId": "r1", "sortBy": "createdAt"}


async def test_update_order_status_body():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "order": {"id": "o1", "status": "READY"}})

    async with make_client(handler) as api:
        order = await api.update_order_status("o1", "READY")

    assert seen == {"method": "PATCH", "body": {"orderId": "o1", "status": "READY"}}
    assert order == {"id": "o1", "status": "READY"}


async def test_bulk_update_returns_data():
    def handler(request):
        assert request.url.path == "/api/orders/bulk"
        assert json.loads(request.content) == {"orderIds": ["o1", "o2"], "status": "CANCELLED"}
        return httpx.Response(200, json={"success": True, "data": {"updated": 2, "orders": []}, "message": "ok"})

    async with make_client(handler) as api:
        assert await api.bulk_update_status(["o1", "o2"], "CANCELLED") == {"updated": 2, "orders": []}


async def test_error_message_from_body():
    def handler(request):
        return httpx.Response(409, json={"success": False, "error": "Invalid status transition"})

    async with make_client(handler) as api:
        with pytest.raises(ApiError) as info:
            await api.update_order_status("o1", "RECEIVED")

    assert info.value.message == "Invalid status transition"
    assert info.value.status == 409
    assert info.value.code == "validation"


async def test_error_message_from_detail():
    def handler(request):
        return httpx.Response(404, json={"detail": "Not Found"})

    async with make_client(handler) as api:
        with pytest.raises(ApiError) as info:
            await api.get_order("missing")

    assert info.value.message == "Not Found"
    assert info.value.code == "not_found"


async def test_error_without_json_body():
    def handler(request):
        return httpx.Response(500, text="<html>oops</html>")

    async with make_client(handler) as api:
        with pytest.raises(ApiError) as info:
            await api.delete_order("o1")

    assert info.value.message == "HTTP 500: Internal Server Error"
    assert info.value.code == "server"


async def test_transport_errors_become_api_errors():
    def handler(request):
        raise httpx.ConnectError("Network timeout", request=request)

    async with make_client(handler) as api:
        with pytest.raises(ApiError) as info:
            await api.list_orders("r1")

    assert info.value.message == "Network timeout"
    assert info.value.status is None
    assert info.value.code == "transport"


async def test_success_with_html_body():
    def handler(request):
        return httpx.Response(200, text="<html>maintenance</html>")

    async with make_client(handler) as api:
        with pytest.raises(ApiError) as info:
            await api.list_orders("r1")

    assert info.value.message == "Invalid JSON response from /api/orders"
    assert info.value.status == 200
    assert info.value.code == "server"


async def test_success_without_expected_field():
    def handler(request):
        return httpx.Response(200, json={"success": True})

    async with make_client(handler) as api:
        with pytest.raises(ApiError, match="Missing 'order'"):
            await api.get_order("o1")


async def test_export_returns_raw_bytes():
    def handler(request):
        assert request.url.params["format"] == "csv"
        return httpx.Response(200, content=b'"Order ID"\n', headers={"content-type": "text/csv"})

    async with make_client(handler) as api:
        assert await api.export_orders("r1") == b'"Order ID"\n'


async def test_stats_unwraps_data():
    def handler(request):
        assert request.url.params["period"] == "month"
        return httpx.Response(200, json={"success": True, "data": {"totalOrders": 3}})

    async with make_client(handler) as api:
        assert await api.order_stats("r1", "month") == {"totalOrders": 3}


def test_error_codes():
    assert ApiError.code_for(None) == "transport"
    assert ApiError.code_for(400) == "validation"
    assert ApiError.code_for(404) == "not_found"
    assert ApiError.code_for(502) == "server"
    assert "status=400" in repr(ApiError("bad", status=400))
