"""
Order Board HTTP Client

Thin async wrapper over the orders API. Failed requests and 2xx bodies that
cannot be decoded both surface as ``ApiError``.
"""

import logging
from datetime import datetime
from typing import Any, Optional

import httpx

from qrmenu.core.config import get_settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """
    Failed API call.

    Attributes:
        message: Human readable error (the server's ``error`` field if any)
        status: HTTP status, None for transport failures
        code: Short machine code (``validation``, ``not_found``, ``server``, ``transport``)
    """

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code or self.code_for(status)

    @staticmethod
    def code_for(status: Optional[int]) -> str:
        if status is None:
            return "transport"
        if status == 404:
            return "not_found"
        if 400 <= status < 500:
            return "validation"
        return "server"

    def __repr__(self) -> str:
        return f"ApiError({self.message!r}, status={self.status}, code={self.code!r})"


def _query(params: dict[str, Any]) -> dict[str, Any]:
    out = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        out[key] = value.isoformat() if isinstance(value, datetime) else value
    return out


def _body(response: httpx.Response, field: Optional[str] = None) -> Any:
    """Decoded JSON body (or one field of it); unreadable bodies raise ``ApiError``."""
    path = response.request.url.path
    try:
        body = response.json()
    except ValueError as e:
        logger.warning(f"{path} returned a body that is not JSON")
        raise ApiError(f"Invalid JSON response from {path}", status=response.status_code, code="server") from e

    if field is None:
        return body
    if not isinstance(body, dict) or field not in body:
        raise ApiError(f"Missing '{field}' in response from {path}", status=response.status_code, code="server")
    return body[field]


class OrdersApiClient:
    """Async client for the order endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.board_api_url,
            timeout=timeout if timeout is not None else settings.board_request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "OrdersApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise ApiError(str(e) or type(e).__name__) from e

        if response.is_success:
            return response

        message = None
        try:
            body = response.json()
            if isinstance(body, dict):
                message = body.get("error") or body.get("detail")
        except ValueError:
            pass
        if not isinstance(message, str) or not message:
            message = f"HTTP {response.status_code}: {response.reason_phrase}"

        logger.warning(f"{method} {url} → {response.status_code}: {message}")
        raise ApiError(message, status=response.status_code)

    # -------------------------------------------------------------------------
    # orders
    # -------------------------------------------------------------------------

    async def list_orders(self, restaurant_id: str, **filters: Any) -> dict[str, Any]:
        """``{"orders": [...], "pagination": {...}}`` for one restaurant."""
        params = _query({"restaurantId": restaurant_id, **filters})
        response = await self._request("GET", "/api/orders", params=params)
        return _body(response)

    async def get_order(self, order_id: str) -> dict[str, Any]:
        response = await self._request("GET", f"/api/orders/{order_id}")
        return _body(response, "order")

    async def update_order_status(self, order_id: str, status: str) -> dict[str, Any]:
        response = await self._request("PATCH", "/api/orders", json={"orderId": order_id, "status": status})
        return _body(response, "order")

    async def bulk_update_status(self, order_ids: list[str], status: str) -> dict[str, Any]:
        """``{"updated": n, "orders": [...]}``"""
        response = await self._request(
            "PATCH", "/api/orders/bulk", json={"orderIds": list(order_ids), "status": status}
        )
        return _body(response, "data")

    async def create_order(self, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("POST", "/api/orders", json=payload)
        return _body(response, "order")

    async def delete_order(self, order_id: str) -> None:
        await self._request("DELETE", f"/api/orders/{order_id}")

    async def order_stats(self, restaurant_id: str, period: str = "today") -> dict[str, Any]:
        response = await self._request(
            "GET", "/api/orders/stats", params={"restaurantId": restaurant_id, "period": period}
        )
        return _body(response, "data")

    async def export_orders(self, restaurant_id: str, format: str = "csv", **filters: Any) -> bytes:
        params = _query({"restaurantId": restaurant_id, "format": format, **filters})
        response = await self._request("GET", "/api/orders/export", params=params)
        return response.content
