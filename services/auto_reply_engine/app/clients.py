"""Async client for the P2P trading API proxy."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx

from .config import AutoReplySettings
from .errors import TradingApiError

VENDOR_SUCCESS_CODE = "000000"


@dataclass(slots=True)
class TradingApiResult:
    """Outcome of a write call (chat message, mark-as-paid)."""

    accepted: bool
    status_code: int
    payload: Any

    def error_detail(self) -> str:
        if isinstance(self.payload, (dict, list)):
            return json.dumps(self.payload, default=str)
        return str(self.payload)


class TradingApiClient:
    """HTTP client wrapping the order listing, chat and payment endpoints."""

    def __init__(
        self,
        *,
        base_url: str | None,
        api_key: str | None = None,
        api_secret: str | None = None,
        proxy_token: str | None = None,
        timeout: float = 10.0,
        active_orders_path: str = "/api/sapi/v1/c2c/orderMatch/listOrders",
        order_history_path: str = "/api/sapi/v1/c2c/orderMatch/listUserOrderHistory",
        chat_send_path: str = "/api/chat/send",
        mark_paid_path: str = "/api/sapi/v1/c2c/orderMatch/markOrderAsPaid",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or "").rstrip("/")
        self._timeout = timeout
        self._headers = {"Content-Type": "application/json"}
        for header, value in (
            ("x-api-key", api_key),
            ("x-api-secret", api_secret),
            ("x-proxy-token", proxy_token),
        ):
            if value:
                self._headers[header] = value
        self._active_orders_path = active_orders_path
        self._order_history_path = order_history_path
        self._chat_send_path = chat_send_path
        self._mark_paid_path = mark_paid_path
        self._own_client = client is None
        self._client = client

    @classmethod
    def from_settings(cls, settings: AutoReplySettings) -> "TradingApiClient":
        return cls(
            base_url=settings.trading_api_url,
            api_key=settings.trading_api_key,
            api_secret=settings.trading_api_secret,
            proxy_token=settings.trading_proxy_token,
            timeout=settings.http_timeout_seconds,
            active_orders_path=settings.active_orders_path,
            order_history_path=settings.order_history_path,
            chat_send_path=settings.chat_send_path,
            mark_paid_path=settings.mark_paid_path,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._own_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def list_active_orders(self, *, page: int = 1, rows: int = 50) -> list[dict[str, Any]]:
        return await self._list(self._active_orders_path, page=page, rows=rows)

    async def list_order_history(self, *, page: int = 1, rows: int = 20) -> list[dict[str, Any]]:
        return await self._list(self._order_history_path, page=page, rows=rows)

    async def send_chat_message(self, order_number: str, message: str) -> TradingApiResult:
        payload = {"orderNo": order_number, "message": message, "chatMessageType": "text"}
        return await self._write(self._chat_send_path, payload)

    async def mark_order_paid(self, order_number: str) -> TradingApiResult:
        return await self._write(self._mark_paid_path, {"orderNumber": order_number})

    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.post(
                f"{self._base_url}{path}", json=payload, headers=self._headers
            )
        except httpx.RequestError as exc:
            raise TradingApiError(f"failed to reach trading API at {path}: {exc}") from exc

    async def _list(self, path: str, *, page: int, rows: int) -> list[dict[str, Any]]:
        response = await self._post(path, {"page": page, "rows": rows})
        if not response.is_success:
            raise TradingApiError(
                f"trading API responded with {response.status_code} for {path}",
                status_code=response.status_code,
                payload=self._safe_json(response),
            )
        body = self._safe_json(response)
        if not isinstance(body, dict):
            raise TradingApiError(
                f"unexpected payload returned by {path}",
                status_code=response.status_code,
                payload=body,
            )
        data = body.get("data")
        if data is None:
            return []
        if not isinstance(data, list):
            raise TradingApiError(
                f"'data' returned by {path} is not a list",
                status_code=response.status_code,
                payload=body,
            )
        return [row for row in data if isinstance(row, dict)]

    async def _write(self, path: str, payload: dict[str, Any]) -> TradingApiResult:
        response = await self._post(path, payload)
        body = self._safe_json(response)
        return TradingApiResult(
            accepted=self._is_accepted(response, body),
            status_code=response.status_code,
            payload=body if body is not None else response.text,
        )

    @staticmethod
    def _is_accepted(response: httpx.Response, body: Any) -> bool:
        if isinstance(body, dict):
            if body.get("code") is not None:
                return str(body["code"]) == VENDOR_SUCCESS_CODE
            if body.get("error"):
                return False
        return response.is_success

    @staticmethod
    def _safe_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None


__all__ = ["TradingApiClient", "TradingApiResult", "VENDOR_SUCCESS_CODE"]
