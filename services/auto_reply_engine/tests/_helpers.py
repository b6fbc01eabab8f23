"""Shared builders and fakes for the auto-reply engine tests."""

from __future__ import annotations

from typing import Any

from services.auto_reply_engine.app.clients import TradingApiClient, TradingApiResult
from services.auto_reply_engine.app.errors import TradingApiError

NOW_MS = 1_700_000_000_000


def fixed_clock() -> float:
    return NOW_MS / 1000


def make_order(
    order_number: str = "1001",
    *,
    status: str | int = "PAID",
    age_seconds: float = 60,
    trade_type: str = "SELL",
    **overrides: Any,
) -> dict[str, Any]:
    row: dict[str, Any] = {
        "orderNumber": order_number,
        "advNo": "ADV-1",
        "tradeType": trade_type,
        "asset": "USDT",
        "fiatUnit": "INR",
        "totalPrice": "4500.00",
        "amount": "50",
        "unitPrice": "90.00",
        "orderStatus": status,
        "createTime": int(NOW_MS - age_seconds * 1000),
        "counterPartNickName": "nick",
    }
    row.update(overrides)
    return row


class FakeTradingClient(TradingApiClient):
    def __init__(
        self,
        active: list[dict[str, Any]] | None = None,
        history: list[dict[str, Any]] | None = None,
    ) -> None:
        self._client = None
        self.active = active or []
        self.history = history or []
        self.listing_error: Exception | None = None
        self.chat_accepted = True
        self.chat_error: Exception | None = None
        self.sent: list[tuple[str, str]] = []
        self.paid: list[str] = []
        self.calls: list[str] = []

    async def list_active_orders(self, *, page: int = 1, rows: int = 50) -> list[dict[str, Any]]:
        self.calls.append("active")
        if self.listing_error is not None:
            raise self.listing_error
        return list(self.active)

    async def list_order_history(self, *, page: int = 1, rows: int = 20) -> list[dict[str, Any]]:
        self.calls.append("history")
        return list(self.history)

    async def send_chat_message(self, order_number: str, message: str) -> TradingApiResult:
        self.calls.append("chat")
        self.sent.append((order_number, message))
        if self.chat_error is not None:
            raise self.chat_error
        if self.chat_accepted:
            return TradingApiResult(accepted=True, status_code=200, payload={"code": "000000"})
        return TradingApiResult(accepted=False, status_code=200, payload={"error": "chat closed"})

    async def mark_order_paid(self, order_number: str) -> TradingApiResult:
        self.calls.append("mark_paid")
        self.paid.append(order_number)
        return TradingApiResult(accepted=True, status_code=200, payload={"code": "000000"})

    async def aclose(self) -> None:  # pragma: no cover - interface requirement
        return None


def transport_failure() -> TradingApiError:
    return TradingApiError("failed to reach trading API at /api/chat/send: timed out")
