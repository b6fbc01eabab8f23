from __future__ import annotations

import asyncio
import json

import httpx
import pytest
import respx

from services.auto_reply_engine.app.clients import TradingApiClient
from services.auto_reply_engine.app.errors import OrderFetchError, TradingApiError
from services.auto_reply_engine.app.orders import OrderFetcher

BASE_URL = "http://proxy.test"
ACTIVE_URL = f"{BASE_URL}/api/sapi/v1/c2c/orderMatch/listOrders"
HISTORY_URL = f"{BASE_URL}/api/sapi/v1/c2c/orderMatch/listUserOrderHistory"
CHAT_URL = f"{BASE_URL}/api/chat/send"
MARK_PAID_URL = f"{BASE_URL}/api/sapi/v1/c2c/orderMatch/markOrderAsPaid"


def _client() -> TradingApiClient:
    return TradingApiClient(
        base_url=f"{BASE_URL}/",
        api_key="key",
        api_secret="secret",
        proxy_token="token",
    )


async def _call(coro_factory):
    client = _client()
    try:
        return await coro_factory(client)
    finally:
        await client.aclose()


@respx.mock
def test_list_active_orders_sends_credentials_and_paging() -> None:
    route = respx.post(ACTIVE_URL).mock(
        return_value=httpx.Response(200, json={"data": [{"orderNumber": "1"}, "junk"]})
    )

    rows = asyncio.run(_call(lambda client: client.list_active_orders(rows=25)))

    assert rows == [{"orderNumber": "1"}]
    request = route.calls.last.request
    assert request.headers["x-api-key"] == "key"
    assert request.headers["x-api-secret"] == "secret"
    assert request.headers["x-proxy-token"] == "token"
    assert json.loads(request.content) == {"page": 1, "rows": 25}


@respx.mock
def test_listing_without_data_is_empty() -> None:
    respx.post(HISTORY_URL).mock(return_value=httpx.Response(200, json={"code": "000000"}))

    assert asyncio.run(_call(lambda client: client.list_order_history())) == []


@respx.mock
def test_listing_error_status_raises() -> None:
    respx.post(ACTIVE_URL).mock(return_value=httpx.Response(500, json={"error": "boom"}))

    with pytest.raises(TradingApiError) as excinfo:
        asyncio.run(_call(lambda client: client.list_active_orders()))

    assert excinfo.value.status_code == 500
    assert excinfo.value.payload == {"error": "boom"}


@respx.mock
def test_listing_with_non_list_data_raises() -> None:
    respx.post(ACTIVE_URL).mock(return_value=httpx.Response(200, json={"data": {"rows": []}}))

    with pytest.raises(TradingApiError):
        asyncio.run(_call(lambda client: client.list_active_orders()))


@respx.mock
def test_listing_with_non_json_body_raises() -> None:
    respx.post(ACTIVE_URL).mock(return_value=httpx.Response(200, text="<html>"))

    with pytest.raises(TradingApiError):
        asyncio.run(_call(lambda client: client.list_active_orders()))


@respx.mock
def test_transport_errors_become_trading_api_errors() -> None:
    respx.post(CHAT_URL).mock(side_effect=httpx.ConnectTimeout("timed out"))

    with pytest.raises(TradingApiError, match="failed to reach trading API"):
        asyncio.run(_call(lambda client: client.send_chat_message("1", "hi")))


@respx.mock
def test_send_chat_message_payload_and_vendor_success_code() -> None:
    route = respx.post(CHAT_URL).mock(
        return_value=httpx.Response(200, json={"code": "000000", "data": True})
    )

    result = asyncio.run(_call(lambda client: client.send_chat_message("1001", "Thanks!")))

    assert result.accepted
    assert json.loads(route.calls.last.request.content) == {
        "orderNo": "1001",
        "message": "Thanks!",
        "chatMessageType": "text",
    }


@respx.mock
def test_chat_error_field_rejects_even_on_http_200() -> None:
    respx.post(CHAT_URL).mock(return_value=httpx.Response(200, json={"error": "chat closed"}))

    result = asyncio.run(_call(lambda client: client.send_chat_message("1001", "Thanks!")))

    assert not result.accepted
    assert "chat closed" in result.error_detail()


@respx.mock
def test_non_success_vendor_code_rejects_on_http_200() -> None:
    respx.post(CHAT_URL).mock(
        return_value=httpx.Response(200, json={"code": "83229", "msg": "order closed"})
    )
    respx.post(MARK_PAID_URL).mock(
        return_value=httpx.Response(200, json={"code": 83229, "msg": "order closed"})
    )

    chat = asyncio.run(_call(lambda client: client.send_chat_message("1001", "hi")))
    paid = asyncio.run(_call(lambda client: client.mark_order_paid("1001")))

    assert chat.accepted is False
    assert paid.accepted is False
    assert "order closed" in chat.error_detail()


@respx.mock
def test_chat_http_failure_is_not_accepted() -> None:
    respx.post(CHAT_URL).mock(return_value=httpx.Response(503, text="unavailable"))

    result = asyncio.run(_call(lambda client: client.send_chat_message("1001", "Thanks!")))

    assert not result.accepted
    assert result.status_code == 503
    assert result.error_detail() == "unavailable"


@respx.mock
def test_mark_order_paid_posts_order_number() -> None:
    route = respx.post(MARK_PAID_URL).mock(return_value=httpx.Response(200, json={}))

    result = asyncio.run(_call(lambda client: client.mark_order_paid("3003")))

    assert result.accepted
    assert json.loads(route.calls.last.request.content) == {"orderNumber": "3003"}


@respx.mock
def test_order_fetcher_merges_active_before_history() -> None:
    respx.post(ACTIVE_URL).mock(
        return_value=httpx.Response(
            200,
            json={
                "data": [
                    {"orderNumber": "1", "orderStatus": "PAID", "createTime": 1},
                    {"orderNumber": "2", "orderStatus": "TRADING", "createTime": 2},
                ]
            },
        )
    )
    respx.post(HISTORY_URL).mock(
        return_value=httpx.Response(
            200,
            json={
                "data": [
                    {"orderNumber": "2", "orderStatus": "COMPLETED", "createTime": 2},
                    {"orderNumber": "3", "orderStatus": 4, "createTime": 3},
                    {"orderStatus": "COMPLETED"},
                ]
            },
        )
    )

    orders = asyncio.run(_call(lambda client: OrderFetcher(client).fetch()))

    assert [order.order_number for order in orders] == ["1", "2", "3"]
    assert orders[1].order_status == "TRADING"


@respx.mock
def test_order_fetcher_wraps_api_errors() -> None:
    respx.post(ACTIVE_URL).mock(return_value=httpx.Response(401, json={"error": "auth"}))

    with pytest.raises(OrderFetchError):
        asyncio.run(_call(lambda client: OrderFetcher(client).fetch()))


@respx.mock
def test_injected_client_gets_credentials_and_is_left_open() -> None:
    route = respx.post(CHAT_URL).mock(
        return_value=httpx.Response(200, json={"code": "000000"})
    )

    async def _send() -> bool:
        async with httpx.AsyncClient() as http_client:
            client = TradingApiClient(
                base_url=BASE_URL,
                api_key="key",
                api_secret="secret",
                proxy_token="token",
                client=http_client,
            )
            result = await client.send_chat_message("1001", "hi")
            await client.aclose()
            assert not http_client.is_closed
            return result.accepted

    assert asyncio.run(_send())
    request = route.calls.last.request
    assert request.headers["x-api-key"] == "key"
    assert request.headers["x-proxy-token"] == "token"
