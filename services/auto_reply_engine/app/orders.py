"""Fetch and merge the order snapshots a run works on."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pydantic import ValidationError

from .clients import TradingApiClient
from .errors import OrderFetchError, TradingApiError
from .schemas import TradingOrder

logger = logging.getLogger(__name__)


def parse_orders(rows: Iterable[dict], *, source: str) -> list[TradingOrder]:
    orders: list[TradingOrder] = []
    for row in rows:
        try:
            orders.append(TradingOrder.model_validate(row))
        except ValidationError:
            logger.warning(
                "Dropping malformed %s order row",
                source,
                extra={"order_number": row.get("orderNumber")},
                exc_info=True,
            )
    return orders


def merge_orders(*batches: Iterable[TradingOrder]) -> list[TradingOrder]:
    """Deduplicate by order number, keeping the first occurrence."""

    merged: dict[str, TradingOrder] = {}
    for batch in batches:
        for order in batch:
            merged.setdefault(order.order_number, order)
    return list(merged.values())


class OrderFetcher:
    """Pull active orders then recent history; active entries win on overlap."""

    def __init__(
        self,
        client: TradingApiClient,
        *,
        active_rows: int = 50,
        history_rows: int = 20,
    ) -> None:
        self._client = client
        self._active_rows = active_rows
        self._history_rows = history_rows

    async def fetch(self) -> list[TradingOrder]:
        try:
            active_rows = await self._client.list_active_orders(page=1, rows=self._active_rows)
            history_rows = await self._client.list_order_history(page=1, rows=self._history_rows)
        except TradingApiError as exc:
            raise OrderFetchError(f"order fetch failed: {exc}") from exc

        active = parse_orders(active_rows, source="active")
        history = parse_orders(history_rows, source="history")
        orders = merge_orders(active, history)
        logger.info(
            "Fetched %d orders (%d active, %d history)",
            len(orders),
            len(active),
            len(history),
        )
        return orders


__all__ = ["OrderFetcher", "merge_orders", "parse_orders"]
