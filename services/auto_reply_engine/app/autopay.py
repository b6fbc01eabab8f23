"""Mark BUY orders as paid shortly before their payment window closes."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from libs.observability import observe_auto_pay

from .clients import TradingApiClient
from .events import normalize_status
from .repository import AutoReplyRepository
from .schemas import OrderStatus, TradeType, TradingOrder

logger = logging.getLogger(__name__)

_PAYABLE_STATUSES = frozenset({OrderStatus.UNPAID, OrderStatus.UNKNOWN})


@dataclass(slots=True)
class AutoPayResult:
    paid: int = 0
    errors: int = 0


def payment_deadline_ms(order: TradingOrder, default_window_minutes: float = 15.0) -> int:
    if order.notify_pay_end_time:
        return int(order.notify_pay_end_time)
    if order.notify_payed_expire_minute:
        return int(order.create_time + order.notify_payed_expire_minute * 60_000)
    return int(order.create_time + default_window_minutes * 60_000)


def awaiting_payment(order: TradingOrder) -> bool:
    return (
        order.trade_type == TradeType.BUY.value
        and normalize_status(order.order_status) in _PAYABLE_STATUSES
    )


class AutoPayProcessor:
    def __init__(
        self,
        client: TradingApiClient,
        repository: AutoReplyRepository,
        *,
        default_window_minutes: float = 15.0,
    ) -> None:
        self._client = client
        self._repository = repository
        self._default_window_minutes = default_window_minutes

    async def process(
        self,
        session: Session,
        orders: Iterable[TradingOrder],
        *,
        minutes_before_expiry: float,
        now_ms: int,
    ) -> AutoPayResult:
        result = AutoPayResult()
        pending = [order for order in orders if awaiting_payment(order)]
        logger.info("Auto-pay: %d BUY orders pending payment", len(pending))

        for order in pending:
            deadline = payment_deadline_ms(order, self._default_window_minutes)
            minutes_remaining = (deadline - now_ms) / 60_000
            if not 0 < minutes_remaining <= minutes_before_expiry:
                continue

            try:
                if await self._repository.has_successful_auto_pay(session, order.order_number):
                    logger.info("Order %s already auto-paid, skipping", order.order_number)
                    continue
                logger.info(
                    "Auto-paying order %s (%.1f min remaining)",
                    order.order_number,
                    minutes_remaining,
                )
                outcome = await self._client.mark_order_paid(order.order_number)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Auto-pay error for order %s", order.order_number)
                self._count(result, accepted=False)
                await self._record(session, result, order, "failed", minutes_remaining, str(exc))
                continue

            self._count(result, accepted=outcome.accepted)
            if outcome.accepted:
                await self._record(session, result, order, "success", minutes_remaining)
            else:
                logger.error(
                    "Auto-pay rejected for order %s: %s",
                    order.order_number,
                    outcome.error_detail(),
                )
                await self._record(
                    session,
                    result,
                    order,
                    "failed",
                    minutes_remaining,
                    outcome.error_detail(),
                )
        return result

    @staticmethod
    def _count(result: AutoPayResult, *, accepted: bool) -> None:
        if accepted:
            result.paid += 1
            observe_auto_pay("success")
        else:
            result.errors += 1
            observe_auto_pay("failed")

    async def _record(
        self,
        session: Session,
        result: AutoPayResult,
        order: TradingOrder,
        status: str,
        minutes_remaining: float,
        error_message: str | None = None,
    ) -> None:
        try:
            await self._repository.record_auto_pay(
                session,
                order_number=order.order_number,
                status=status,
                minutes_remaining=round(minutes_remaining, 2),
                error_message=error_message,
            )
        except Exception:  # noqa: BLE001
            logger.exception("Could not persist auto-pay log for order %s", order.order_number)
            result.errors += 1


__all__ = ["AutoPayProcessor", "AutoPayResult", "awaiting_payment", "payment_deadline_ms"]
