"""Translate vendor order state into the trigger events rules react to."""

from __future__ import annotations

from .schemas import OrderStatus, TradingOrder, TriggerEvent

TIMER_BREACH_MINUTES = 15.0
PAYMENT_PENDING_MINUTES = 5.0

_STATUS_CODES: dict[int, OrderStatus] = {
    1: OrderStatus.UNPAID,
    2: OrderStatus.PAID,
    3: OrderStatus.PAID,
    4: OrderStatus.COMPLETED,
    5: OrderStatus.COMPLETED,
    6: OrderStatus.CANCELLED,
    7: OrderStatus.CANCELLED,
}

# Checked in order: "UNPAID" contains "PAID" and must resolve before it.
_STATUS_KEYWORDS: tuple[tuple[tuple[str, ...], OrderStatus], ...] = (
    (("APPEAL", "DISPUTE"), OrderStatus.DISPUTED),
    (("COMPLETED",), OrderStatus.COMPLETED),
    (("CANCEL", "EXPIRED"), OrderStatus.CANCELLED),
    (("UNPAID", "PENDING", "TRADING"), OrderStatus.UNPAID),
    (("PAID", "PAYED", "PAYING", "DISTRIBUTING"), OrderStatus.PAID),
)

_CLOSED = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})


def normalize_status(raw: str | int | None) -> OrderStatus:
    """Map a numeric code or free-text vendor status onto :class:`OrderStatus`."""

    if raw is None or isinstance(raw, bool):
        return OrderStatus.UNKNOWN
    text = str(raw).strip().upper()
    if not text:
        return OrderStatus.UNKNOWN
    if text.isdigit():
        return _STATUS_CODES.get(int(text), OrderStatus.UNKNOWN)
    for keywords, status in _STATUS_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return status
    return OrderStatus.UNKNOWN


def order_age_seconds(order: TradingOrder, now_ms: int) -> float:
    return (now_ms - order.create_time) / 1000.0


def detect_trigger_events(
    order: TradingOrder,
    now_ms: int,
    *,
    timer_breach_minutes: float = TIMER_BREACH_MINUTES,
    payment_pending_minutes: float = PAYMENT_PENDING_MINUTES,
) -> set[TriggerEvent]:
    """Return every trigger event that currently holds for ``order``.

    The result depends only on the order status and on its age at ``now_ms``;
    events are not exclusive, an old unpaid order is both received and breached.
    """

    status = normalize_status(order.order_status)
    age_minutes = order_age_seconds(order, now_ms) / 60.0
    events: set[TriggerEvent] = set()

    if status not in _CLOSED and status is not OrderStatus.DISPUTED:
        events.add(TriggerEvent.ORDER_RECEIVED)
    if status is OrderStatus.PAID:
        events.add(TriggerEvent.PAYMENT_MARKED)
    if status is OrderStatus.COMPLETED:
        events.add(TriggerEvent.ORDER_COMPLETED)
    if status is OrderStatus.CANCELLED:
        events.add(TriggerEvent.ORDER_CANCELLED)
    if status is OrderStatus.DISPUTED:
        events.add(TriggerEvent.ORDER_APPEALED)
    if status is OrderStatus.UNPAID and age_minutes > payment_pending_minutes:
        events.add(TriggerEvent.PAYMENT_PENDING)
    if status not in _CLOSED and age_minutes > timer_breach_minutes:
        events.add(TriggerEvent.TIMER_BREACH)
    return events


__all__ = ["detect_trigger_events", "normalize_status", "order_age_seconds"]
