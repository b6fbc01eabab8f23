"""Rule selection and the time-based gate applied before dispatch."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .events import order_age_seconds
from .schemas import TradeType, TradingOrder, TriggerEvent

_SMALL_TRADE_SIDES = {
    TradeType.SMALL_BUY.value: TradeType.BUY.value,
    TradeType.SMALL_SELL.value: TradeType.SELL.value,
}


@dataclass(frozen=True, slots=True)
class TriggerRule:
    """Read-only snapshot of an active auto-reply rule."""

    id: int
    name: str
    trigger_event: str
    message_template: str
    trade_type: str | None = None
    delay_seconds: int = 0
    priority: int = 0
    conditions: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Any) -> "TriggerRule":
        return cls(
            id=record.id,
            name=record.name,
            trigger_event=record.trigger_event,
            message_template=record.message_template,
            trade_type=(record.trade_type or None),
            delay_seconds=max(int(record.delay_seconds or 0), 0),
            priority=int(record.priority or 0),
            conditions=dict(record.conditions or {}),
        )


@dataclass(frozen=True, slots=True)
class SmallTradeBand:
    side: str
    min_amount: float
    max_amount: float

    def contains(self, total_price: float) -> bool:
        return self.min_amount <= total_price <= self.max_amount


def trade_type_matches(
    rule: TriggerRule,
    order: TradingOrder,
    small_trade_bands: Mapping[str, SmallTradeBand] | None = None,
) -> bool:
    if not rule.trade_type:
        return True
    required_side = _SMALL_TRADE_SIDES.get(rule.trade_type)
    if required_side is None:
        return rule.trade_type == order.trade_type
    if order.trade_type != required_side:
        return False
    band = (small_trade_bands or {}).get(required_side)
    if band is None:
        return False
    return band.contains(order.total_price_value)


def select_rules(
    rules: Iterable[TriggerRule],
    order: TradingOrder,
    event: TriggerEvent,
    small_trade_bands: Mapping[str, SmallTradeBand] | None = None,
) -> list[TriggerRule]:
    """Return every rule bound to ``event`` whose trade-type filter accepts ``order``.

    Rules keep their incoming (priority) order and all of them qualify, a
    single event may legitimately produce several messages.
    """

    return [
        rule
        for rule in rules
        if rule.trigger_event == event.value
        and trade_type_matches(rule, order, small_trade_bands)
    ]


def delay_elapsed(rule: TriggerRule, order: TradingOrder, now_ms: int) -> bool:
    return order_age_seconds(order, now_ms) >= rule.delay_seconds


__all__ = [
    "SmallTradeBand",
    "TriggerRule",
    "delay_elapsed",
    "select_rules",
    "trade_type_matches",
]
