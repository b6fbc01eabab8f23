from __future__ import annotations

from types import SimpleNamespace

from services.auto_reply_engine.app.matching import (
    SmallTradeBand,
    TriggerRule,
    delay_elapsed,
    select_rules,
    trade_type_matches,
)
from services.auto_reply_engine.app.schemas import TradingOrder, TriggerEvent
from services.auto_reply_engine.tests._helpers import NOW_MS, make_order


def _rule(rule_id: int = 1, **overrides) -> TriggerRule:
    values = {
        "id": rule_id,
        "name": f"rule-{rule_id}",
        "trigger_event": "payment_marked",
        "message_template": "hello",
    }
    values.update(overrides)
    return TriggerRule(**values)


def _order(**kwargs) -> TradingOrder:
    return TradingOrder.model_validate(make_order(**kwargs))


def test_select_rules_filters_on_event_and_keeps_order() -> None:
    rules = [
        _rule(1, priority=5),
        _rule(2, trigger_event="order_received"),
        _rule(3),
    ]

    selected = select_rules(rules, _order(), TriggerEvent.PAYMENT_MARKED)

    assert [rule.id for rule in selected] == [1, 3]


def test_trade_type_filter() -> None:
    sell_order = _order(trade_type="sell")

    assert trade_type_matches(_rule(trade_type=None), sell_order)
    assert trade_type_matches(_rule(trade_type="SELL"), sell_order)
    assert not trade_type_matches(_rule(trade_type="BUY"), sell_order)


def test_small_trade_rules_need_an_enabled_band() -> None:
    order = _order(trade_type="BUY", totalPrice="800")
    rule = _rule(trade_type="SMALL_BUY")
    bands = {"BUY": SmallTradeBand(side="BUY", min_amount=100, max_amount=1000)}

    assert trade_type_matches(rule, order, bands)
    assert not trade_type_matches(rule, order, {})
    assert not trade_type_matches(rule, _order(trade_type="BUY", totalPrice="5000"), bands)
    assert not trade_type_matches(rule, _order(trade_type="SELL", totalPrice="800"), bands)


def test_delay_gate_uses_order_age() -> None:
    rule = _rule(delay_seconds=300)

    assert not delay_elapsed(rule, _order(age_seconds=299), NOW_MS)
    assert delay_elapsed(rule, _order(age_seconds=300), NOW_MS)
    assert delay_elapsed(_rule(delay_seconds=0), _order(age_seconds=0), NOW_MS)


def test_from_record_normalises_optional_columns() -> None:
    record = SimpleNamespace(
        id=7,
        name="Greeting",
        trigger_event="order_received",
        message_template="Hi",
        trade_type="",
        delay_seconds=None,
        priority=None,
        conditions=None,
    )

    rule = TriggerRule.from_record(record)

    assert rule.trade_type is None
    assert rule.delay_seconds == 0
    assert rule.priority == 0
    assert dict(rule.conditions) == {}
