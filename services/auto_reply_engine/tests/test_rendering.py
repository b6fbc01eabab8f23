from __future__ import annotations

from services.auto_reply_engine.app.rendering import (
    DEFAULT_COUNTERPARTY,
    render_template,
    resolve_counterparty,
)
from services.auto_reply_engine.app.schemas import TradingOrder
from services.auto_reply_engine.tests._helpers import make_order


def _order(**overrides) -> TradingOrder:
    return TradingOrder.model_validate(make_order("2002", **overrides))


def test_render_substitutes_known_placeholders() -> None:
    message = render_template(
        "Hi {{counterparty}}, order {{orderNumber}}: {{amount}} {{asset}} "
        "at {{unitPrice}} = {{totalPrice}} {{fiat}} via {{payMethod}}",
        _order(payMethodName="UPI"),
    )

    assert message == "Hi nick, order 2002: 50 USDT at 90.00 = 4500.00 INR via UPI"


def test_unknown_placeholders_are_kept_verbatim() -> None:
    assert render_template("{{orderNumber}} {{bankName}}", _order()) == "2002 {{bankName}}"


def test_substituted_values_are_not_expanded_again() -> None:
    order = _order(counterPartNickName="{{orderNumber}}")

    assert render_template("Dear {{counterparty}}", order) == "Dear {{orderNumber}}"


def test_missing_fields_fall_back_to_defaults() -> None:
    order = _order(asset=None, fiatUnit="", counterPartNickName="")

    message = render_template("{{asset}}/{{fiat}}/{{payMethod}}/{{counterparty}}", order)

    assert message == f"USDT/INR/N/A/{DEFAULT_COUNTERPARTY}"


def test_counterparty_prefers_verified_name_then_real_names() -> None:
    order = _order(buyerRealName="Asha Rao", sellerRealName="Vikram")

    assert resolve_counterparty(order, "Verified Name") == "Verified Name"
    assert resolve_counterparty(order) == "Asha Rao"
    assert resolve_counterparty(_order(sellerRealName="Vikram")) == "Vikram"
    assert resolve_counterparty(_order(), "  ") == "nick"


def test_template_without_placeholders_is_unchanged() -> None:
    assert render_template("Thanks for trading!", _order()) == "Thanks for trading!"


def test_empty_asset_renders_default() -> None:
    order = TradingOrder.model_validate(make_order("123", asset=""))

    assert render_template("Order {{orderNumber}} for {{amount}} {{asset}}", order) == (
        "Order 123 for 50 USDT"
    )
