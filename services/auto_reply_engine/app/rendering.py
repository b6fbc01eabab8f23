"""Message template rendering for auto-replies."""

from __future__ import annotations

import re

from .schemas import TradingOrder

DEFAULT_COUNTERPARTY = "Trader"

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


def resolve_counterparty(order: TradingOrder, verified_name: str | None = None) -> str:
    """Pick the name shown to the counterparty, most trusted source first."""

    for candidate in (
        verified_name,
        order.buyer_real_name,
        order.seller_real_name,
        order.counterpart_nick_name,
    ):
        if candidate and candidate.strip():
            return candidate
    return DEFAULT_COUNTERPARTY


def template_values(order: TradingOrder, counterparty: str) -> dict[str, str]:
    return {
        "orderNumber": order.order_number,
        "amount": order.amount,
        "totalPrice": order.total_price,
        "unitPrice": order.unit_price,
        "asset": order.asset or "USDT",
        "fiat": order.fiat_unit or "INR",
        "counterparty": counterparty,
        "payMethod": order.pay_method_name or "N/A",
    }


def render_template(
    template: str,
    order: TradingOrder,
    *,
    verified_name: str | None = None,
) -> str:
    """Substitute ``{{field}}`` placeholders with values from ``order``.

    Unknown placeholders are kept verbatim. Substitution is a single pass, so a
    value that itself looks like a placeholder is never expanded.
    """

    values = template_values(order, resolve_counterparty(order, verified_name))

    def _replace(match: re.Match[str]) -> str:
        return values.get(match.group(1), match.group(0))

    return _PLACEHOLDER.sub(_replace, template)


__all__ = ["DEFAULT_COUNTERPARTY", "render_template", "resolve_counterparty", "template_values"]
