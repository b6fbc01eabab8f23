from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TriggerEvent(str, Enum):
    ORDER_RECEIVED = "order_received"
    PAYMENT_MARKED = "payment_marked"
    PAYMENT_PENDING = "payment_pending"
    ORDER_COMPLETED = "order_completed"
    ORDER_CANCELLED = "order_cancelled"
    ORDER_APPEALED = "order_appealed"
    TIMER_BREACH = "timer_breach"


class OrderStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"
    UNKNOWN = "unknown"


class TradeType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    SMALL_BUY = "SMALL_BUY"
    SMALL_SELL = "SMALL_SELL"


class TradingOrder(BaseModel):
    """Order snapshot as returned by the trading API listing endpoints."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    order_number: str = Field(..., alias="orderNumber", min_length=1)
    adv_no: str = Field("", alias="advNo")
    trade_type: str = Field("", alias="tradeType")
    asset: str = Field("")
    fiat_unit: str = Field("", alias="fiatUnit")
    total_price: str = Field("", alias="totalPrice")
    amount: str = Field("")
    unit_price: str = Field("", alias="unitPrice")
    order_status: str | int | None = Field(None, alias="orderStatus")
    create_time: int = Field(..., alias="createTime")
    counterpart_nick_name: str = Field("", alias="counterPartNickName")
    buyer_real_name: str | None = Field(None, alias="buyerRealName")
    seller_real_name: str | None = Field(None, alias="sellerRealName")
    pay_method_name: str | None = Field(None, alias="payMethodName")
    notify_pay_end_time: int | None = Field(None, alias="notifyPayEndTime")
    notify_payed_expire_minute: float | None = Field(None, alias="notifyPayedExpireMinute")

    @field_validator(
        "order_number",
        "adv_no",
        "trade_type",
        "asset",
        "fiat_unit",
        "total_price",
        "amount",
        "unit_price",
        "counterpart_nick_name",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("trade_type")
    @classmethod
    def _upper_trade_type(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def total_price_value(self) -> float:
        try:
            return float(Decimal(self.total_price or "0"))
        except (InvalidOperation, ValueError):
            return 0.0


class AutoReplyRuleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    trigger_event: TriggerEvent
    trade_type: TradeType | None = None
    message_template: str = Field(..., min_length=1)
    delay_seconds: int = Field(default=0, ge=0)
    is_active: bool = True
    priority: int = 0
    conditions: dict[str, Any] = Field(
        default_factory=dict,
        description="Reserved structured filter; stored and returned, not evaluated yet",
    )


class AutoReplyRuleCreate(AutoReplyRuleBase):
    """Payload accepted when creating a new auto-reply rule."""

    created_by: str | None = Field(default=None, max_length=255)


class AutoReplyRuleUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(default=None, min_length=1, max_length=255)
    trigger_event: TriggerEvent | None = None
    trade_type: TradeType | None = None
    message_template: str | None = Field(default=None, min_length=1)
    delay_seconds: int | None = Field(default=None, ge=0)
    is_active: bool | None = None
    priority: int | None = None
    conditions: dict[str, Any] | None = None

    def to_update_mapping(self) -> dict[str, Any]:
        values = self.model_dump(exclude_unset=True, mode="json")
        # trade_type may be explicitly cleared; every other field ignores nulls
        return {
            key: value
            for key, value in values.items()
            if value is not None or key == "trade_type"
        }


class AutoReplyRuleRead(AutoReplyRuleBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator("conditions", mode="before")
    @classmethod
    def _default_conditions(cls, value: Any) -> Any:
        return value or {}


class ExecutionLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rule_id: int | None
    order_number: str
    trigger_event: str
    message_sent: str
    status: str
    error_message: str | None = None
    executed_at: datetime


class RunSummary(BaseModel):
    """Aggregate counters returned by a run, consumed by monitoring only."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = "Execution complete"
    processed: int = 0
    errors: int = 0
    orders_checked: int = Field(0, alias="ordersChecked")
    rules_active: int = Field(0, alias="rulesActive")
    auto_paid: int = Field(0, alias="autoPaid")
    auto_pay_active: bool = Field(False, alias="autoPayActive")
