from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AutoReplyRule(Base):
    __tablename__ = "p2p_auto_reply_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    trigger_event: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    trade_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    message_template: Mapped[str] = mapped_column(Text, nullable=False)
    delay_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    conditions: Mapped[dict | None] = mapped_column(JSON, nullable=True, default=dict)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)


class ProcessedMarker(Base):
    """Proof that a rule already reached an order for a given trigger event."""

    __tablename__ = "p2p_auto_reply_processed"
    __table_args__ = (
        UniqueConstraint(
            "order_number", "trigger_event", "rule_id", name="uq_auto_reply_processed_triple"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_number: Mapped[str] = mapped_column(String(64), nullable=False)
    trigger_event: Mapped[str] = mapped_column(String(32), nullable=False)
    rule_id: Mapped[int] = mapped_column(
        ForeignKey("p2p_auto_reply_rules.id", ondelete="CASCADE"), nullable=False
    )
    processed_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class ExecutionLogEntry(Base):
    __tablename__ = "p2p_auto_reply_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rule_id: Mapped[int | None] = mapped_column(
        ForeignKey("p2p_auto_reply_rules.id", ondelete="SET NULL"), nullable=True, index=True
    )
    order_number: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    trigger_event: Mapped[str] = mapped_column(String(32), nullable=False)
    message_sent: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    executed_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, nullable=False, index=True
    )


class AutoReplyExclusion(Base):
    __tablename__ = "terminal_auto_reply_exclusions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


class SmallTradeConfig(Base):
    """Total-price band that qualifies an order as a small buy or small sale."""

    __tablename__ = "small_trade_configs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    side: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    min_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    max_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


class OrderCounterparty(Base):
    __tablename__ = "order_counterparties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    verified_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    counter_part_nick_name: Mapped[str | None] = mapped_column(String(255), nullable=True)


class AutoPaySettings(Base):
    __tablename__ = "p2p_auto_pay_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    minutes_before_expiry: Mapped[float] = mapped_column(Float, nullable=False, default=3.0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)


class AutoPayLog(Base):
    __tablename__ = "p2p_auto_pay_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_number: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False, default="mark_paid")
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    minutes_remaining: Mapped[float | None] = mapped_column(Float, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    executed_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
