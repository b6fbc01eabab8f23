from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .matching import SmallTradeBand, TriggerRule
from .models import (
    AutoPayLog,
    AutoPaySettings,
    AutoReplyExclusion,
    AutoReplyRule,
    ExecutionLogEntry,
    OrderCounterparty,
    ProcessedMarker,
    SmallTradeConfig,
)


class AutoReplyRepository:
    """Repository handling persistence for rules, markers and execution logs."""

    async def list_active_rules(self, session: Session) -> list[TriggerRule]:
        def _query() -> list[TriggerRule]:
            stmt = (
                select(AutoReplyRule)
                .where(AutoReplyRule.is_active.is_(True))
                .order_by(AutoReplyRule.priority.desc(), AutoReplyRule.id.asc())
            )
            return [TriggerRule.from_record(rule) for rule in session.execute(stmt).scalars()]

        return await asyncio.to_thread(_query)

    async def list_rules(self, session: Session) -> Sequence[AutoReplyRule]:
        def _query() -> Sequence[AutoReplyRule]:
            stmt = select(AutoReplyRule).order_by(
                AutoReplyRule.priority.desc(), AutoReplyRule.created_at.desc()
            )
            return session.execute(stmt).scalars().all()

        return await asyncio.to_thread(_query)

    async def get_rule(self, session: Session, rule_id: int) -> AutoReplyRule | None:
        def _get() -> AutoReplyRule | None:
            return session.get(AutoReplyRule, rule_id)

        return await asyncio.to_thread(_get)

    async def add_rule(self, session: Session, rule: AutoReplyRule) -> AutoReplyRule:
        def _add() -> AutoReplyRule:
            session.add(rule)
            session.commit()
            session.refresh(rule)
            return rule

        return await asyncio.to_thread(_add)

    async def update_rule(
        self, session: Session, rule: AutoReplyRule, values: Mapping[str, object]
    ) -> AutoReplyRule:
        def _update() -> AutoReplyRule:
            for field, value in values.items():
                setattr(rule, field, value)
            session.add(rule)
            session.commit()
            session.refresh(rule)
            return rule

        return await asyncio.to_thread(_update)

    async def delete_rule(self, session: Session, rule: AutoReplyRule) -> None:
        def _delete() -> None:
            session.delete(rule)
            session.commit()

        await asyncio.to_thread(_delete)

    async def is_processed(
        self, session: Session, *, order_number: str, trigger_event: str, rule_id: int
    ) -> bool:
        def _check() -> bool:
            stmt = (
                select(ProcessedMarker.id)
                .where(ProcessedMarker.order_number == order_number)
                .where(ProcessedMarker.trigger_event == trigger_event)
                .where(ProcessedMarker.rule_id == rule_id)
                .limit(1)
            )
            return session.execute(stmt).scalar_one_or_none() is not None

        return await asyncio.to_thread(_check)

    async def mark_processed(
        self, session: Session, *, order_number: str, trigger_event: str, rule_id: int
    ) -> bool:
        """Insert the marker; ``False`` means a concurrent run already wrote it."""

        def _insert() -> bool:
            session.add(
                ProcessedMarker(
                    order_number=order_number, trigger_event=trigger_event, rule_id=rule_id
                )
            )
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return False
            except Exception:
                session.rollback()
                raise
            return True

        return await asyncio.to_thread(_insert)

    async def record_execution(
        self,
        session: Session,
        *,
        rule_id: int | None,
        order_number: str,
        trigger_event: str,
        message: str,
        status: str,
        error_message: str | None = None,
    ) -> ExecutionLogEntry:
        def _create() -> ExecutionLogEntry:
            entry = ExecutionLogEntry(
                rule_id=rule_id,
                order_number=order_number,
                trigger_event=trigger_event,
                message_sent=message,
                status=status,
                error_message=error_message,
            )
            session.add(entry)
            try:
                session.commit()
            except Exception:
                session.rollback()
                raise
            session.refresh(entry)
            return entry

        return await asyncio.to_thread(_create)

    async def list_recent_executions(
        self, session: Session, *, limit: int = 50
    ) -> Sequence[ExecutionLogEntry]:
        def _query() -> Sequence[ExecutionLogEntry]:
            stmt = (
                select(ExecutionLogEntry)
                .order_by(ExecutionLogEntry.executed_at.desc(), ExecutionLogEntry.id.desc())
                .limit(limit)
            )
            return session.execute(stmt).scalars().all()

        return await asyncio.to_thread(_query)

    async def list_excluded_orders(self, session: Session) -> set[str]:
        def _query() -> set[str]:
            stmt = select(AutoReplyExclusion.order_number)
            return set(session.execute(stmt).scalars())

        return await asyncio.to_thread(_query)

    async def small_trade_bands(self, session: Session) -> dict[str, SmallTradeBand]:
        """Return the enabled small-trade bands keyed by order side."""

        def _query() -> dict[str, SmallTradeBand]:
            stmt = select(SmallTradeConfig).where(SmallTradeConfig.is_enabled.is_(True))
            return {
                config.side.upper(): SmallTradeBand(
                    side=config.side.upper(),
                    min_amount=float(config.min_amount),
                    max_amount=float(config.max_amount),
                )
                for config in session.execute(stmt).scalars()
            }

        return await asyncio.to_thread(_query)

    async def verified_names(
        self, session: Session, order_numbers: Iterable[str]
    ) -> dict[str, str]:
        numbers = list(order_numbers)

        def _query() -> dict[str, str]:
            if not numbers:
                return {}
            stmt = select(OrderCounterparty).where(OrderCounterparty.order_number.in_(numbers))
            names: dict[str, str] = {}
            for row in session.execute(stmt).scalars():
                name = row.verified_name or row.counter_part_nick_name
                if name:
                    names[row.order_number] = name
            return names

        return await asyncio.to_thread(_query)

    async def get_auto_pay_settings(self, session: Session) -> AutoPaySettings | None:
        def _query() -> AutoPaySettings | None:
            stmt = select(AutoPaySettings).order_by(AutoPaySettings.id.asc()).limit(1)
            return session.execute(stmt).scalar_one_or_none()

        return await asyncio.to_thread(_query)

    async def has_successful_auto_pay(self, session: Session, order_number: str) -> bool:
        def _check() -> bool:
            stmt = (
                select(AutoPayLog.id)
                .where(AutoPayLog.order_number == order_number)
                .where(AutoPayLog.status == "success")
                .limit(1)
            )
            return session.execute(stmt).scalar_one_or_none() is not None

        return await asyncio.to_thread(_check)

    async def record_auto_pay(
        self,
        session: Session,
        *,
        order_number: str,
        status: str,
        minutes_remaining: float | None = None,
        error_message: str | None = None,
    ) -> AutoPayLog:
        def _create() -> AutoPayLog:
            entry = AutoPayLog(
                order_number=order_number,
                action="mark_paid",
                status=status,
                minutes_remaining=minutes_remaining,
                error_message=error_message,
            )
            session.add(entry)
            try:
                session.commit()
            except Exception:
                session.rollback()
                raise
            session.refresh(entry)
            return entry

        return await asyncio.to_thread(_create)
