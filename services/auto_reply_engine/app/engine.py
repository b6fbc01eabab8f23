from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from libs.observability import bind_run_id, observe_run

from .autopay import AutoPayProcessor
from .clients import TradingApiClient
from .config import AutoReplySettings
from .dispatcher import ReplyDispatcher
from .errors import AutoReplyEngineError, RuleStoreError
from .events import detect_trigger_events
from .matching import SmallTradeBand, TriggerRule, delay_elapsed, select_rules
from .orders import OrderFetcher
from .rendering import render_template
from .repository import AutoReplyRepository
from .schemas import RunSummary, TradingOrder, TriggerEvent

logger = logging.getLogger(__name__)

DEFAULT_MINUTES_BEFORE_EXPIRY = 3.0


class AutoReplyEngine:
    """Run one full auto-reply pass over the current trading orders.

    A run holds no state between invocations: rules, markers and logs live in
    the store, orders are fetched fresh, and everything is awaited in sequence.
    """

    def __init__(
        self,
        settings: AutoReplySettings,
        repository: AutoReplyRepository,
        client: TradingApiClient,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._repository = repository
        self._clock = clock
        self._fetcher = OrderFetcher(
            client,
            active_rows=settings.active_orders_rows,
            history_rows=settings.order_history_rows,
        )
        self._dispatcher = ReplyDispatcher(client, repository)
        self._auto_pay = AutoPayProcessor(
            client,
            repository,
            default_window_minutes=settings.default_payment_window_minutes,
        )

    async def run(self, session: Session) -> RunSummary:
        started = time.perf_counter()
        with bind_run_id():
            try:
                summary = await self._run(session)
            except AutoReplyEngineError:
                observe_run("failed", time.perf_counter() - started)
                logger.exception("Auto-reply run aborted")
                raise
            observe_run("completed", time.perf_counter() - started)
            logger.info(
                "Auto-reply run finished", extra={"summary": summary.model_dump(by_alias=True)}
            )
        return summary

    async def _run(self, session: Session) -> RunSummary:
        self._settings.require_trading_credentials()

        try:
            rules = await self._repository.list_active_rules(session)
            auto_pay_settings = await self._repository.get_auto_pay_settings(session)
        except SQLAlchemyError as exc:
            raise RuleStoreError(f"unable to read auto-reply rules: {exc}") from exc

        auto_pay_active = bool(auto_pay_settings and auto_pay_settings.is_active)
        minutes_before_expiry = (
            auto_pay_settings.minutes_before_expiry
            if auto_pay_settings and auto_pay_settings.minutes_before_expiry
            else DEFAULT_MINUTES_BEFORE_EXPIRY
        )
        if not rules and not auto_pay_active:
            logger.info("No active rules or auto-pay, skipping run")
            return RunSummary(message="Nothing active")

        logger.info(
            "Rules: %d, auto-pay: %s",
            len(rules),
            f"ON ({minutes_before_expiry:g} min)" if auto_pay_active else "OFF",
        )
        orders = await self._fetcher.fetch()
        now_ms = int(self._clock() * 1000)
        summary = RunSummary(
            orders_checked=len(orders),
            rules_active=len(rules),
            auto_pay_active=auto_pay_active,
        )

        if auto_pay_active:
            auto_pay = await self._auto_pay.process(
                session,
                orders,
                minutes_before_expiry=minutes_before_expiry,
                now_ms=now_ms,
            )
            summary.auto_paid = auto_pay.paid
            summary.errors += auto_pay.errors

        if rules:
            await self._reply(session, rules, orders, now_ms, summary)
        return summary

    async def _reply(
        self,
        session: Session,
        rules: Sequence[TriggerRule],
        orders: Sequence[TradingOrder],
        now_ms: int,
        summary: RunSummary,
    ) -> None:
        try:
            excluded = await self._repository.list_excluded_orders(session)
            bands = await self._repository.small_trade_bands(session)
            names = await self._repository.verified_names(
                session, [order.order_number for order in orders]
            )
        except SQLAlchemyError as exc:
            raise RuleStoreError(f"unable to read auto-reply settings: {exc}") from exc

        for order in orders:
            if order.order_number in excluded:
                logger.info("Skipping excluded order %s", order.order_number)
                continue
            events = detect_trigger_events(
                order,
                now_ms,
                timer_breach_minutes=self._settings.timer_breach_minutes,
                payment_pending_minutes=self._settings.payment_pending_minutes,
            )
            logger.debug(
                "Order %s status=%r events=%s",
                order.order_number,
                order.order_status,
                sorted(event.value for event in events),
            )
            for event in TriggerEvent:
                if event in events:
                    await self._handle_event(
                        session, rules, order, event, now_ms, bands, names, summary
                    )

    async def _handle_event(
        self,
        session: Session,
        rules: Sequence[TriggerRule],
        order: TradingOrder,
        event: TriggerEvent,
        now_ms: int,
        bands: dict[str, SmallTradeBand],
        names: dict[str, str],
        summary: RunSummary,
    ) -> None:
        for rule in select_rules(rules, order, event, bands):
            if not delay_elapsed(rule, order, now_ms):
                continue
            try:
                already_sent = await self._repository.is_processed(
                    session,
                    order_number=order.order_number,
                    trigger_event=event.value,
                    rule_id=rule.id,
                )
            except SQLAlchemyError:
                logger.exception("Dedup lookup failed for order %s", order.order_number)
                summary.errors += 1
                continue
            if already_sent:
                continue

            message = render_template(
                rule.message_template,
                order,
                verified_name=names.get(order.order_number),
            )
            result = await self._dispatcher.dispatch(
                session,
                rule=rule,
                order_number=order.order_number,
                event=event,
                message=message,
            )
            if result.sent:
                summary.processed += 1
            else:
                summary.errors += 1
            summary.errors += result.store_errors


__all__ = ["AutoReplyEngine"]
