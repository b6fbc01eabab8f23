"""Send rendered auto-replies and persist the outcome of each attempt."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from libs.observability import observe_dispatch

from .clients import TradingApiClient
from .matching import TriggerRule
from .repository import AutoReplyRepository
from .schemas import TriggerEvent

logger = logging.getLogger(__name__)

STATUS_SENT = "sent"
STATUS_FAILED = "failed"


@dataclass(slots=True)
class DispatchResult:
    status: str
    error: str | None = None
    store_errors: int = 0

    @property
    def sent(self) -> bool:
        return self.status == STATUS_SENT


class ReplyDispatcher:
    """Deliver one message for an (order, event, rule) triple.

    A processed marker is written only after the trading API accepted the
    message; every attempt, successful or not, appends one execution log row.
    """

    def __init__(self, client: TradingApiClient, repository: AutoReplyRepository) -> None:
        self._client = client
        self._repository = repository

    async def dispatch(
        self,
        session: Session,
        *,
        rule: TriggerRule,
        order_number: str,
        event: TriggerEvent,
        message: str,
    ) -> DispatchResult:
        error: str | None = None
        try:
            outcome = await self._client.send_chat_message(order_number, message)
            if not outcome.accepted:
                error = outcome.error_detail()
        except Exception as exc:  # noqa: BLE001
            error = str(exc) or exc.__class__.__name__

        result = DispatchResult(status=STATUS_FAILED if error else STATUS_SENT, error=error)
        observe_dispatch(event.value, result.status)

        if result.sent:
            await self._write_marker(session, rule, order_number, event, result)
            logger.info(
                "Auto-reply sent: [%s] %s -> order %s",
                event.value,
                rule.name,
                order_number,
                extra={"rule_id": rule.id},
            )
        else:
            logger.error(
                "Auto-reply failed: [%s] %s -> order %s: %s",
                event.value,
                rule.name,
                order_number,
                error,
                extra={"rule_id": rule.id},
            )

        await self._write_log(session, rule, order_number, event, message, result)
        return result

    async def _write_marker(
        self,
        session: Session,
        rule: TriggerRule,
        order_number: str,
        event: TriggerEvent,
        result: DispatchResult,
    ) -> None:
        try:
            inserted = await self._repository.mark_processed(
                session, order_number=order_number, trigger_event=event.value, rule_id=rule.id
            )
        except Exception:  # noqa: BLE001
            logger.exception("Could not persist processed marker for order %s", order_number)
            result.store_errors += 1
            return
        if not inserted:
            logger.warning(
                "Processed marker for order %s / %s / rule %s already existed",
                order_number,
                event.value,
                rule.id,
            )

    async def _write_log(
        self,
        session: Session,
        rule: TriggerRule,
        order_number: str,
        event: TriggerEvent,
        message: str,
        result: DispatchResult,
    ) -> None:
        try:
            await self._repository.record_execution(
                session,
                rule_id=rule.id,
                order_number=order_number,
                trigger_event=event.value,
                message=message,
                status=result.status,
                error_message=result.error,
            )
        except Exception:  # noqa: BLE001
            logger.exception("Could not persist execution log for order %s", order_number)
            result.store_errors += 1


__all__ = ["DispatchResult", "ReplyDispatcher", "STATUS_FAILED", "STATUS_SENT"]
