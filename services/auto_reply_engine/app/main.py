"""FastAPI application exposing the auto-reply engine.

Run with ``uvicorn services.auto_reply_engine.app.main:create_app --factory``.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from fastapi import Depends, FastAPI, HTTPException, Response, status
from sqlalchemy.orm import Session, sessionmaker

from libs.observability import RequestContextMiddleware, configure_logging, setup_metrics

from .clients import TradingApiClient
from .config import AutoReplySettings, get_settings
from .database import create_session_factory, get_session
from .engine import AutoReplyEngine
from .errors import ConfigurationError, OrderFetchError, RuleStoreError
from .models import AutoReplyRule
from .repository import AutoReplyRepository
from .schemas import (
    AutoReplyRuleCreate,
    AutoReplyRuleRead,
    AutoReplyRuleUpdate,
    ExecutionLogRead,
    RunSummary,
)


def create_app(
    settings: AutoReplySettings | None = None,
    session_factory: sessionmaker[Session] | None = None,
    trading_client: TradingApiClient | None = None,
    clock: Callable[[], float] | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.service_name)
    session_factory = session_factory or create_session_factory(settings)
    trading_client = trading_client or TradingApiClient.from_settings(settings)

    repository = AutoReplyRepository()
    engine = AutoReplyEngine(
        settings=settings,
        repository=repository,
        client=trading_client,
        clock=clock or time.time,
    )

    app = FastAPI(title="Auto-Reply Engine")
    app.add_middleware(RequestContextMiddleware)
    setup_metrics(app, service_name=settings.service_name)
    app.state.session_factory = session_factory
    app.state.auto_reply_engine = engine
    app.state.trading_client = trading_client

    @app.on_event("shutdown")
    async def _shutdown() -> None:  # pragma: no cover - FastAPI wiring
        await trading_client.aclose()

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        """Expose a minimal readiness check for orchestrators and dashboards."""

        return {"status": "ok"}

    def get_engine() -> AutoReplyEngine:
        return app.state.auto_reply_engine

    def get_session_dep() -> Session:
        yield from get_session(app.state.session_factory)

    def get_repository() -> AutoReplyRepository:
        return repository

    @app.post("/runs", response_model=RunSummary, tags=["engine"])
    async def run_engine(
        session: Session = Depends(get_session_dep),
        engine: AutoReplyEngine = Depends(get_engine),
    ) -> RunSummary:
        """Execute one auto-reply pass and return its counters."""

        try:
            return await engine.run(session)
        except ConfigurationError as error:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error)
            ) from error
        except OrderFetchError as error:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error)) from error
        except RuleStoreError as error:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error)
            ) from error

    @app.get("/rules", response_model=list[AutoReplyRuleRead], tags=["rules"])
    async def list_rules(
        session: Session = Depends(get_session_dep),
        repository: AutoReplyRepository = Depends(get_repository),
    ) -> list[AutoReplyRuleRead]:
        rules = await repository.list_rules(session)
        return [AutoReplyRuleRead.model_validate(rule) for rule in rules]

    @app.post(
        "/rules",
        response_model=AutoReplyRuleRead,
        status_code=status.HTTP_201_CREATED,
        tags=["rules"],
    )
    async def create_rule(
        payload: AutoReplyRuleCreate,
        session: Session = Depends(get_session_dep),
        repository: AutoReplyRepository = Depends(get_repository),
    ) -> AutoReplyRuleRead:
        values = payload.model_dump(mode="json")
        values["name"] = values["name"].strip()
        created = await repository.add_rule(session, AutoReplyRule(**values))
        return AutoReplyRuleRead.model_validate(created)

    @app.put("/rules/{rule_id}", response_model=AutoReplyRuleRead, tags=["rules"])
    async def update_rule(
        rule_id: int,
        payload: AutoReplyRuleUpdate,
        session: Session = Depends(get_session_dep),
        repository: AutoReplyRepository = Depends(get_repository),
    ) -> AutoReplyRuleRead:
        rule = await repository.get_rule(session, rule_id)
        if rule is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Rule not found.")
        values = payload.to_update_mapping()
        if not values:
            return AutoReplyRuleRead.model_validate(rule)
        if isinstance(values.get("name"), str):
            values["name"] = values["name"].strip()
        updated = await repository.update_rule(session, rule, values)
        return AutoReplyRuleRead.model_validate(updated)

    @app.delete("/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["rules"])
    async def delete_rule(
        rule_id: int,
        session: Session = Depends(get_session_dep),
        repository: AutoReplyRepository = Depends(get_repository),
    ) -> Response:
        rule = await repository.get_rule(session, rule_id)
        if rule is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Rule not found.")
        await repository.delete_rule(session, rule)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/logs", response_model=list[ExecutionLogRead], tags=["rules"])
    async def list_logs(
        limit: int = 50,
        session: Session = Depends(get_session_dep),
        repository: AutoReplyRepository = Depends(get_repository),
    ) -> list[ExecutionLogRead]:
        limit = max(1, min(limit, 200))
        entries = await repository.list_recent_executions(session, limit=limit)
        return [ExecutionLogRead.model_validate(entry) for entry in entries]

    return app
