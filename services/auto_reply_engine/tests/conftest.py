from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
import sqlalchemy
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from services.auto_reply_engine.app import models
from services.auto_reply_engine.app.config import AutoReplySettings
from services.auto_reply_engine.app.database import Base


@pytest.fixture()
def settings() -> AutoReplySettings:
    return AutoReplySettings(
        database_url="sqlite://",
        trading_api_url="http://proxy.test",
        trading_api_key="key",
        trading_api_secret="secret",
        trading_proxy_token="token",
    )


@pytest.fixture()
def session_factory() -> Iterator[sessionmaker[Session]]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=sqlalchemy.pool.StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture()
def session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def add_rule(session: Session):
    def _add(**values: Any) -> models.AutoReplyRule:
        values.setdefault("name", "Payment thanks")
        values.setdefault("trigger_event", "payment_marked")
        values.setdefault("message_template", "Order {{orderNumber}} for {{amount}} {{asset}}")
        rule = models.AutoReplyRule(**values)
        session.add(rule)
        session.commit()
        session.refresh(rule)
        return rule

    return _add
