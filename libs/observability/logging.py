"""Structured logging helpers shared by the engine services."""

from __future__ import annotations

import contextvars
import json
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.types import ASGIApp

_CORRELATION_ID_CTX: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)
_RUN_ID_CTX: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "run_id", default=None
)
_CONFIGURED_SERVICES: set[str] = set()

_RESERVED_LOG_KEYS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class RunContextFilter(logging.Filter):
    """Attach the service name, correlation id and engine run id to records."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - logging side effect
        record.service = self._service_name
        record.correlation_id = _CORRELATION_ID_CTX.get()
        record.run_id = _RUN_ID_CTX.get()
        return True


class JsonLogFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "service": getattr(record, "service", self._service_name),
            "message": record.getMessage(),
        }
        for key in ("correlation_id", "run_id"):
            value = getattr(record, key, None)
            if value:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_LOG_KEYS or key in payload or value is None:
                continue
            try:
                json.dumps(value)
                payload[key] = value
            except TypeError:
                payload[key] = str(value)
        return json.dumps(payload, default=str)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Propagate the caller's correlation id, or mint one, for each request."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        correlation_header: str = "X-Correlation-ID",
    ) -> None:
        super().__init__(app)
        self._correlation_header = correlation_header

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get(self._correlation_header) or uuid.uuid4().hex
        token = _CORRELATION_ID_CTX.set(correlation_id)
        request.state.correlation_id = correlation_id
        try:
            response = await call_next(request)
            response.headers.setdefault(self._correlation_header, correlation_id)
            return response
        finally:
            _CORRELATION_ID_CTX.reset(token)


@contextmanager
def bind_run_id(run_id: str | None = None) -> Iterator[str]:
    """Tag every log record emitted inside the block with an engine run id."""

    value = run_id or uuid.uuid4().hex
    token = _RUN_ID_CTX.set(value)
    try:
        yield value
    finally:
        _RUN_ID_CTX.reset(token)


def configure_logging(service_name: str, level: int | str = logging.INFO) -> None:
    """Install the JSON handler on the root and uvicorn loggers once per service."""

    if service_name in _CONFIGURED_SERVICES:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter(service_name))
    handler.addFilter(RunContextFilter(service_name))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(logger_name)
        logger.handlers = [handler]
        logger.setLevel(level)
        logger.propagate = False

    _CONFIGURED_SERVICES.add(service_name)


def get_correlation_id() -> Optional[str]:
    """Return the correlation identifier for the active request context."""

    return _CORRELATION_ID_CTX.get()


def get_run_id() -> Optional[str]:
    """Return the identifier of the engine run in progress, if any."""

    return _RUN_ID_CTX.get()
