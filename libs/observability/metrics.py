"""Prometheus metrics for the auto-reply services."""

from __future__ import annotations

import time

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

_REQUEST_COUNTER = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    labelnames=("service", "method", "path", "status"),
)
_REQUEST_LATENCY = Histogram(
    "http_request_latency_seconds",
    "Latency of HTTP requests in seconds",
    labelnames=("service", "method", "path"),
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

DISPATCH_COUNTER = Counter(
    "auto_reply_dispatch_total",
    "Chat dispatch attempts grouped by trigger event and outcome",
    labelnames=("trigger_event", "status"),
)
RUN_COUNTER = Counter(
    "auto_reply_runs_total",
    "Engine runs grouped by outcome",
    labelnames=("outcome",),
)
AUTO_PAY_COUNTER = Counter(
    "auto_reply_auto_pay_total",
    "Mark-as-paid attempts grouped by outcome",
    labelnames=("status",),
)
RUN_DURATION = Histogram(
    "auto_reply_run_duration_seconds",
    "Wall-clock duration of a full engine run",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)


def observe_dispatch(trigger_event: str, status: str) -> None:
    DISPATCH_COUNTER.labels(trigger_event, status).inc()


def observe_auto_pay(status: str) -> None:
    AUTO_PAY_COUNTER.labels(status).inc()


def observe_run(outcome: str, duration_seconds: float) -> None:
    RUN_COUNTER.labels(outcome).inc()
    RUN_DURATION.observe(duration_seconds)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count requests and record their latency per route template."""

    def __init__(self, app: ASGIApp, *, service_name: str) -> None:
        super().__init__(app)
        self._service_name = service_name

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        route = request.scope.get("route")
        path_template: str = getattr(route, "path", request.url.path)
        method = request.method.upper()
        start = time.perf_counter()
        status_code = "500"
        try:
            response = await call_next(request)
            status_code = str(getattr(response, "status_code", 500))
            return response
        finally:
            _REQUEST_COUNTER.labels(self._service_name, method, path_template, status_code).inc()
            _REQUEST_LATENCY.labels(self._service_name, method, path_template).observe(
                time.perf_counter() - start
            )


def setup_metrics(app: FastAPI, *, service_name: str) -> None:
    """Attach the metrics middleware and the ``/metrics`` endpoint."""

    if getattr(app.state, "_metrics_configured", False):
        return

    app.add_middleware(MetricsMiddleware, service_name=service_name)

    async def metrics_endpoint() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.add_api_route(
        "/metrics",
        metrics_endpoint,
        methods=["GET"],
        include_in_schema=False,
        name="metrics",
    )
    app.state._metrics_configured = True
