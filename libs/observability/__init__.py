"""Logging and metrics helpers shared by the engine services."""

from .logging import (
    RequestContextMiddleware,
    bind_run_id,
    configure_logging,
    get_correlation_id,
    get_run_id,
)
from .metrics import observe_auto_pay, observe_dispatch, observe_run, setup_metrics

__all__ = [
    "RequestContextMiddleware",
    "bind_run_id",
    "configure_logging",
    "get_correlation_id",
    "get_run_id",
    "observe_auto_pay",
    "observe_dispatch",
    "observe_run",
    "setup_metrics",
]
