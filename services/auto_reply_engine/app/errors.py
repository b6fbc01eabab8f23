"""Exception hierarchy raised by the auto-reply engine."""

from __future__ import annotations

from typing import Any


class AutoReplyEngineError(RuntimeError):
    """Base class for every error surfaced by an engine run."""


class ConfigurationError(AutoReplyEngineError):
    """Raised when mandatory settings are missing; no API call has been made."""


class RuleStoreError(AutoReplyEngineError):
    """Raised when the rule store cannot be read."""


class OrderFetchError(AutoReplyEngineError):
    """Raised when either order listing call fails, aborting the run."""


class TradingApiError(AutoReplyEngineError):
    """Raised by the trading API client on transport or protocol failures."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        payload: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


__all__ = [
    "AutoReplyEngineError",
    "ConfigurationError",
    "OrderFetchError",
    "RuleStoreError",
    "TradingApiError",
]
