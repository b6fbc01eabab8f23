"""Environment configuration for the auto-reply engine."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from libs.env import get_database_url

from .errors import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./auto_reply_engine.db"

_REQUIRED_CREDENTIALS = (
    "trading_api_url",
    "trading_api_key",
    "trading_api_secret",
    "trading_proxy_token",
)


def _default_database_url() -> str:
    return get_database_url(default=DEFAULT_DATABASE_URL)


class AutoReplySettings(BaseSettings):
    """Settings loaded from ``AUTO_REPLY_ENGINE_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AUTO_REPLY_ENGINE_", case_sensitive=False, extra="ignore"
    )

    service_name: str = Field("auto-reply-engine", description="Service identifier used in logs")
    database_url: str = Field(default_factory=_default_database_url)

    trading_api_url: str | None = Field(None, description="Base URL of the trading API proxy")
    trading_api_key: str | None = Field(None, repr=False)
    trading_api_secret: str | None = Field(None, repr=False)
    trading_proxy_token: str | None = Field(None, repr=False)
    http_timeout_seconds: float = Field(10.0, gt=0, description="Timeout for trading API calls")

    active_orders_path: str = "/api/sapi/v1/c2c/orderMatch/listOrders"
    order_history_path: str = "/api/sapi/v1/c2c/orderMatch/listUserOrderHistory"
    chat_send_path: str = "/api/chat/send"
    mark_paid_path: str = "/api/sapi/v1/c2c/orderMatch/markOrderAsPaid"

    active_orders_rows: int = Field(50, ge=1)
    order_history_rows: int = Field(20, ge=1)

    timer_breach_minutes: float = Field(15.0, gt=0)
    payment_pending_minutes: float = Field(5.0, gt=0)
    default_payment_window_minutes: float = Field(
        15.0,
        gt=0,
        description="Payment window assumed by auto-pay when the order carries no expiry",
    )

    def missing_credentials(self) -> list[str]:
        return [name for name in _REQUIRED_CREDENTIALS if not getattr(self, name)]

    def require_trading_credentials(self) -> None:
        """Fail fast when the trading API cannot be reached with these settings."""

        missing = self.missing_credentials()
        if missing:
            names = ", ".join(f"AUTO_REPLY_ENGINE_{name.upper()}" for name in missing)
            raise ConfigurationError(f"Missing trading API configuration: {names}")


@lru_cache
def get_settings() -> AutoReplySettings:
    """Return cached settings instance."""

    return AutoReplySettings()


__all__ = ["AutoReplySettings", "get_settings"]
