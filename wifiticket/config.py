"""
Settings — read once from the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _flag(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _api_base(raw: str) -> str:
    base = raw.rstrip("/")
    return base if base.endswith("/v1") else f"{base}/v1"


class ConfigError(Exception):
    """Required setting missing or unusable."""


def _number[T: (int, float)](name: str, default: str, kind: type[T]) -> T:
    raw = os.getenv(name, default)
    try:
        value = kind(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Service configuration.

    Example:
        settings = Settings.from_env()
        settings = Settings(webhook_secret="test", gateway_api_key="sk_test")
    """

    webhook_secret: str
    gateway_api_key: str = ""
    database_url: str = "sqlite+aiosqlite:///./wifiticket.db"
    gateway_name: str = "moneroo"
    gateway_base_url: str = "https://api.moneroo.io/v1"
    gateway_timeout: float = 10.0
    gateway_methods: tuple[str, ...] = field(default=("mtn_bj", "moov_bj"))
    currency: str = "XOF"
    frontend_url: str = "http://localhost:5173"
    log_level: str = "INFO"
    log_json: bool = True
    host: str = "0.0.0.0"
    port: int = 3000

    @classmethod
    def from_env(cls) -> Settings:
        secret = os.getenv("GATEWAY_WEBHOOK_SECRET", "")
        if not secret:
            raise ConfigError("GATEWAY_WEBHOOK_SECRET is required")

        methods = os.getenv("GATEWAY_METHODS", "mtn_bj,moov_bj")

        return cls(
            webhook_secret=secret,
            gateway_api_key=os.getenv("GATEWAY_API_KEY", ""),
            database_url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./wifiticket.db"),
            gateway_name=os.getenv("GATEWAY_NAME", "moneroo"),
            gateway_base_url=_api_base(
                os.getenv("GATEWAY_BASE_URL", "https://api.moneroo.io")
            ),
            gateway_timeout=_number("GATEWAY_TIMEOUT", "10", float),
            gateway_methods=tuple(m.strip() for m in methods.split(",") if m.strip()),
            currency=os.getenv("CURRENCY", "XOF"),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_json=_flag(os.getenv("LOG_JSON", "true")),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_number("PORT", "3000", int),
        )

    @property
    def return_url(self) -> str:
        return f"{self.frontend_url}/payment/return"


__all__ = ("Settings", "ConfigError")
