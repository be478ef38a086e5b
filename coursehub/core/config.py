from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off", "")


def _getenv(name: str, default: str) -> str:
    # Centralize env access so casting and validation live in one place
    return os.environ.get(name, default).strip()


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    default_currency: str
    course_cache_ttl: int
    jwt_public_key: str | None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def _parse_int(name: str, raw: str, *, minimum: int = 0) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    port_raw = _getenv("PORT", "8000")
    currency_raw = _getenv("DEFAULT_CURRENCY", "UZS").upper()
    cache_ttl_raw = _getenv("COURSE_CACHE_TTL", "300")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in _TRUTHY + _FALSY:
        raise ValueError(f"LOG_JSON must be a boolean (got {log_json_raw!r})")

    if len(currency_raw) != 3 or not currency_raw.isalpha():
        raise ValueError(
            f"DEFAULT_CURRENCY must be a 3-letter code (got {currency_raw!r})"
        )

    port = _parse_int("PORT", port_raw, minimum=1)
    course_cache_ttl = _parse_int("COURSE_CACHE_TTL", cache_ttl_raw)

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None
    jwt_public_key = os.environ.get("JWT_PUBLIC_KEY") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in _TRUTHY,
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        default_currency=currency_raw,
        course_cache_ttl=course_cache_ttl,
        jwt_public_key=jwt_public_key,
    )


# Module-level singleton so imports are cheap
SETTINGS = load_settings()
