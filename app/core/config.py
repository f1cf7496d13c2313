from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getint(name: str, default: str) -> int:
    raw = _getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    pass_threshold_percent: int = 60
    report_cache_ttl: int = 300
    jwt_public_key_pem: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    port = _getint("PORT", "8000")

    pass_threshold = _getint("PASS_THRESHOLD_PERCENT", "60")
    if not 0 <= pass_threshold <= 100:
        raise ValueError(
            f"PASS_THRESHOLD_PERCENT must be between 0 and 100 (got {pass_threshold})"
        )

    report_cache_ttl = _getint("REPORT_CACHE_TTL", "300")
    if report_cache_ttl <= 0:
        raise ValueError(
            f"REPORT_CACHE_TTL must be positive (got {report_cache_ttl})"
        )

    # PEM blocks are multi-line; allow "\n" escapes for single-line env files
    public_key_pem = _getenv("JWT_PUBLIC_KEY_PEM", "").replace("\\n", "\n") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getenv("LOG_JSON", "false").lower() in _TRUTHY,
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        pass_threshold_percent=pass_threshold,
        report_cache_ttl=report_cache_ttl,
        jwt_public_key_pem=public_key_pem,
    )


SETTINGS = load_settings()
