from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getint(name: str, default: int, *, minimum: int = 1) -> int:
    raw = _getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    platform_domain: str
    max_hierarchy_depth: int
    max_domains_per_organization: int
    domain_verification_expiry_hours: int
    schema_name_prefix: str
    schema_environment: str
    org_lock_timeout_seconds: float


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    platform_domain = _getenv("PLATFORM_DOMAIN", "codzs.com").lower().strip(".")
    if not platform_domain or "." not in platform_domain:
        raise ValueError(
            f"PLATFORM_DOMAIN must be a dotted domain name (got {platform_domain!r})"
        )

    lock_timeout_raw = _getenv("ORG_LOCK_TIMEOUT_SECONDS", "5")
    try:
        lock_timeout = float(lock_timeout_raw)
    except ValueError:
        raise ValueError(
            f"ORG_LOCK_TIMEOUT_SECONDS must be a number (got {lock_timeout_raw!r})"
        ) from None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        platform_domain=platform_domain,
        max_hierarchy_depth=_getint("MAX_HIERARCHY_DEPTH", 5),
        max_domains_per_organization=_getint("MAX_DOMAINS_PER_ORGANIZATION", 5),
        domain_verification_expiry_hours=_getint(
            "DOMAIN_VERIFICATION_EXPIRY_HOURS", 24
        ),
        schema_name_prefix=_getenv("SCHEMA_NAME_PREFIX", "codzs").lower(),
        schema_environment=_getenv("SCHEMA_ENV", "dev").lower() or "dev",
        org_lock_timeout_seconds=lock_timeout,
    )


SETTINGS = load_settings()
