"""
autogreen/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

_ALLOWED_STORE_BACKENDS = {"sqlalchemy", "memory"}


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _require_store_backend() -> str:
    """
    Read AUTOGREEN_STORE_BACKEND. Unknown values raise RuntimeError instead
    of silently falling back to memory.
    """

    backend = _get_str_env("AUTOGREEN_STORE_BACKEND", "sqlalchemy").lower()
    if backend not in _ALLOWED_STORE_BACKENDS:
        raise RuntimeError(
            f"AUTOGREEN_STORE_BACKEND '{backend}' is not valid. "
            f"Allowed values: {sorted(_ALLOWED_STORE_BACKENDS)}."
        )
    return backend


@dataclass(frozen=True)
class AppSettings:
    """
    Service and maintenance settings for the API process.
    """

    store_backend: str = "sqlalchemy"
    log_level: str = "INFO"
    scheduler_enabled: bool = True
    maintenance_hour: int = 3
    maintenance_minute: int = 0
    maintenance_max_age_days: int = 30
    maintenance_max_products: int = 1000
    fallback_recovery_interval_minutes: int = 15


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """
    Return cached application settings from environment variables.
    """

    return AppSettings(
        store_backend=_require_store_backend(),
        log_level=_get_str_env("LOG_LEVEL", "INFO").upper(),
        scheduler_enabled=_get_bool_env("AUTOGREEN_SCHEDULER_ENABLED", True),
        maintenance_hour=min(23, max(0, _get_int_env("AUTOGREEN_MAINTENANCE_HOUR", 3))),
        maintenance_minute=min(59, max(0, _get_int_env("AUTOGREEN_MAINTENANCE_MINUTE", 0))),
        maintenance_max_age_days=max(1, _get_int_env("AUTOGREEN_MAINTENANCE_MAX_AGE_DAYS", 30)),
        maintenance_max_products=max(1, _get_int_env("AUTOGREEN_MAINTENANCE_MAX_PRODUCTS", 1000)),
        fallback_recovery_interval_minutes=max(
            1, _get_int_env("AUTOGREEN_FALLBACK_RECOVERY_MINUTES", 15)
        ),
    )
