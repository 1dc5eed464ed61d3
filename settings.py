from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


_TABLE_NAME_ENV = "AGGREGATE_TABLE_NAME"
_TABLE_PATH_ENV = "AGGREGATE_PERSISTENCE_PATH"
_TIMEZONE_ENV = "AGGREGATE_TIMEZONE"
_AVERAGE_MODE_ENV = "AGGREGATE_AVERAGE_MODE"
_LOG_LEVEL_ENV = "LOG_LEVEL"

AVERAGE_MODES = ("pairwise", "running")


@dataclass(frozen=True)
class Settings:
    table_name: str
    table_persistence_path: Optional[str]
    bucket_timezone: str
    average_mode: str
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_timezone(default: str) -> str:
    candidate = _read_str_env(_TIMEZONE_ENV, default)
    try:
        ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError):
        return default
    return candidate


def _read_average_mode(default: str) -> str:
    candidate = _read_str_env(_AVERAGE_MODE_ENV, default).lower()
    return candidate if candidate in AVERAGE_MODES else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        table_name=_read_str_env(_TABLE_NAME_ENV, "device_measurements_day"),
        table_persistence_path=_read_optional_env(_TABLE_PATH_ENV, "./tmp/aggregates.json"),
        bucket_timezone=_read_timezone("UTC"),
        average_mode=_read_average_mode("pairwise"),
        log_level=_read_log_level("INFO"),
    )
