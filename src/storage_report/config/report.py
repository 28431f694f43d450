from __future__ import annotations

import zoneinfo
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..core.calendar import MIN_FREQUENCY_MILLIS, ONE_WEEK_MILLIS, parse_weekday
from ..core.retry import RetryConfig
from ..infra.report_handler import ERROR_LOG_NAME, REPORT_PREFIX, STORAGE_SPACE


@dataclass(frozen=True)
class DefaultSchedule:
    weekday: int = 5
    hour: int = 1
    frequency_ms: int = ONE_WEEK_MILLIS


@dataclass(frozen=True)
class DuraStoreSettings:
    base_url: str
    timeout: float = 20.0
    username: Optional[str] = None
    password: Optional[str] = None


@dataclass(frozen=True)
class ReportSettings:
    report_space_id: str = STORAGE_SPACE
    report_prefix: str = REPORT_PREFIX
    error_log_name: str = ERROR_LOG_NAME
    timezone: str = "UTC"
    default_schedule: DefaultSchedule = field(default_factory=DefaultSchedule)
    retry: RetryConfig = field(default_factory=RetryConfig)
    durastore: Optional[DuraStoreSettings] = None


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"storage_report.{field_name} must be a mapping")
    return value


def _str(value: Any, field_name: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or not value:
        raise ValueError(f"storage_report.{field_name} must be a non-empty string")
    return value


def _positive_int(value: Any, field_name: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"storage_report.{field_name} must be a positive integer")
    return value


def _positive_float(value: Any, field_name: str, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValueError(f"storage_report.{field_name} must be a non-negative number")
    return float(value)


def _load_schedule(raw: Mapping[str, Any]) -> DefaultSchedule:
    weekday_raw = raw.get("weekday", "sat")
    if not isinstance(weekday_raw, str):
        raise ValueError("storage_report.default_schedule.weekday must be a weekday name")
    weekday = parse_weekday(weekday_raw)
    hour = raw.get("hour", 1)
    if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour <= 23:
        raise ValueError("storage_report.default_schedule.hour must be between 0 and 23")
    frequency = _positive_int(
        raw.get("frequency_ms"), "default_schedule.frequency_ms", ONE_WEEK_MILLIS
    )
    if frequency < MIN_FREQUENCY_MILLIS:
        raise ValueError(
            "storage_report.default_schedule.frequency_ms must be at least 10 minutes"
        )
    return DefaultSchedule(weekday=weekday, hour=hour, frequency_ms=frequency)


def _load_retry(raw: Mapping[str, Any]) -> RetryConfig:
    defaults = RetryConfig()
    return RetryConfig(
        max_attempts=_positive_int(raw.get("max_attempts"), "retry.max_attempts", defaults.max_attempts),
        base_backoff=_positive_float(raw.get("base_backoff"), "retry.base_backoff", defaults.base_backoff),
        max_backoff=_positive_float(raw.get("max_backoff"), "retry.max_backoff", defaults.max_backoff),
    )


def _load_durastore(raw: Mapping[str, Any]) -> Optional[DuraStoreSettings]:
    if not raw:
        return None
    if raw.get("base_url") is None:
        raise ValueError("storage_report.durastore.base_url is required")
    base_url = _str(raw.get("base_url"), "durastore.base_url", "")
    username = raw.get("username")
    password = raw.get("password")
    return DuraStoreSettings(
        base_url=base_url.rstrip("/"),
        timeout=_positive_float(raw.get("timeout"), "durastore.timeout", 20.0),
        username=username if isinstance(username, str) and username else None,
        password=password if isinstance(password, str) and password else None,
    )


def load_report_settings(settings: Mapping[str, Any]) -> ReportSettings:
    block = _mapping(settings.get("storage_report"), "<root>")
    tz_name = _str(block.get("timezone"), "timezone", "UTC")
    try:
        zoneinfo.ZoneInfo(tz_name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"storage_report.timezone is not a known time zone: {tz_name}") from exc

    return ReportSettings(
        report_space_id=_str(block.get("report_space_id"), "report_space_id", STORAGE_SPACE),
        report_prefix=_str(block.get("report_prefix"), "report_prefix", REPORT_PREFIX),
        error_log_name=_str(block.get("error_log_name"), "error_log_name", ERROR_LOG_NAME),
        timezone=tz_name,
        default_schedule=_load_schedule(_mapping(block.get("default_schedule"), "default_schedule")),
        retry=_load_retry(_mapping(block.get("retry"), "retry")),
        durastore=_load_durastore(_mapping(block.get("durastore"), "durastore")),
    )
