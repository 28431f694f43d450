from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Optional, TypeVar

from .types import ContentStoreError

T = TypeVar("T")

MAX_RETRIES = 8


class ReportBuilderError(Exception):
    """A structural listing call failed on every attempt."""


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = MAX_RETRIES
    base_backoff: float = 0.5
    max_backoff: float = 8.0


def _structured_log(
    logger: logging.Logger,
    level: int,
    *,
    event: str,
    operation: str,
    target: str,
    **extra: object,
) -> None:
    """Emit JSON logs with a stable schema for retry telemetry."""

    payload = {
        "event": event,
        "operation": operation,
        "target": target,
        **extra,
    }
    logger.log(level, json.dumps(payload, separators=(",", ":")))


def _backoff(attempt: int, config: RetryConfig) -> float:
    power = attempt - 1
    delay = config.base_backoff * (2**power)
    return min(delay, config.max_backoff)


async def _attempt_all(
    *,
    operation: str,
    target: str,
    attempt: Callable[[], Awaitable[T]],
    retry_config: RetryConfig,
    logger: logging.Logger,
) -> tuple[bool, Optional[T], Optional[ContentStoreError]]:
    error: ContentStoreError | None = None
    for current_attempt in range(1, retry_config.max_attempts + 1):
        try:
            return True, await attempt(), None
        except ContentStoreError as exc:
            error = exc

        if current_attempt == retry_config.max_attempts:
            break

        retry_in = _backoff(current_attempt, retry_config)
        _structured_log(
            logger,
            logging.WARNING,
            event="retry_scheduled",
            operation=operation,
            target=target,
            attempt=current_attempt,
            max_attempts=retry_config.max_attempts,
            retry_in=retry_in,
            error=str(error),
        )
        await asyncio.sleep(retry_in)
    return False, None, error


async def retry_structural(
    *,
    operation: str,
    target: str,
    attempt: Callable[[], Awaitable[T]],
    retry_config: RetryConfig,
    logger: logging.Logger,
) -> T:
    """Run a listing call; exhausting every attempt aborts the report run."""

    ok, result, error = await _attempt_all(
        operation=operation,
        target=target,
        attempt=attempt,
        retry_config=retry_config,
        logger=logger,
    )
    if ok:
        return result  # type: ignore[return-value]
    _structured_log(
        logger,
        logging.ERROR,
        event="retry_exhausted",
        operation=operation,
        target=target,
        max_attempts=retry_config.max_attempts,
        error=str(error) if error is not None else None,
    )
    raise ReportBuilderError(
        f"Exceeded retries attempting to retrieve {operation} ({target})"
    ) from error


async def retry_item(
    *,
    operation: str,
    target: str,
    attempt: Callable[[], Awaitable[T]],
    retry_config: RetryConfig,
    logger: logging.Logger,
) -> Optional[T]:
    """Run a per-item call; exhausting every attempt skips the item."""

    ok, result, error = await _attempt_all(
        operation=operation,
        target=target,
        attempt=attempt,
        retry_config=retry_config,
        logger=logger,
    )
    if ok:
        return result
    _structured_log(
        logger,
        logging.ERROR,
        event="item_skipped",
        operation=operation,
        target=target,
        max_attempts=retry_config.max_attempts,
        error=str(error) if error is not None else None,
    )
    return None
