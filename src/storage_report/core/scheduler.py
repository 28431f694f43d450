from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Final, Optional, Protocol

import anyio

from .builder import BuilderStatus, now_millis

_LOGGER = logging.getLogger(__name__)

REPORT_STARTED: Final[str] = "Storage report started"
REPORT_ALREADY_RUNNING: Final[str] = "Storage report is already running"
REPORT_CANCELLED: Final[str] = "Storage report cancelled"
REPORT_NOT_RUNNING: Final[str] = "No storage report is running"
SCHEDULE_CANCELLED: Final[str] = "Storage report schedule cancelled"


class _ReportRunner(Protocol):
    @property
    def status(self) -> BuilderStatus: ...

    async def run(self) -> None: ...


def _format_millis(value: int) -> str:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()


class StorageReportScheduler:
    """Owns the recurring report timer and the single in-flight report run.

    Must be used from inside a running event loop. Start/cancel calls never
    await, so check-then-launch and cancel-then-install are atomic on the loop.
    """

    def __init__(
        self,
        builder: _ReportRunner,
        *,
        clock: Callable[[], int] = now_millis,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self._builder = builder
        self._clock = clock
        self._sleep = sleep
        self._run_task: Optional[asyncio.Task[None]] = None
        self._timer_task: Optional[asyncio.Task[None]] = None
        self._next_start: Optional[int] = None

    def schedule_storage_report(self, start_time: int, frequency: int) -> str:
        """Run a report at ``start_time`` and every ``frequency`` ms after.

        Callers validate the parameters. Any existing schedule is replaced.
        """
        self._cancel_timer()
        self._next_start = start_time
        self._timer_task = asyncio.get_running_loop().create_task(
            self._timer(start_time, frequency), name="storage-report-timer"
        )
        _LOGGER.info(
            "Storage report scheduled",
            extra={
                "event": "storage_report_scheduled",
                "start_time": start_time,
                "frequency": frequency,
            },
        )
        return (
            f"Storage reports scheduled to start at {_format_millis(start_time)}"
            f" and repeat every {frequency} ms"
        )

    def cancel_storage_report_schedule(self) -> str:
        self._cancel_timer()
        _LOGGER.info(
            "Storage report schedule cancelled",
            extra={"event": "storage_report_schedule_cancelled"},
        )
        return SCHEDULE_CANCELLED

    def start_storage_report(self) -> str:
        if self.is_running():
            _LOGGER.info(
                "Storage report already running",
                extra={"event": "storage_report_already_running"},
            )
            return REPORT_ALREADY_RUNNING
        task = asyncio.get_running_loop().create_task(
            self._builder.run(), name="storage-report-run"
        )
        task.add_done_callback(_log_unexpected_failure)
        self._run_task = task
        return REPORT_STARTED

    def cancel_storage_report(self) -> str:
        task = self._run_task
        if task is None or task.done():
            return REPORT_NOT_RUNNING
        task.cancel()
        return REPORT_CANCELLED

    def get_next_scheduled_start_date(self) -> Optional[int]:
        if self._timer_task is None or self._timer_task.done():
            return None
        return self._next_start

    def is_running(self) -> bool:
        if self._builder.status is BuilderStatus.RUNNING:
            return True
        return self._run_task is not None and not self._run_task.done()

    async def shutdown(self) -> None:
        tasks = [task for task in (self._timer_task, self._run_task) if task is not None]
        self._cancel_timer()
        self.cancel_storage_report()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _cancel_timer(self) -> None:
        if self._timer_task is not None:
            self._timer_task.cancel()
        self._timer_task = None
        self._next_start = None

    async def _timer(self, start_time: int, frequency: int) -> None:
        next_start = start_time
        while True:
            self._next_start = next_start
            delay_ms = max(0, next_start - self._clock())
            await self._sleep(delay_ms / 1000)
            self.start_storage_report()
            now = self._clock()
            next_start += frequency
            while next_start <= now:
                next_start += frequency


def _log_unexpected_failure(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        _LOGGER.error(
            "Storage report run failed unexpectedly: %s",
            exc,
            exc_info=exc,
            extra={"event": "storage_report_crashed"},
        )
