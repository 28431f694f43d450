from __future__ import annotations

import logging
import zoneinfo
from datetime import datetime
from typing import Callable, Optional

from ..config.report import ReportSettings
from ..core.builder import StorageReportBuilder, now_millis
from ..core.calendar import MIN_FREQUENCY_MILLIS, next_weekday_at, to_millis
from ..core.scheduler import StorageReportScheduler
from ..core.status import StorageReportInfo, build_storage_report_info
from ..core.types import ContentStoreManager
from ..infra.report_handler import StorageReportHandler, StorageReportList

_LOGGER = logging.getLogger(__name__)


class InvalidScheduleError(ValueError):
    pass


class ServiceNotInitializedError(RuntimeError):
    pass


class StorageReportService:
    """Entry point for callers of the storage report system.

    Validates schedules before handing them to the scheduler and reads
    status through the builder and scheduler it owns.
    """

    def __init__(
        self,
        settings: ReportSettings | None = None,
        *,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self.settings = settings or ReportSettings()
        self._clock = clock
        self._store_manager: Optional[ContentStoreManager] = None
        self.report_handler: Optional[StorageReportHandler] = None
        self.report_builder: Optional[StorageReportBuilder] = None
        self.report_scheduler: Optional[StorageReportScheduler] = None

    async def initialize(
        self,
        store_manager: ContentStoreManager,
        report_space_id: Optional[str] = None,
        *,
        start_now: bool = True,
    ) -> None:
        settings = self.settings
        self._store_manager = store_manager
        self.report_handler = StorageReportHandler(
            store_manager,
            report_space_id or settings.report_space_id,
            settings.report_prefix,
            settings.error_log_name,
        )
        self.report_builder = StorageReportBuilder(
            store_manager,
            self.report_handler,
            retry_config=settings.retry,
            clock=self._clock,
        )
        await self.report_builder.load_history()

        if self.report_scheduler is not None:
            self.report_scheduler.cancel_storage_report_schedule()
            self.report_scheduler.cancel_storage_report()
        self.report_scheduler = StorageReportScheduler(self.report_builder, clock=self._clock)

        self.report_scheduler.schedule_storage_report(
            self.default_schedule_start(), settings.default_schedule.frequency_ms
        )
        _LOGGER.info(
            "Storage report service initialized",
            extra={
                "event": "storage_report_service_initialized",
                "report_space_id": self.report_handler.report_space_id,
            },
        )
        if start_now:
            self.start_storage_report()

    def default_schedule_start(self) -> int:
        schedule = self.settings.default_schedule
        now = datetime.fromtimestamp(
            self._clock() / 1000, tz=zoneinfo.ZoneInfo(self.settings.timezone)
        )
        return to_millis(next_weekday_at(now, schedule.weekday, schedule.hour))

    @property
    def is_initialized(self) -> bool:
        return self._store_manager is not None

    async def get_latest_storage_report(self) -> Optional[bytes]:
        return await self._handler().get_latest_storage_report_stream()

    async def get_storage_report(self, report_id: str) -> Optional[bytes]:
        return await self._handler().get_storage_report_stream(report_id)

    async def get_storage_report_list(self) -> StorageReportList:
        return await self._handler().get_storage_report_list()

    def get_storage_report_info(self) -> StorageReportInfo:
        self._check_initialized()
        assert self.report_builder is not None and self.report_scheduler is not None
        return build_storage_report_info(self.report_builder, self.report_scheduler)

    def start_storage_report(self) -> str:
        return self._scheduler().start_storage_report()

    def schedule_storage_report(self, start_time: int, frequency: int) -> str:
        scheduler = self._scheduler()
        if start_time < self._clock():
            raise InvalidScheduleError("Cannot set report schedule which starts in the past")
        if frequency < MIN_FREQUENCY_MILLIS:
            raise InvalidScheduleError("Minimum frequency for report schedule is 10 minutes.")
        return scheduler.schedule_storage_report(start_time, frequency)

    def cancel_storage_report_schedule(self) -> str:
        return self._scheduler().cancel_storage_report_schedule()

    def cancel_storage_report(self) -> str:
        return self._scheduler().cancel_storage_report()

    async def dispose(self) -> None:
        if self.report_scheduler is not None:
            await self.report_scheduler.shutdown()

    def _check_initialized(self) -> None:
        if self._store_manager is None:
            raise ServiceNotInitializedError("Storage report service must be initialized.")

    def _handler(self) -> StorageReportHandler:
        self._check_initialized()
        assert self.report_handler is not None
        return self.report_handler

    def _scheduler(self) -> StorageReportScheduler:
        self._check_initialized()
        assert self.report_scheduler is not None
        return self.report_scheduler
