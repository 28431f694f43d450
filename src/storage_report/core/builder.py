from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Callable, Iterable, Mapping, Optional, Protocol

from .metrics import StorageMetrics
from .retry import ReportBuilderError, RetryConfig, retry_item, retry_structural
from .types import (
    CONTENT_MIMETYPE,
    CONTENT_SIZE,
    ContentStore,
    ContentStoreError,
    ContentStoreManager,
)

_LOGGER = logging.getLogger(__name__)

_END = object()


class BuilderStatus(enum.Enum):
    CREATED = "CREATED"
    RUNNING = "RUNNING"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


class ReportStore(Protocol):
    async def store_report(
        self, metrics: StorageMetrics, completion_time: int, elapsed_time: int
    ) -> str: ...

    async def get_latest_storage_report(self): ...

    async def store_error_log(self, lines: Iterable[str]) -> None: ...


def now_millis() -> int:
    return int(time.time() * 1000)


def _convert_size(value: object) -> int:
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return 0


class StorageReportBuilder:
    """Walks every content store and aggregates item counts and sizes.

    One builder is reused for every run. ``run`` is meant to execute as its own
    task; accessors may be read from anywhere while it is in flight.
    """

    def __init__(
        self,
        store_manager: ContentStoreManager,
        report_handler: ReportStore,
        *,
        retry_config: RetryConfig | None = None,
        clock: Callable[[], int] = now_millis,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store_manager = store_manager
        self._report_handler = report_handler
        self.retry_config = retry_config or RetryConfig()
        self._clock = clock
        self._logger = logger or _LOGGER
        self._status = BuilderStatus.CREATED
        self._error: Optional[str] = None
        self._start_time = 0
        self._stop_time = 0
        self._elapsed_time = 0
        self._metrics = StorageMetrics()
        self._skipped_items: list[str] = []

    async def load_history(self) -> None:
        """Seed stop/elapsed time from the most recently stored report."""
        try:
            last_report = await self._report_handler.get_latest_storage_report()
        except ContentStoreError as exc:
            self._logger.debug("No storage report history available: %s", exc)
            return
        if last_report is not None:
            self._stop_time = last_report.completion_time
            self._elapsed_time = last_report.elapsed_time

    @property
    def status(self) -> BuilderStatus:
        return self._status

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def start_time(self) -> int:
        return self._start_time

    @property
    def stop_time(self) -> int:
        return self._stop_time

    @property
    def elapsed_time(self) -> int:
        return self._elapsed_time

    @property
    def current_count(self) -> int:
        return self._metrics.get_total_items()

    @property
    def metrics(self) -> StorageMetrics:
        return self._metrics

    @property
    def skipped_items(self) -> list[str]:
        return list(self._skipped_items)

    async def run(self) -> None:
        self._start_time = self._clock()
        self._status = BuilderStatus.RUNNING
        self._error = None
        self._logger.info(
            "Storage report starting at time: %s",
            self._start_time,
            extra={"event": "storage_report_started", "start_time": self._start_time},
        )
        try:
            metrics = await self._collect_storage_metrics()
            stop_time = self._clock()
            elapsed_time = stop_time - self._start_time
            await self._report_handler.store_report(metrics, stop_time, elapsed_time)
        except asyncio.CancelledError:
            self._error = "Storage report run was cancelled"
            self._status = BuilderStatus.ERROR
            self._logger.warning(
                "Storage report run cancelled",
                extra={"event": "storage_report_cancelled"},
            )
            raise
        except (ReportBuilderError, ContentStoreError) as exc:
            self._error = str(exc)
            self._status = BuilderStatus.ERROR
            self._logger.error(
                "Unable to complete metrics collection due to: %s",
                exc,
                extra={"event": "storage_report_failed"},
            )
            return
        except Exception as exc:
            self._error = str(exc) or type(exc).__name__
            self._status = BuilderStatus.ERROR
            self._logger.error(
                "Storage report failed unexpectedly: %s",
                exc,
                exc_info=exc,
                extra={"event": "storage_report_failed"},
            )
            return

        self._stop_time = stop_time
        self._elapsed_time = elapsed_time
        self._status = BuilderStatus.COMPLETE
        self._logger.info(
            "Storage report completed at time: %s",
            stop_time,
            extra={
                "event": "storage_report_completed",
                "stop_time": stop_time,
                "elapsed_time": elapsed_time,
                "total_items": metrics.get_total_items(),
                "skipped_items": len(self._skipped_items),
            },
        )
        if self._skipped_items:
            await self._report_handler.store_error_log(self._skipped_items)

    async def _collect_storage_metrics(self) -> StorageMetrics:
        self._metrics = StorageMetrics()
        self._skipped_items = []
        content_stores = await retry_structural(
            operation="content stores list",
            target="-",
            attempt=self._store_manager.get_content_stores,
            retry_config=self.retry_config,
            logger=self._logger,
        )
        for content_store in content_stores.values():
            await self._collect_store(content_store)
        return self._metrics

    async def _collect_store(self, content_store: ContentStore) -> None:
        store_id = content_store.store_id
        store_type = content_store.storage_provider_type
        spaces = await retry_structural(
            operation="spaces list",
            target=store_id,
            attempt=content_store.get_spaces,
            retry_config=self.retry_config,
            logger=self._logger,
        )
        for space_id in spaces:
            await self._collect_space(content_store, store_id, store_type, space_id)

    async def _collect_space(
        self,
        content_store: ContentStore,
        store_id: str,
        store_type: str,
        space_id: str,
    ) -> None:
        async def _open_listing():
            iterator = content_store.get_space_contents(space_id).__aiter__()
            first = await anext(iterator, _END)
            return first, iterator

        first, content_ids = await retry_structural(
            operation="space contents list",
            target=space_id,
            attempt=_open_listing,
            retry_config=self.retry_config,
            logger=self._logger,
        )
        content_id = first
        while content_id is not _END:
            await self._collect_item(content_store, store_id, store_type, space_id, str(content_id))
            try:
                content_id = await anext(content_ids, _END)
            except ContentStoreError as exc:
                raise ReportBuilderError(
                    f"Failure while listing space contents ({space_id}): {exc}"
                ) from exc

    async def _collect_item(
        self,
        content_store: ContentStore,
        store_id: str,
        store_type: str,
        space_id: str,
        content_id: str,
    ) -> None:
        async def _attempt() -> Mapping[str, str]:
            return await content_store.get_content_metadata(space_id, content_id)

        metadata = await retry_item(
            operation="content metadata",
            target=f"{space_id}:{content_id}",
            attempt=_attempt,
            retry_config=self.retry_config,
            logger=self._logger,
        )
        if metadata is None:
            self._skipped_items.append(f"{store_id}/{space_id}/{content_id}")
            return
        self._metrics.update(
            store_id,
            store_type,
            space_id,
            metadata.get(CONTENT_MIMETYPE),
            _convert_size(metadata.get(CONTENT_SIZE)),
        )
