from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from ..core.metrics import StorageMetrics
from ..core.types import ContentStoreError, ContentStoreManager, NotFoundError

_LOGGER = logging.getLogger(__name__)

STORAGE_SPACE = "x-duracloud-admin"
REPORT_PREFIX = "storage-report"
REPORT_EXTENSION = "json"
REPORT_MIMETYPE = "application/json"
ERROR_LOG_NAME = "storage-report-errors.txt"
COMPLETION_TIME_META = "completion-time"
ELAPSED_TIME_META = "elapsed-time"

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _meta_millis(metadata: dict[str, str], key: str) -> int:
    try:
        return int(metadata.get(key, 0))
    except (TypeError, ValueError):
        _LOGGER.warning(
            "storage_report_bad_metadata",
            extra={"event": "storage_report_bad_metadata", "key": key},
        )
        return 0


@dataclass(frozen=True)
class StorageReport:
    content_id: str
    completion_time: int
    elapsed_time: int


@dataclass(frozen=True)
class StorageReportList:
    report_ids: tuple[str, ...]

    def to_dict(self) -> dict[str, list[str]]:
        return {"storage_reports": list(self.report_ids)}


class StorageReportHandler:
    """Stores report artifacts in the primary store's report space."""

    def __init__(
        self,
        store_manager: ContentStoreManager,
        report_space_id: str = STORAGE_SPACE,
        report_prefix: str = REPORT_PREFIX,
        error_log_name: str = ERROR_LOG_NAME,
    ) -> None:
        self._store_manager = store_manager
        self.report_space_id = report_space_id
        self.report_prefix = report_prefix
        self.error_log_name = error_log_name

    def report_content_id(self, completion_time: int) -> str:
        # ids sort by completion time only when rendered in UTC
        stamp = datetime.fromtimestamp(completion_time / 1000, tz=timezone.utc)
        return f"{self.report_prefix}-{stamp.strftime(_TIMESTAMP_FORMAT)}.{REPORT_EXTENSION}"

    async def store_report(
        self,
        metrics: StorageMetrics,
        completion_time: int,
        elapsed_time: int,
    ) -> str:
        store = await self._store_manager.get_primary_content_store()
        await self._ensure_space(store)
        content_id = self.report_content_id(completion_time)
        body = json.dumps(
            {
                "completion_time": completion_time,
                "elapsed_time": elapsed_time,
                "metrics": metrics.to_dict(),
            },
            ensure_ascii=False,
            indent=2,
        ).encode("utf-8")
        metadata = {
            COMPLETION_TIME_META: str(completion_time),
            ELAPSED_TIME_META: str(elapsed_time),
        }
        await store.add_content(
            self.report_space_id, content_id, body, REPORT_MIMETYPE, metadata
        )
        _LOGGER.info(
            "storage_report_stored",
            extra={"event": "storage_report_stored", "content_id": content_id},
        )
        return content_id

    async def store_error_log(self, lines: Iterable[str]) -> None:
        text = "\n".join(lines)
        if not text:
            return
        try:
            store = await self._store_manager.get_primary_content_store()
            await self._ensure_space(store)
            await store.add_content(
                self.report_space_id,
                self.error_log_name,
                (text + "\n").encode("utf-8"),
                "text/plain",
                {},
            )
        except ContentStoreError as exc:
            _LOGGER.warning(
                "Unable to store storage report error log: %s",
                exc,
                extra={"event": "storage_report_error_log_failed"},
            )

    async def get_storage_report_list(self) -> StorageReportList:
        return StorageReportList(report_ids=tuple(await self._report_ids()))

    async def get_latest_storage_report(self) -> Optional[StorageReport]:
        report_ids = await self._report_ids()
        if not report_ids:
            return None
        latest_id = report_ids[-1]
        store = await self._store_manager.get_primary_content_store()
        content = await store.get_content(self.report_space_id, latest_id)
        return StorageReport(
            content_id=latest_id,
            completion_time=_meta_millis(content.metadata, COMPLETION_TIME_META),
            elapsed_time=_meta_millis(content.metadata, ELAPSED_TIME_META),
        )

    async def get_latest_storage_report_stream(self) -> Optional[bytes]:
        report_ids = await self._report_ids()
        if not report_ids:
            return None
        return await self.get_storage_report_stream(report_ids[-1])

    async def get_storage_report_stream(self, report_id: str) -> Optional[bytes]:
        store = await self._store_manager.get_primary_content_store()
        try:
            content = await store.get_content(self.report_space_id, report_id)
        except NotFoundError:
            return None
        return content.data

    async def _report_ids(self) -> list[str]:
        store = await self._store_manager.get_primary_content_store()
        report_ids: list[str] = []
        try:
            async for content_id in store.get_space_contents(
                self.report_space_id, self.report_prefix
            ):
                # the error log shares the prefix
                if content_id == self.error_log_name:
                    continue
                report_ids.append(content_id)
        except NotFoundError:
            return []
        report_ids.sort()
        return report_ids

    async def _ensure_space(self, store) -> None:
        try:
            await store.get_space_metadata(self.report_space_id)
        except NotFoundError:
            await store.create_space(self.report_space_id)
