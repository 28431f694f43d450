from __future__ import annotations

from .report_handler import (
    COMPLETION_TIME_META,
    ELAPSED_TIME_META,
    StorageReport,
    StorageReportHandler,
    StorageReportList,
)

__all__ = [
    "COMPLETION_TIME_META",
    "ELAPSED_TIME_META",
    "StorageReport",
    "StorageReportHandler",
    "StorageReportList",
]
