from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Protocol

from .builder import BuilderStatus


class _BuilderView(Protocol):
    @property
    def status(self) -> BuilderStatus: ...

    @property
    def error(self) -> Optional[str]: ...

    @property
    def start_time(self) -> int: ...

    @property
    def stop_time(self) -> int: ...

    @property
    def elapsed_time(self) -> int: ...

    @property
    def current_count(self) -> int: ...


class _SchedulerView(Protocol):
    def get_next_scheduled_start_date(self) -> Optional[int]: ...


@dataclass(frozen=True)
class StorageReportInfo:
    status: str
    start_time: int
    error: Optional[str] = None
    estimated_completion_time: Optional[int] = None
    completion_time: Optional[int] = None
    current_count: Optional[int] = None
    final_count: Optional[int] = None
    next_scheduled_start_time: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


def derive_storage_report_info(
    *,
    status: BuilderStatus,
    error: Optional[str],
    start_time: int,
    stop_time: int,
    elapsed_time: int,
    count: int,
    next_scheduled_start_time: Optional[int] = None,
) -> StorageReportInfo:
    """Build a progress snapshot from one read of the builder's fields.

    A stop time earlier than the start time means a run began after the last
    completed one, so the count is live progress; otherwise it is the final
    count of the last run.
    """
    estimated_completion_time: Optional[int] = None
    completion_time: Optional[int] = None
    current_count: Optional[int] = None
    final_count: Optional[int] = None
    if stop_time < start_time:
        if elapsed_time > 0:
            estimated_completion_time = start_time + elapsed_time
        current_count = count
    else:
        completion_time = stop_time
        final_count = count

    return StorageReportInfo(
        status=status.value,
        start_time=start_time,
        error=error if status is BuilderStatus.ERROR else None,
        estimated_completion_time=estimated_completion_time,
        completion_time=completion_time,
        current_count=current_count,
        final_count=final_count,
        next_scheduled_start_time=next_scheduled_start_time,
    )


def build_storage_report_info(
    builder: _BuilderView, scheduler: _SchedulerView
) -> StorageReportInfo:
    return derive_storage_report_info(
        status=builder.status,
        error=builder.error,
        start_time=builder.start_time,
        stop_time=builder.stop_time,
        elapsed_time=builder.elapsed_time,
        count=builder.current_count,
        next_scheduled_start_time=scheduler.get_next_scheduled_start_date(),
    )
