from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ..adapters.durastore import DuraStoreManager
from ..adapters.memory import InMemoryStoreManager
from ..config.report import ReportSettings, load_report_settings
from ..core.types import ContentStoreManager
from .service import StorageReportService

_LOGGER = logging.getLogger(__name__)


def build_store_manager(settings: ReportSettings) -> ContentStoreManager:
    durastore = settings.durastore
    if durastore is None:
        _LOGGER.warning(
            "No durastore endpoint configured; using an in-memory store",
            extra={"event": "store_manager_fallback"},
        )
        return InMemoryStoreManager()
    auth: Optional[tuple[str, str]] = None
    if durastore.username and durastore.password:
        auth = (durastore.username, durastore.password)
    return DuraStoreManager(durastore.base_url, timeout=durastore.timeout, auth=auth)


async def setup_runtime(
    config: Mapping[str, Any],
    *,
    store_manager: ContentStoreManager | None = None,
) -> tuple[StorageReportService, ContentStoreManager]:
    settings = load_report_settings(config)
    manager = store_manager or build_store_manager(settings)
    service = StorageReportService(settings)
    await service.initialize(manager)
    return service, manager
