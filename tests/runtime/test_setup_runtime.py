from __future__ import annotations

import pytest

from storage_report.adapters.durastore import DuraStoreManager
from storage_report.adapters.memory import InMemoryStoreManager
from storage_report.config.report import load_report_settings
from storage_report.runtime.setup import build_store_manager, setup_runtime

pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


async def test_without_durastore_block_falls_back_to_memory(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level("WARNING")

    manager = build_store_manager(load_report_settings({}))

    assert isinstance(manager, InMemoryStoreManager)
    assert any(getattr(record, "event", None) == "store_manager_fallback" for record in caplog.records)


async def test_durastore_block_builds_http_manager() -> None:
    settings = load_report_settings(
        {"storage_report": {"durastore": {"base_url": "https://host/durastore", "timeout": 5}}}
    )

    manager = build_store_manager(settings)

    assert isinstance(manager, DuraStoreManager)
    await manager.aclose()


async def test_setup_runtime_initializes_service() -> None:
    manager = InMemoryStoreManager()

    service, returned = await setup_runtime(
        {"storage_report": {"report_space_id": "reports", "timezone": "UTC"}},
        store_manager=manager,
    )

    assert returned is manager
    assert service.is_initialized
    assert service.report_handler is not None
    assert service.report_handler.report_space_id == "reports"
    assert service.get_storage_report_info().next_scheduled_start_time is not None
    await service.dispose()
