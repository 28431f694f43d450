from __future__ import annotations

import httpx
import pytest

from storage_report.adapters.durastore import DuraStoreManager
from storage_report.core.types import CONTENT_MIMETYPE, CONTENT_SIZE, ContentStoreError, NotFoundError

pytestmark = pytest.mark.anyio("asyncio")

BASE = "https://duracloud.example.org/durastore"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def _manager(handler) -> DuraStoreManager:
    client = httpx.AsyncClient(base_url=BASE, transport=httpx.MockTransport(handler))
    return DuraStoreManager(BASE, client=client)


def _stores_response() -> httpx.Response:
    return httpx.Response(
        200,
        json=[
            {"id": "0", "storageProviderType": "AMAZON_S3"},
            {"id": "1", "storageProviderType": "RACKSPACE", "primary": True},
        ],
    )


async def test_lists_stores_and_picks_primary() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/durastore/stores"
        return _stores_response()

    manager = _manager(handler)

    stores = await manager.get_content_stores()
    primary = await manager.get_primary_content_store()

    assert sorted(stores) == ["0", "1"]
    assert stores["0"].storage_provider_type == "AMAZON_S3"
    assert primary.store_id == "1"
    await manager.aclose()


async def test_space_contents_are_paged() -> None:
    pages = {None: [f"item-{i:04d}" for i in range(1000)], "item-0999": ["item-1000"]}
    seen_markers: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/durastore/stores":
            return _stores_response()
        assert request.url.path == "/durastore/photos"
        assert request.url.params["storeID"] == "0"
        marker = request.url.params.get("marker")
        seen_markers.append(marker)
        return httpx.Response(200, json={"items": pages[marker]})

    manager = _manager(handler)
    store = (await manager.get_content_stores())["0"]

    items = [content_id async for content_id in store.get_space_contents("photos")]

    assert len(items) == 1001
    assert items[-1] == "item-1000"
    assert seen_markers == [None, "item-0999"]
    await manager.aclose()


async def test_content_metadata_comes_from_head_headers() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/durastore/stores":
            return _stores_response()
        assert request.method == "HEAD"
        assert request.url.path == "/durastore/photos/a b.jpg"
        return httpx.Response(
            200,
            headers={
                "Content-Type": "image/jpeg",
                "Content-Length": "1234",
                "x-dura-meta-owner": "alice",
            },
        )

    manager = _manager(handler)
    store = (await manager.get_content_stores())["0"]

    metadata = await store.get_content_metadata("photos", "a b.jpg")

    assert metadata[CONTENT_MIMETYPE] == "image/jpeg"
    assert metadata[CONTENT_SIZE] == "1234"
    assert metadata["owner"] == "alice"
    await manager.aclose()


async def test_add_content_sends_metadata_headers() -> None:
    captured: dict[str, httpx.Request] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/durastore/stores":
            return _stores_response()
        captured["request"] = request
        return httpx.Response(201)

    manager = _manager(handler)
    store = await manager.get_primary_content_store()

    await store.add_content(
        "x-duracloud-admin",
        "storage-report-2011-05-17T16:01:58.json",
        b"{}",
        "application/json",
        {"completion-time": "1305662518734", "elapsed-time": "10"},
    )

    request = captured["request"]
    assert request.method == "PUT"
    assert request.url.params["storeID"] == "1"
    assert request.headers["content-type"] == "application/json"
    assert request.headers["x-dura-meta-completion-time"] == "1305662518734"
    assert request.headers["x-dura-meta-elapsed-time"] == "10"
    assert request.content == b"{}"
    await manager.aclose()


@pytest.mark.parametrize(
    ("status", "error_type"),
    [(404, NotFoundError), (503, ContentStoreError), (429, ContentStoreError)],
)
async def test_status_codes_map_to_store_errors(status: int, error_type: type[Exception]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/durastore/stores":
            return _stores_response()
        return httpx.Response(status)

    manager = _manager(handler)
    store = (await manager.get_content_stores())["0"]

    with pytest.raises(error_type):
        await store.get_spaces()
    await manager.aclose()


async def test_transport_errors_become_store_errors(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/durastore/stores":
            return _stores_response()
        raise httpx.ConnectError("connection refused", request=request)

    manager = _manager(handler)
    store = (await manager.get_content_stores())["0"]
    caplog.set_level("WARNING")

    with pytest.raises(ContentStoreError):
        await store.get_content_metadata("photos", "a.jpg")

    record = caplog.records[-1]
    assert record.message == "durastore_request_failed"
    assert record.event == "durastore_request_failed"
    assert record.target == "photos/a.jpg"
    await manager.aclose()


async def test_invalid_json_is_a_store_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<stores/>")

    manager = _manager(handler)

    with pytest.raises(ContentStoreError):
        await manager.get_content_stores()
    await manager.aclose()
