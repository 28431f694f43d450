from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, Mapping, Optional
from urllib.parse import quote

import httpx

from ..core.types import (
    CONTENT_MIMETYPE,
    CONTENT_SIZE,
    Content,
    ContentStoreError,
    NotFoundError,
)

_META_PREFIX = "x-dura-meta-"
_PAGE_SIZE = 1000


def _raise_for_status(response: httpx.Response, target: str) -> None:
    status_code = response.status_code
    if 200 <= status_code < 300:
        return
    if status_code == 404:
        raise NotFoundError(f"{target} not found")
    raise ContentStoreError(f"{target} failed with status {status_code}")


def _json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise ContentStoreError(f"invalid JSON from {response.request.url}") from exc


def _metadata_from_headers(headers: httpx.Headers) -> Dict[str, str]:
    metadata: Dict[str, str] = {}
    for key, value in headers.items():
        lowered = key.lower()
        if lowered.startswith(_META_PREFIX):
            metadata[lowered[len(_META_PREFIX):]] = value
    if "content-type" in headers:
        metadata.setdefault(CONTENT_MIMETYPE, headers["content-type"])
    if "content-length" in headers:
        metadata.setdefault(CONTENT_SIZE, headers["content-length"])
    return metadata


class DuraStoreClient:
    """One storage provider account behind a DuraStore REST endpoint.

    Each call is a single HTTP attempt; failures surface as
    ``ContentStoreError`` and retrying is left to the caller.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        store_id: str,
        storage_provider_type: str,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self.store_id = store_id
        self.storage_provider_type = storage_provider_type
        self._logger = logger or logging.getLogger(__name__)

    async def get_spaces(self) -> list[str]:
        response = await self._request("GET", "/spaces", target="spaces")
        payload = _json(response)
        spaces = payload.get("spaces") if isinstance(payload, dict) else None
        if not isinstance(spaces, list):
            raise ContentStoreError("invalid spaces listing response")
        return [str(space) for space in spaces]

    async def get_space_contents(
        self, space_id: str, prefix: Optional[str] = None
    ) -> AsyncIterator[str]:
        marker: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"maxResults": _PAGE_SIZE}
            if prefix:
                params["prefix"] = prefix
            if marker:
                params["marker"] = marker
            response = await self._request(
                "GET", f"/{quote(space_id)}", target=space_id, params=params
            )
            payload = _json(response)
            items = payload.get("items") if isinstance(payload, dict) else None
            if not isinstance(items, list):
                raise ContentStoreError(f"invalid contents listing for {space_id}")
            for item in items:
                yield str(item)
            if len(items) < _PAGE_SIZE:
                return
            marker = str(items[-1])

    async def get_content_metadata(self, space_id: str, content_id: str) -> Mapping[str, str]:
        response = await self._request(
            "HEAD", self._content_path(space_id, content_id), target=f"{space_id}/{content_id}"
        )
        return _metadata_from_headers(response.headers)

    async def get_space_metadata(self, space_id: str) -> Mapping[str, str]:
        response = await self._request("HEAD", f"/{quote(space_id)}", target=space_id)
        return _metadata_from_headers(response.headers)

    async def create_space(self, space_id: str) -> None:
        await self._request("PUT", f"/{quote(space_id)}", target=space_id)

    async def add_content(
        self,
        space_id: str,
        content_id: str,
        data: bytes,
        mimetype: str,
        metadata: Mapping[str, str],
    ) -> None:
        headers = {"Content-Type": mimetype}
        headers.update({f"{_META_PREFIX}{key}": value for key, value in metadata.items()})
        await self._request(
            "PUT",
            self._content_path(space_id, content_id),
            target=f"{space_id}/{content_id}",
            content=data,
            headers=headers,
        )

    async def get_content(self, space_id: str, content_id: str) -> Content:
        response = await self._request(
            "GET", self._content_path(space_id, content_id), target=f"{space_id}/{content_id}"
        )
        return Content(content_id, response.content, _metadata_from_headers(response.headers))

    @staticmethod
    def _content_path(space_id: str, content_id: str) -> str:
        return f"/{quote(space_id)}/{quote(content_id)}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        target: str,
        params: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        query: Dict[str, Any] = {"storeID": self.store_id}
        if params:
            query.update(params)
        try:
            response = await self._client.request(method, path, params=query, **kwargs)
        except httpx.RequestError as exc:
            self._logger.warning(
                "durastore_request_failed",
                extra={
                    "event": "durastore_request_failed",
                    "store_id": self.store_id,
                    "method": method,
                    "target": target,
                    "error": str(exc),
                },
            )
            raise ContentStoreError(f"{method} {target} failed: {exc}") from exc
        _raise_for_status(response, f"{method} {target}")
        return response


class DuraStoreManager:
    """Lists the storage provider accounts behind one DuraStore endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 20.0,
        auth: Optional[tuple[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout, auth=auth)
        self._logger = logger or logging.getLogger(__name__)

    async def get_content_stores(self) -> Mapping[str, DuraStoreClient]:
        return {
            str(entry["id"]): self._store_client(entry) for entry in await self._list_stores()
        }

    async def get_primary_content_store(self) -> DuraStoreClient:
        entries = await self._list_stores()
        primary = next((entry for entry in entries if entry.get("primary")), None)
        if primary is None:
            if not entries:
                raise ContentStoreError("no primary storage provider configured")
            primary = entries[0]
        return self._store_client(primary)

    def _store_client(self, entry: Mapping[str, Any]) -> DuraStoreClient:
        return DuraStoreClient(
            self._client,
            str(entry["id"]),
            str(entry.get("storageProviderType", "UNKNOWN")),
            logger=self._logger,
        )

    async def _list_stores(self) -> list[Mapping[str, Any]]:
        try:
            response = await self._client.get("/stores")
        except httpx.RequestError as exc:
            raise ContentStoreError(f"GET stores failed: {exc}") from exc
        _raise_for_status(response, "GET stores")
        payload = _json(response)
        if not isinstance(payload, list):
            raise ContentStoreError("invalid stores listing response")
        return [entry for entry in payload if isinstance(entry, dict) and "id" in entry]

    async def aclose(self) -> None:
        await self._client.aclose()
