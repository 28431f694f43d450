from __future__ import annotations

from typing import AsyncIterator, Dict, Mapping, Optional

from ..core.types import CONTENT_MIMETYPE, CONTENT_SIZE, Content, NotFoundError


class InMemoryContentStore:
    """Dict-backed content store for local runs and tests."""

    def __init__(
        self,
        store_id: str = "0",
        storage_provider_type: str = "MEMORY",
        spaces: Optional[Mapping[str, Mapping[str, Content]]] = None,
    ) -> None:
        self.store_id = store_id
        self.storage_provider_type = storage_provider_type
        self._spaces: Dict[str, Dict[str, Content]] = {
            space_id: dict(items) for space_id, items in (spaces or {}).items()
        }

    async def get_spaces(self) -> list[str]:
        return sorted(self._spaces)

    async def get_space_contents(
        self, space_id: str, prefix: Optional[str] = None
    ) -> AsyncIterator[str]:
        items = self._space(space_id)
        for content_id in sorted(items):
            if prefix is None or content_id.startswith(prefix):
                yield content_id

    async def get_content_metadata(self, space_id: str, content_id: str) -> Mapping[str, str]:
        content = self._content(space_id, content_id)
        metadata = dict(content.metadata)
        if content.mimetype:
            metadata.setdefault(CONTENT_MIMETYPE, content.mimetype)
        metadata.setdefault(CONTENT_SIZE, str(len(content.data)))
        return metadata

    async def get_space_metadata(self, space_id: str) -> Mapping[str, str]:
        items = self._space(space_id)
        return {"space-count": str(len(items))}

    async def create_space(self, space_id: str) -> None:
        self._spaces.setdefault(space_id, {})

    async def add_content(
        self,
        space_id: str,
        content_id: str,
        data: bytes,
        mimetype: str,
        metadata: Mapping[str, str],
    ) -> None:
        self._space(space_id)[content_id] = Content(content_id, data, dict(metadata), mimetype)

    async def get_content(self, space_id: str, content_id: str) -> Content:
        return self._content(space_id, content_id)

    def put(self, space_id: str, content_id: str, *, mimetype: str, size: int) -> None:
        self._spaces.setdefault(space_id, {})[content_id] = Content(
            content_id,
            metadata={CONTENT_MIMETYPE: mimetype, CONTENT_SIZE: str(size)},
        )

    def _space(self, space_id: str) -> Dict[str, Content]:
        try:
            return self._spaces[space_id]
        except KeyError:
            raise NotFoundError(f"space {space_id} does not exist") from None

    def _content(self, space_id: str, content_id: str) -> Content:
        try:
            return self._space(space_id)[content_id]
        except KeyError:
            raise NotFoundError(f"content {space_id}/{content_id} does not exist") from None


class InMemoryStoreManager:
    def __init__(self, *stores: InMemoryContentStore) -> None:
        if not stores:
            stores = (InMemoryContentStore(),)
        self._stores = {store.store_id: store for store in stores}
        self._primary = stores[0]

    async def get_content_stores(self) -> Mapping[str, InMemoryContentStore]:
        return dict(self._stores)

    async def get_primary_content_store(self) -> InMemoryContentStore:
        return self._primary
