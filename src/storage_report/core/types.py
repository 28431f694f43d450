from __future__ import annotations

from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Mapping, Optional, Protocol

CONTENT_MIMETYPE = "content-mimetype"
CONTENT_SIZE = "content-size"


class ContentStoreError(Exception):
    """Transient failure reported by a storage provider call."""


class NotFoundError(ContentStoreError):
    pass


@dataclass
class Content:
    content_id: str
    data: bytes = b""
    metadata: Dict[str, str] = field(default_factory=dict)
    mimetype: Optional[str] = None


class ContentStore(Protocol):
    store_id: str
    storage_provider_type: str

    async def get_spaces(self) -> list[str]: ...

    def get_space_contents(
        self, space_id: str, prefix: Optional[str] = None
    ) -> AsyncIterator[str]: ...

    async def get_content_metadata(self, space_id: str, content_id: str) -> Mapping[str, str]: ...

    async def get_space_metadata(self, space_id: str) -> Mapping[str, str]: ...

    async def create_space(self, space_id: str) -> None: ...

    async def add_content(
        self,
        space_id: str,
        content_id: str,
        data: bytes,
        mimetype: str,
        metadata: Mapping[str, str],
    ) -> None: ...

    async def get_content(self, space_id: str, content_id: str) -> Content: ...


class ContentStoreManager(Protocol):
    async def get_content_stores(self) -> Mapping[str, ContentStore]: ...

    async def get_primary_content_store(self) -> ContentStore: ...
