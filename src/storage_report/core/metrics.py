from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, DefaultDict, Dict

UNKNOWN_MIMETYPE = "unknown"


@dataclass
class MimetypeMetrics:
    item_count: int = 0
    byte_size: int = 0

    def update(self, size: int) -> None:
        self.item_count += 1
        self.byte_size += size


_SpaceMetrics = DefaultDict[str, MimetypeMetrics]
_StoreMetrics = DefaultDict[str, _SpaceMetrics]


def _space_metrics() -> _SpaceMetrics:
    return defaultdict(MimetypeMetrics)


def _store_metrics() -> _StoreMetrics:
    return defaultdict(_space_metrics)


class StorageMetrics:
    """Running item/byte counts keyed by store, store type, space and mimetype.

    Only the builder's run task mutates an instance; status readers look at
    ``total_items`` without locking, which is fine for progress display.
    """

    def __init__(self) -> None:
        self._stores: DefaultDict[str, DefaultDict[str, _StoreMetrics]] = defaultdict(
            lambda: defaultdict(_store_metrics)
        )
        self.total_items = 0
        self.total_bytes = 0

    def update(
        self,
        store_id: str,
        store_type: str,
        space_id: str,
        mimetype: str | None,
        size: int,
    ) -> None:
        key = mimetype or UNKNOWN_MIMETYPE
        self._stores[store_id][store_type][space_id][key].update(size)
        self.total_items += 1
        self.total_bytes += size

    def get_total_items(self) -> int:
        return self.total_items

    def get_total_bytes(self) -> int:
        return self.total_bytes

    def store_ids(self) -> list[str]:
        return list(self._stores)

    def store_totals(self, store_id: str) -> MimetypeMetrics:
        totals = MimetypeMetrics()
        for spaces in self._stores.get(store_id, {}).values():
            for mimetypes in spaces.values():
                _fold(totals, mimetypes.values())
        return totals

    def space_totals(self, store_id: str, store_type: str, space_id: str) -> MimetypeMetrics:
        totals = MimetypeMetrics()
        mimetypes = self._stores.get(store_id, {}).get(store_type, {}).get(space_id, {})
        _fold(totals, mimetypes.values())
        return totals

    def mimetype_totals(self, mimetype: str) -> MimetypeMetrics:
        totals = MimetypeMetrics()
        for store_types in self._stores.values():
            for spaces in store_types.values():
                for mimetypes in spaces.values():
                    entry = mimetypes.get(mimetype)
                    if entry is not None:
                        _fold(totals, (entry,))
        return totals

    def to_dict(self) -> Dict[str, Any]:
        stores: Dict[str, Any] = {}
        for store_id, store_types in self._stores.items():
            stores[store_id] = {
                store_type: {
                    space_id: {
                        mimetype: {"item_count": m.item_count, "byte_size": m.byte_size}
                        for mimetype, m in mimetypes.items()
                    }
                    for space_id, mimetypes in spaces.items()
                }
                for store_type, spaces in store_types.items()
            }
        return {
            "total_items": self.total_items,
            "total_bytes": self.total_bytes,
            "stores": stores,
        }


def _fold(totals: MimetypeMetrics, entries: Any) -> None:
    for entry in entries:
        totals.item_count += entry.item_count
        totals.byte_size += entry.byte_size
