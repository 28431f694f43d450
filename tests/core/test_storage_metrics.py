from __future__ import annotations

import random

from storage_report.core.metrics import UNKNOWN_MIMETYPE, StorageMetrics


def test_update_creates_entries_and_tracks_totals() -> None:
    metrics = StorageMetrics()

    metrics.update("0", "AMAZON_S3", "photos", "image/jpeg", 100)
    metrics.update("0", "AMAZON_S3", "photos", "image/jpeg", 50)
    metrics.update("0", "AMAZON_S3", "docs", "text/plain", 7)
    metrics.update("1", "RACKSPACE", "photos", "image/png", 3)

    assert metrics.get_total_items() == 4
    assert metrics.get_total_bytes() == 160

    photos = metrics.space_totals("0", "AMAZON_S3", "photos")
    assert (photos.item_count, photos.byte_size) == (2, 150)
    store = metrics.store_totals("0")
    assert (store.item_count, store.byte_size) == (3, 157)
    assert sorted(metrics.store_ids()) == ["0", "1"]


def test_missing_mimetype_is_recorded_as_unknown() -> None:
    metrics = StorageMetrics()

    metrics.update("0", "MEMORY", "space", None, 10)

    unknown = metrics.mimetype_totals(UNKNOWN_MIMETYPE)
    assert (unknown.item_count, unknown.byte_size) == (1, 10)


def test_breakdown_sums_to_totals_at_every_level() -> None:
    rng = random.Random(7)
    metrics = StorageMetrics()
    stores = {"0": "AMAZON_S3", "1": "RACKSPACE"}
    spaces = ("a", "b", "c")
    mimetypes = ("text/plain", "image/png", "application/xml")
    expected_items = 0
    expected_bytes = 0
    for _ in range(200):
        store_id = rng.choice(sorted(stores))
        size = rng.randint(0, 1000)
        metrics.update(store_id, stores[store_id], rng.choice(spaces), rng.choice(mimetypes), size)
        expected_items += 1
        expected_bytes += size

    assert metrics.get_total_items() == expected_items
    assert metrics.get_total_bytes() == expected_bytes

    store_sum = [metrics.store_totals(store_id) for store_id in stores]
    assert sum(s.item_count for s in store_sum) == expected_items
    assert sum(s.byte_size for s in store_sum) == expected_bytes

    for store_id, store_type in stores.items():
        space_sum = [metrics.space_totals(store_id, store_type, space) for space in spaces]
        store_total = metrics.store_totals(store_id)
        assert sum(s.item_count for s in space_sum) == store_total.item_count
        assert sum(s.byte_size for s in space_sum) == store_total.byte_size

    mime_sum = [metrics.mimetype_totals(mimetype) for mimetype in mimetypes]
    assert sum(m.item_count for m in mime_sum) == expected_items
    assert sum(m.byte_size for m in mime_sum) == expected_bytes


def test_to_dict_contains_nested_breakdown() -> None:
    metrics = StorageMetrics()
    metrics.update("0", "AMAZON_S3", "photos", "image/jpeg", 100)

    assert metrics.to_dict() == {
        "total_items": 1,
        "total_bytes": 100,
        "stores": {
            "0": {"AMAZON_S3": {"photos": {"image/jpeg": {"item_count": 1, "byte_size": 100}}}}
        },
    }


def test_to_dict_keeps_store_types_apart() -> None:
    metrics = StorageMetrics()
    metrics.update("0", "AMAZON_S3", "photos", "image/jpeg", 100)
    metrics.update("0", "RACKSPACE", "archive", "image/jpeg", 40)

    stores = metrics.to_dict()["stores"]

    assert stores == {
        "0": {
            "AMAZON_S3": {"photos": {"image/jpeg": {"item_count": 1, "byte_size": 100}}},
            "RACKSPACE": {"archive": {"image/jpeg": {"item_count": 1, "byte_size": 40}}},
        }
    }
