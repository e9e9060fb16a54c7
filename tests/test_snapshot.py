"""
Vinyl Sync — Local Snapshot Store Tests

A missing or malformed snapshot means "no existing collection"; saves are
pretty-printed, keep camelCase names, and preserve unknown fields.
"""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path
from typing import Any

from vinylsync.models.record import CollectionRecord
from vinylsync.utils.snapshot import SnapshotStore, build_index


class TestLoad:

    def test_missing_file_is_empty(self, snapshot_store: SnapshotStore) -> None:
        assert snapshot_store.load() == []

    def test_malformed_json_is_empty(self, snapshot_store: SnapshotStore, snapshot_path: Path) -> None:
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text("[{not json", encoding="utf-8")

        assert snapshot_store.load() == []

    def test_non_array_is_empty(self, snapshot_store: SnapshotStore, snapshot_path: Path) -> None:
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text('{"records": []}', encoding="utf-8")

        assert snapshot_store.load() == []

    def test_invalid_entries_skipped(self, snapshot_store: SnapshotStore, snapshot_path: Path) -> None:
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text(
            json.dumps([
                {"id": "a", "artist": "Portishead", "title": "Dummy"},
                {"id": "b", "discogsReleaseId": "not-a-number"},
                "just a string",
            ]),
            encoding="utf-8",
        )

        records = snapshot_store.load()

        assert [r.id for r in records] == ["a"]

    def test_money_loaded_as_decimal(self, snapshot_store: SnapshotStore, snapshot_path: Path) -> None:
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text(
            '[{"id": "a", "purchasePrice": 19.99, "estimatedValue": 0.1}]', encoding="utf-8"
        )

        record = snapshot_store.load()[0]

        assert record.purchase_price == Decimal("19.99")
        assert record.estimated_value == Decimal("0.1")


class TestSave:

    def test_round_trip_preserves_fields_and_extras(
        self,
        snapshot_store: SnapshotStore,
        owned_record_payload: dict[str, Any],
    ) -> None:
        record = CollectionRecord.model_validate(owned_record_payload)

        snapshot_store.save([record])
        loaded = snapshot_store.load()

        assert len(loaded) == 1
        assert loaded[0].storage_location == "Shelf A3"
        assert loaded[0].purchase_price == Decimal("25")
        assert loaded[0].model_extra == {"listenCount": 42}

    def test_pretty_printed_camel_case(
        self,
        snapshot_store: SnapshotStore,
        snapshot_path: Path,
        owned_record_payload: dict[str, Any],
    ) -> None:
        snapshot_store.save([CollectionRecord.model_validate(owned_record_payload)])

        text = snapshot_path.read_text(encoding="utf-8")
        assert text.startswith("[\n  {\n")
        assert text.endswith("]\n")
        data = json.loads(text)
        assert data[0]["discogsReleaseId"] == 101
        assert data[0]["storageLocation"] == "Shelf A3"
        assert data[0]["purchasePrice"] == 25.0
        assert "discogs_release_id" not in data[0]
        # Absent values are omitted, not written as null
        assert "gainLoss" not in data[0]

    def test_load_then_save_keeps_fractional_numbers_numeric(
        self,
        snapshot_store: SnapshotStore,
        snapshot_path: Path,
    ) -> None:
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text(
            '[{"id": "a", "currentMedianPrice": 12.5, "currentHighestPrice": 40.0,'
            ' "customScore": 7.25, "playStats": {"rating": 4.5, "plays": [1.5, 2]}}]',
            encoding="utf-8",
        )

        loaded = snapshot_store.load()
        snapshot_store.save(loaded)

        assert loaded[0].current_median_price == Decimal("12.5")
        data = json.loads(snapshot_path.read_text(encoding="utf-8"))[0]
        assert data["currentMedianPrice"] == 12.5
        assert data["currentHighestPrice"] == 40.0
        assert data["customScore"] == 7.25
        assert data["playStats"] == {"rating": 4.5, "plays": [1.5, 2]}

    def test_save_creates_parent_and_leaves_no_temp_files(
        self,
        snapshot_store: SnapshotStore,
        snapshot_path: Path,
    ) -> None:
        snapshot_store.save([CollectionRecord(id="a", artist="Björk", title="Homogenic")])

        assert snapshot_path.exists()
        assert [p.name for p in snapshot_path.parent.iterdir()] == ["vinyls.json"]
        assert "Björk" in snapshot_path.read_text(encoding="utf-8")


def test_build_index_groups_duplicates_in_file_order() -> None:
    first = CollectionRecord(id="a", discogs_release_id=101)
    local_only = CollectionRecord(id="b")
    second = CollectionRecord(id="c", discogs_release_id=101)
    other = CollectionRecord(id="d", discogs_release_id=202)

    index = build_index([first, local_only, second, other])

    assert [r.id for r in index[101]] == ["a", "c"]
    assert [r.id for r in index[202]] == ["d"]
    assert len(index) == 2
