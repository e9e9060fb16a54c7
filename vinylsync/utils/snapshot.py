"""
Vinyl Sync — Local Snapshot Store

Reads and writes the canonical collection snapshot: a single pretty-printed
JSON array of CollectionRecord objects. The same file is the input and the
output of every reconciliation run.

A missing or malformed snapshot is not fatal; it means "no existing
collection". There is no protection against two processes writing the same
file at once (last writer wins); callers must not run concurrent syncs.
"""

from __future__ import annotations

import json
import os
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Iterable

import structlog
from pydantic import ValidationError

from vinylsync.models.record import CollectionRecord

logger = structlog.get_logger(__name__)


class SnapshotStore:
    """
    JSON-file persistence for the collection.

    Usage:
        store = SnapshotStore("data/vinyls.json")
        records = store.load()
        store.save(records)
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[CollectionRecord]:
        """
        Load every record in the snapshot.

        Returns:
            The records in file order, or an empty list when the file is
            absent or not a JSON array. Entries that fail validation are
            skipped with a warning.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("snapshot_missing", path=str(self._path))
            return []
        except OSError as e:
            logger.warning("snapshot_unreadable", path=str(self._path), error=str(e))
            return []

        try:
            data = json.loads(raw, parse_float=Decimal)
        except json.JSONDecodeError as e:
            logger.warning(
                "snapshot_malformed",
                path=str(self._path),
                error=str(e),
                line=e.lineno,
            )
            return []

        if not isinstance(data, list):
            logger.warning(
                "snapshot_not_an_array",
                path=str(self._path),
                found_type=type(data).__name__,
            )
            return []

        records: list[CollectionRecord] = []
        for position, entry in enumerate(data):
            try:
                records.append(CollectionRecord.model_validate(entry))
            except ValidationError as e:
                logger.warning(
                    "snapshot_entry_invalid",
                    path=str(self._path),
                    position=position,
                    error_count=e.error_count(),
                )

        logger.info("snapshot_loaded", path=str(self._path), count=len(records))
        return records

    def save(self, records: Iterable[CollectionRecord]) -> None:
        """
        Atomically replace the snapshot with ``records``.

        Writes to a temporary file in the same directory and renames it over
        the target, so an interrupted write never leaves a truncated file.
        """
        payload = [record.to_snapshot_dict() for record in records]
        text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug("snapshot_saved", path=str(self._path), count=len(payload))


def build_index(records: Iterable[CollectionRecord]) -> dict[int, list[CollectionRecord]]:
    """
    Map Discogs release id to the local records carrying it, in file order.

    Derived once per run and never persisted. A list per id lets duplicate
    copies of the same release each match one local record. Records without
    a release id are local-only and are left out.
    """
    index: dict[int, list[CollectionRecord]] = {}
    for record in records:
        if record.discogs_release_id is None:
            continue
        index.setdefault(record.discogs_release_id, []).append(record)
    return index
