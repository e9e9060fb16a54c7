"""
Vinyl Sync — Collection Reconciliation Engine

Merges a user's Discogs collection into the local snapshot. One engine,
three modes (SyncMode):

- FULL_SYNC: page through the folder; insert unseen releases, refresh
  identifying metadata and prices on known ones. User-owned fields are
  always copied forward untouched.
- INSERT_ONLY: same pipeline, but releases that already have a local record
  are skipped without any detail or price request.
- PRICE_REFRESH_ONLY: no pagination; refresh price-derived fields on every
  local record that carries a Discogs release id.

Failures on a single item are logged and counted, never fatal. A failure
fetching a collection page aborts the run; the last checkpoint (saved every
CHECKPOINT_INTERVAL items) stays on disk.

Final ordering (FULL_SYNC): Discogs folder order for matched and inserted
records, followed by local records the folder did not mention (local-only
records, or releases removed from the folder) in their original order.
"""

from __future__ import annotations

from collections import deque
from typing import Callable

import structlog
from pydantic import BaseModel

from vinylsync.config import SyncMode, settings
from vinylsync.models.catalog import PriceSnapshot, clean_artist_name
from vinylsync.models.record import CollectionRecord, utc_now_iso
from vinylsync.pipeline.discogs import CollectionFolder, CollectionItem, DiscogsClient
from vinylsync.pipeline.mapping import (
    apply_price,
    build_price_snapshot,
    build_record,
    map_release_to_catalog_item,
    merge_record,
    prices_differ,
)
from vinylsync.pipeline.progress import ProgressCallback, ProgressReporter
from vinylsync.pipeline.rate_limit import DiscogsAPIError
from vinylsync.utils.condition_map import default_condition
from vinylsync.utils.snapshot import SnapshotStore, build_index

logger = structlog.get_logger(__name__)

# Per-item failures the engine absorbs. pydantic's ValidationError and JSON
# decoding errors are both ValueErrors.
ITEM_ERRORS = (DiscogsAPIError, ValueError)


class FolderNotFoundError(LookupError):
    """The folder selector matched no collection folder."""


class ReconcileResult(BaseModel):
    """Outcome of one reconciliation run."""
    mode: SyncMode
    records: list[CollectionRecord]
    total: int = 0
    processed: int = 0
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    retained: int = 0

    @property
    def succeeded(self) -> int:
        return self.inserted + self.updated + self.unchanged

    def summary(self) -> dict[str, int | str]:
        return {
            "mode": self.mode.value,
            "total": self.total,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "inserted": self.inserted,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "failed": self.failed,
            "retained": self.retained,
            "records": len(self.records),
        }


def _item_label(item: CollectionItem) -> str:
    info = item.basic_information
    artist = clean_artist_name(info.artists[0].name) if info.artists else "Unknown"
    return f"{artist} - {info.title}"


class Reconciler:
    """
    Drives one reconciliation run against a DiscogsClient and a SnapshotStore.

    Usage:
        async with DiscogsClient(config) as client:
            reconciler = Reconciler(client, SnapshotStore("data/vinyls.json"))
            result = await reconciler.reconcile("username", "Vinyl", on_progress)
    """

    def __init__(
        self,
        client: DiscogsClient,
        store: SnapshotStore,
        mode: SyncMode = SyncMode.FULL_SYNC,
        checkpoint_interval: int | None = None,
        page_size: int | None = None,
        fetch_price_suggestions: bool | None = None,
        clock: Callable[[], str] = utc_now_iso,
    ):
        self._client = client
        self._store = store
        self._mode = mode
        self._checkpoint_interval = checkpoint_interval or settings.CHECKPOINT_INTERVAL
        self._page_size = page_size or settings.COLLECTION_PAGE_SIZE
        self._fetch_price_suggestions = (
            fetch_price_suggestions
            if fetch_price_suggestions is not None
            else settings.FETCH_PRICE_SUGGESTIONS
        )
        self._clock = clock

    @property
    def mode(self) -> SyncMode:
        return self._mode

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def reconcile(
        self,
        identity: str | None = None,
        folder_selector: int | str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ReconcileResult:
        """
        Run one reconciliation and persist the resulting snapshot.

        Args:
            identity: Discogs username owning the collection. Not needed for
                PRICE_REFRESH_ONLY.
            folder_selector: Folder id or name. Defaults to DISCOGS_FOLDER.
            on_progress: Called with (current, total, label) after each item.

        Returns:
            ReconcileResult with the new snapshot and per-outcome counts.

        Raises:
            DiscogsAPIError: If a collection page cannot be fetched.
            FolderNotFoundError: If the folder selector matches nothing.
        """
        reporter = ProgressReporter(on_progress)
        existing = self._store.load()

        logger.info(
            "reconcile_start",
            mode=self._mode.value,
            existing_records=len(existing),
            snapshot=str(self._store.path),
        )

        if self._mode == SyncMode.PRICE_REFRESH_ONLY:
            result = await self._refresh_prices(existing, reporter)
        else:
            if not identity:
                raise ValueError("identity is required to page through a collection")
            folder = await self.resolve_folder(identity, folder_selector)
            result = await self._sync_collection(identity, folder.id, existing, reporter)

        logger.info("reconcile_complete", **result.summary())
        return result

    async def resolve_folder(
        self,
        identity: str,
        folder_selector: int | str | None = None,
    ) -> CollectionFolder:
        """
        Resolve a folder id or name to a CollectionFolder.

        Folder 0 ("All") always exists and needs no lookup.
        """
        selector = folder_selector if folder_selector is not None else settings.DISCOGS_FOLDER
        selector_text = str(selector).strip()
        folder_id = int(selector_text) if selector_text.lstrip("-").isdigit() else None

        if folder_id == 0:
            return CollectionFolder(id=0, name="All")

        folders = await self._client.get_collection_folders(identity)
        for folder in folders:
            if folder_id is not None and folder.id == folder_id:
                break
            if folder_id is None and folder.name.casefold() == selector_text.casefold():
                break
        else:
            raise FolderNotFoundError(
                f"No collection folder matching {selector_text!r} for {identity} "
                f"(available: {', '.join(f.name for f in folders) or 'none'})"
            )

        logger.info(
            "reconcile_folder_resolved",
            folder_id=folder.id,
            folder_name=folder.name,
            folder_count=folder.count,
        )
        return folder

    # -----------------------------------------------------------------------
    # Price data
    # -----------------------------------------------------------------------

    async def _fetch_price(
        self,
        release_id: int,
        condition: str,
        best_effort: bool = True,
    ) -> PriceSnapshot | None:
        """
        Marketplace stats plus, when enabled, the suggestion for ``condition``.

        With best_effort, errors mean "no price data" instead of raising.
        Suggestion failures are always tolerated.
        """
        try:
            stats = await self._client.get_marketplace_stats(release_id)
        except ITEM_ERRORS as e:
            if not best_effort:
                raise
            logger.warning(
                "reconcile_price_unavailable",
                release_id=release_id,
                error=str(e),
                status_code=getattr(e, "status_code", None),
            )
            stats = None

        suggestions = None
        if self._fetch_price_suggestions:
            try:
                suggestions = await self._client.get_price_suggestions(release_id)
            except ITEM_ERRORS as e:
                logger.warning(
                    "reconcile_price_suggestions_unavailable",
                    release_id=release_id,
                    error=str(e),
                    status_code=getattr(e, "status_code", None),
                )

        return build_price_snapshot(release_id, stats, suggestions, condition, self._clock())

    # -----------------------------------------------------------------------
    # FULL_SYNC / INSERT_ONLY
    # -----------------------------------------------------------------------

    async def _sync_collection(
        self,
        identity: str,
        folder_id: int,
        existing: list[CollectionRecord],
        reporter: ProgressReporter,
    ) -> ReconcileResult:
        insert_only = self._mode == SyncMode.INSERT_ONLY
        result = ReconcileResult(mode=self._mode, records=[])

        pending = {release_id: deque(records) for release_id, records in build_index(existing).items()}
        claimed: set[str] = set()
        known_ids = {record.id for record in existing}
        produced: list[CollectionRecord] = []
        inserted_since_save = 0

        def snapshot() -> list[CollectionRecord]:
            if insert_only:
                return existing + produced
            return produced + [record for record in existing if record.id not in claimed]

        page = 1
        while True:
            response = await self._client.get_collection_releases(
                identity,
                folder_id,
                page=page,
                per_page=self._page_size,
            )
            result.total = response.pagination.items

            for item in response.releases:
                result.processed += 1
                release_id = item.basic_information.id
                label = _item_label(item)

                candidates = pending.get(release_id)
                current = candidates.popleft() if candidates else None
                if current is not None:
                    claimed.add(current.id)

                if insert_only and release_id in pending:
                    result.skipped += 1
                    logger.debug("reconcile_skip_existing", release_id=release_id, item=label)
                else:
                    record = await self._sync_item(item, current, known_ids, result, label)
                    if record is not None:
                        produced.append(record)
                        if current is None:
                            inserted_since_save += 1

                reporter.report(result.processed, result.total, label)

                if result.processed % self._checkpoint_interval == 0:
                    if not insert_only or inserted_since_save:
                        self._checkpoint(snapshot(), result)
                        inserted_since_save = 0

            if not response.pagination.has_more:
                break
            page += 1

        final = snapshot()
        if insert_only:
            result.retained = len(existing)
        else:
            result.retained = len(final) - len(produced)
        result.records = final

        if not insert_only or result.inserted:
            self._store.save(final)
        return result

    async def _sync_item(
        self,
        item: CollectionItem,
        current: CollectionRecord | None,
        known_ids: set[str],
        result: ReconcileResult,
        label: str,
    ) -> CollectionRecord | None:
        """Insert or update one record. A failure keeps ``current`` as it was."""
        release_id = item.basic_information.id
        try:
            release = await self._client.get_release(release_id)
            catalog_item = map_release_to_catalog_item(release, item)
            condition = current.media_condition if current is not None else default_condition().value
            price = await self._fetch_price(release_id, condition)
        except ITEM_ERRORS as e:
            result.failed += 1
            logger.warning(
                "reconcile_item_failed",
                release_id=release_id,
                item=label,
                error=str(e),
                status_code=getattr(e, "status_code", None),
            )
            return current

        if current is None:
            record = build_record(catalog_item, price, self._clock(), existing_ids=known_ids)
            known_ids.add(record.id)
            result.inserted += 1
            logger.debug("reconcile_inserted", release_id=release_id, record_id=record.id, item=label)
            return record

        merged = merge_record(current, catalog_item, price)
        if merged.content_fingerprint() == current.content_fingerprint():
            result.unchanged += 1
            return current

        now = self._clock()
        stamps = {"updated_at": now, "last_synced_with_discogs": now}
        if prices_differ(current, merged):
            stamps["last_price_update"] = price.fetched_at if price is not None else now
        result.updated += 1
        logger.debug("reconcile_updated", release_id=release_id, record_id=current.id, item=label)
        return merged.model_copy(update=stamps)

    # -----------------------------------------------------------------------
    # PRICE_REFRESH_ONLY
    # -----------------------------------------------------------------------

    async def _refresh_prices(
        self,
        existing: list[CollectionRecord],
        reporter: ProgressReporter,
    ) -> ReconcileResult:
        records = list(existing)
        targets = [i for i, record in enumerate(records) if record.discogs_release_id is not None]
        result = ReconcileResult(
            mode=self._mode,
            records=records,
            total=len(targets),
            skipped=len(records) - len(targets),
        )

        for position in targets:
            record = records[position]
            result.processed += 1
            release_id = record.discogs_release_id
            assert release_id is not None

            try:
                price = await self._fetch_price(release_id, record.media_condition, best_effort=False)
            except ITEM_ERRORS as e:
                result.failed += 1
                logger.warning(
                    "reconcile_price_refresh_failed",
                    release_id=release_id,
                    item=record.display_label,
                    error=str(e),
                    status_code=getattr(e, "status_code", None),
                )
                price = None
            else:
                if price is None:
                    result.skipped += 1
                    logger.debug(
                        "reconcile_no_market_data",
                        release_id=release_id,
                        item=record.display_label,
                    )

            if price is not None:
                refreshed = apply_price(record, price)
                changed = prices_differ(record, refreshed) or refreshed.gain_loss != record.gain_loss
                records[position] = refreshed.model_copy(
                    update={"last_price_update": price.fetched_at, "updated_at": self._clock()}
                )
                if changed:
                    result.updated += 1
                    logger.debug(
                        "reconcile_price_updated",
                        release_id=release_id,
                        item=record.display_label,
                        old_value=str(record.estimated_value),
                        new_value=str(refreshed.estimated_value),
                    )
                else:
                    result.unchanged += 1

            reporter.report(result.processed, result.total, record.display_label)

            if result.processed % self._checkpoint_interval == 0:
                self._checkpoint(records, result)

        self._store.save(records)
        return result

    # -----------------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------------

    def _checkpoint(self, records: list[CollectionRecord], result: ReconcileResult) -> None:
        self._store.save(records)
        logger.info(
            "reconcile_checkpoint",
            processed=result.processed,
            total=result.total,
            saved_records=len(records),
        )
