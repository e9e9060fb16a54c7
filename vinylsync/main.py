"""
Vinyl Sync — Application Entrypoint

Configures structlog, validates credentials, and runs one reconciliation of
the local snapshot against the user's Discogs collection.

Run via:
    python -m vinylsync.main                      # full sync
    python -m vinylsync.main --mode new           # add new releases only
    python -m vinylsync.main --mode prices        # refresh prices only
    python -m vinylsync.main --folder Vinyl --snapshot data/vinyls.json
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import structlog

from vinylsync.config import ConfigurationError, SyncMode, require_credentials, settings
from vinylsync.engine.stats import CollectionStats, calculate_collection_stats
from vinylsync.pipeline.discogs import DiscogsClient, DiscogsClientConfig
from vinylsync.pipeline.rate_limit import DiscogsAPIError
from vinylsync.pipeline.reconcile import FolderNotFoundError, Reconciler, ReconcileResult
from vinylsync.utils.snapshot import SnapshotStore


# ---------------------------------------------------------------------------
# Structlog Configuration
# ---------------------------------------------------------------------------


def _configure_logging(log_level: str = "INFO") -> None:
    """
    Set up structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    # Configure stdlib logging first (for httpx)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
    )

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reconcile the local vinyl snapshot with a Discogs collection.",
    )
    parser.add_argument(
        "--mode",
        type=SyncMode,
        default=SyncMode.FULL_SYNC,
        choices=list(SyncMode),
        help="full: insert + refresh (default) | new: insert only | prices: refresh prices only.",
    )
    parser.add_argument(
        "--folder",
        type=str,
        default=None,
        help="Collection folder id or name (default: DISCOGS_FOLDER, 0 = All).",
    )
    parser.add_argument(
        "--snapshot",
        type=str,
        default=None,
        help="Path to the JSON snapshot (default: SNAPSHOT_PATH).",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="DEBUG, INFO, WARNING or ERROR (default: LOG_LEVEL).",
    )
    return parser.parse_args(argv)


def print_progress(current: int, total: int, label: str) -> None:
    print(f"[{current}/{total}] {label}", flush=True)


def print_result(result: ReconcileResult, stats: CollectionStats) -> None:
    print()
    print(f"Sync complete ({result.mode.value}).")
    print(f"  processed  = {result.processed}")
    print(f"  inserted   = {result.inserted}")
    print(f"  updated    = {result.updated}")
    print(f"  unchanged  = {result.unchanged}")
    print(f"  skipped    = {result.skipped}")
    print(f"  failed     = {result.failed}")
    print(f"  records    = {stats.total_records}")
    print(f"  value      = {stats.total_value:.2f}")
    print(f"  gain/loss  = {stats.total_gain_loss:.2f}")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


async def main(argv: list[str] | None = None) -> int:
    """
    Run one reconciliation.

    Returns:
        Process exit code: 0 on success, 1 on configuration or API failure.
    """
    args = parse_args(argv)
    _configure_logging(log_level=args.log_level or settings.LOG_LEVEL)
    logger = structlog.get_logger(__name__)

    try:
        token, username = require_credentials(settings)
    except ConfigurationError as e:
        logger.error("config_invalid", error=str(e))
        print(str(e), file=sys.stderr)
        return 1

    store = SnapshotStore(args.snapshot or settings.SNAPSHOT_PATH)
    config = DiscogsClientConfig.from_settings().model_copy(
        update={"token": token, "username": username}
    )

    logger.info(
        "vinylsync_startup",
        mode=args.mode.value,
        username=username,
        snapshot=str(store.path),
    )

    try:
        async with DiscogsClient(config) as client:
            reconciler = Reconciler(client, store, mode=args.mode)
            result = await reconciler.reconcile(
                username,
                folder_selector=args.folder,
                on_progress=print_progress,
            )
    except FolderNotFoundError as e:
        logger.error("vinylsync_folder_not_found", error=str(e))
        print(str(e), file=sys.stderr)
        return 1
    except DiscogsAPIError as e:
        logger.error(
            "vinylsync_sync_aborted",
            error=str(e),
            status_code=e.status_code,
            path=e.path,
        )
        print(f"Sync aborted: {e}", file=sys.stderr)
        return 1

    stats = calculate_collection_stats(result.records)
    logger.info(
        "vinylsync_complete",
        **result.summary(),
        total_value=str(stats.total_value),
        total_gain_loss=str(stats.total_gain_loss),
    )
    print_result(result, stats)
    return 0


# ---------------------------------------------------------------------------
# CLI Entry
# ---------------------------------------------------------------------------


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
