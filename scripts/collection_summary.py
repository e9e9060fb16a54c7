"""
Vinyl Sync — Collection Summary Script

Prints value and breakdown statistics for an existing snapshot. Reads the
local file only; no Discogs credentials or network access needed.

Usage:
    python scripts/collection_summary.py
    python scripts/collection_summary.py --snapshot data/vinyls.json
"""

from __future__ import annotations

import argparse
import os
import sys

# Resolve project root so this script can be run from any working directory
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from vinylsync.config import settings
from vinylsync.engine.stats import CollectionStats, calculate_collection_stats
from vinylsync.utils.snapshot import SnapshotStore


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Print statistics for a Vinyl Sync collection snapshot.",
    )
    parser.add_argument(
        "--snapshot",
        type=str,
        default=settings.SNAPSHOT_PATH,
        help=f"Path to the JSON snapshot (default: {settings.SNAPSHOT_PATH}).",
    )
    return parser.parse_args()


def print_stats(stats: CollectionStats) -> None:
    print(f"  records            = {stats.total_records} ({stats.linked_records} linked to Discogs)")
    print(f"  total value        = {stats.total_value:.2f}")
    print(f"  total invested     = {stats.total_invested:.2f}")
    if stats.total_gain_loss_percentage is not None:
        print(
            f"  gain/loss          = {stats.total_gain_loss:.2f} "
            f"({stats.total_gain_loss_percentage:.1f}%)"
        )
    else:
        print(f"  gain/loss          = {stats.total_gain_loss:.2f}")
    if stats.average_value is not None:
        print(f"  average value      = {stats.average_value:.2f}")
    if stats.highest_valued:
        print(f"  highest valued     = {stats.highest_valued.label} ({stats.highest_valued.value:.2f})")
    if stats.biggest_gainer:
        print(f"  biggest gainer     = {stats.biggest_gainer.label} (+{stats.biggest_gainer.value:.2f})")
    if stats.biggest_loser:
        print(f"  biggest loser      = {stats.biggest_loser.label} ({stats.biggest_loser.value:.2f})")
    print(f"  LP / EP / single   = {stats.lp_count} / {stats.ep_count} / {stats.single_count}")
    print(f"  colored            = {stats.colored_count}")
    print(f"  first pressings    = {stats.first_pressing_count}")
    print(f"  limited            = {stats.limited_count}")
    print(
        f"  unique             = {stats.unique_artists} artists, "
        f"{stats.unique_labels} labels, {stats.unique_genres} genres"
    )
    if stats.condition_counts:
        print("  by condition:")
        for condition, count in sorted(stats.condition_counts.items(), key=lambda kv: -kv[1]):
            print(f"    {condition:<20} {count}")


def main() -> None:
    args = parse_args()
    store = SnapshotStore(args.snapshot)

    if not store.path.exists():
        print(f"Snapshot not found: {store.path}", file=sys.stderr)
        sys.exit(1)

    records = store.load()
    print(f"Collection summary for {store.path}")
    print_stats(calculate_collection_stats(records))


if __name__ == "__main__":
    main()
