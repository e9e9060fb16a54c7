"""
Vinyl Sync — Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- Snapshot store on a temporary path
- A snapshot entry carrying user-owned data
- Async test support via pytest-asyncio

Payload builders and the fake Discogs client live in tests/factories.py.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

from vinylsync.utils.snapshot import SnapshotStore


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for anyio tests."""
    return "asyncio"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def snapshot_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "vinyls.json"


@pytest.fixture
def snapshot_store(snapshot_path: Path) -> SnapshotStore:
    return SnapshotStore(snapshot_path)


@pytest.fixture
def owned_record_payload() -> dict[str, Any]:
    """A snapshot entry (camelCase, as written by the web app) with user data."""
    return {
        "id": "3f2c1d7e-0000-4000-8000-000000000001",
        "discogsReleaseId": 101,
        "artist": "Radiohead",
        "title": "OK Computer (old title)",
        "label": "Parlophone",
        "catalogNumber": "NODATA 02",
        "releaseYear": 1997,
        "format": ["LP"],
        "genres": ["Rock"],
        "sleeveCondition": "Very Good Plus (VG+)",
        "mediaCondition": "Near Mint (NM)",
        "purchasePrice": Decimal("25.00"),
        "purchaseDate": "2019-05-04",
        "purchaseCurrency": "USD",
        "storageLocation": "Shelf A3",
        "tags": ["favourite", "first pressing"],
        "notes": "Bought at Rough Trade",
        "estimatedValue": Decimal("30"),
        "createdAt": "2020-01-01T00:00:00.000Z",
        "updatedAt": "2020-01-01T00:00:00.000Z",
        "listenCount": 42,
    }
