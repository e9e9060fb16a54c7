"""
Vinyl Sync — Entrypoint Tests

Configuration failures stop the run before any client is opened.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from vinylsync import main as entrypoint
from vinylsync.config import SyncMode, settings


def test_parse_args_defaults() -> None:
    args = entrypoint.parse_args([])

    assert args.mode == SyncMode.FULL_SYNC
    assert args.folder is None
    assert args.snapshot is None


def test_parse_args_modes() -> None:
    assert entrypoint.parse_args(["--mode", "new"]).mode == SyncMode.INSERT_ONLY
    assert entrypoint.parse_args(["--mode", "prices"]).mode == SyncMode.PRICE_REFRESH_ONLY


@pytest.mark.asyncio
async def test_missing_credentials_exit_before_network(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "DISCOGS_TOKEN", "")
    monkeypatch.setattr(settings, "DISCOGS_USERNAME", "")

    with patch.object(entrypoint, "DiscogsClient") as client_cls:
        exit_code = await entrypoint.main(["--log-level", "ERROR"])

    assert exit_code == 1
    client_cls.assert_not_called()
