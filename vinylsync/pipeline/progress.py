"""
Vinyl Sync — Progress Reporting

Observability hook for long imports. The reconciliation engine calls
``report(current, total, label)`` after every item; the caller's callback
receives the same tuple, synchronously, from inside the loop. Callbacks must
not raise and must not block.

Persistence is not handled here; the engine checkpoints on its own.
"""

from __future__ import annotations

from typing import Callable

import structlog

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[int, int, str], None]


class ProgressReporter:
    """Forward per-item progress to an optional caller callback."""

    def __init__(self, callback: ProgressCallback | None = None):
        self._callback = callback
        self._last: tuple[int, int, str] | None = None

    @property
    def last(self) -> tuple[int, int, str] | None:
        """Most recent (current, total, label) reported."""
        return self._last

    def report(self, current: int, total: int, label: str) -> None:
        self._last = (current, total, label)
        logger.debug("reconcile_progress", current=current, total=total, item=label)
        if self._callback is not None:
            self._callback(current, total, label)
