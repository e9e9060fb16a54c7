"""
Vinyl Sync — Rate-Limited Request Gate

Every outbound Discogs call goes through one RateLimitGate. The gate:

- serializes requests strictly FIFO (no fan-out, no bursts)
- keeps a rolling per-minute budget, refreshed from the
  X-Discogs-Ratelimit / -Used / -Remaining response headers
- idles until the next window when the budget drops below a low-water mark
- spaces dispatches by a minimum interval even when budget allows bursts
- retries 429 after a cooldown scaled by attempt number, and 5xx with
  exponential backoff, up to a fixed attempt ceiling

Anything else (or exhausted retries) surfaces as DiscogsAPIError carrying the
HTTP status and the last-known remaining budget.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

import httpx
import structlog
from pydantic import BaseModel

from vinylsync.config import settings

logger = structlog.get_logger(__name__)

RATE_LIMIT_HEADER = "X-Discogs-Ratelimit"
RATE_LIMIT_USED_HEADER = "X-Discogs-Ratelimit-Used"
RATE_LIMIT_REMAINING_HEADER = "X-Discogs-Ratelimit-Remaining"


class DiscogsAPIError(Exception):
    """A Discogs request that failed permanently or ran out of retries."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        rate_limit_remaining: int | None = None,
        path: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.rate_limit_remaining = rate_limit_remaining
        self.path = path

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class RateLimitStatus(BaseModel):
    """Budget for the current rate-limit window."""
    limit: int
    used: int = 0
    remaining: int


class RateLimitGate:
    """
    FIFO request gate with pacing and retry.

    Usage:
        gate = RateLimitGate()
        response = await gate.execute(lambda: client.get("/releases/249504"))
    """

    def __init__(
        self,
        limit: int | None = None,
        low_water_mark: int | None = None,
        window_seconds: float | None = None,
        min_interval: float | None = None,
        rate_limit_cooldown: float | None = None,
        base_backoff: float | None = None,
        max_attempts: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        initial_limit = limit if limit is not None else settings.RATE_LIMIT_UNAUTHENTICATED_PER_MINUTE
        self._status = RateLimitStatus(limit=initial_limit, remaining=initial_limit)
        self._low_water_mark = (
            low_water_mark if low_water_mark is not None else settings.RATE_LIMIT_LOW_WATER_MARK
        )
        self._window_seconds = (
            window_seconds if window_seconds is not None else settings.RATE_LIMIT_WINDOW_SECONDS
        )
        self._min_interval = (
            min_interval if min_interval is not None else settings.MIN_REQUEST_INTERVAL_SECONDS
        )
        self._rate_limit_cooldown = (
            rate_limit_cooldown
            if rate_limit_cooldown is not None
            else settings.RATE_LIMIT_COOLDOWN_SECONDS
        )
        self._base_backoff = (
            base_backoff if base_backoff is not None else settings.SERVER_ERROR_BASE_BACKOFF_SECONDS
        )
        self._max_attempts = max_attempts if max_attempts is not None else settings.MAX_REQUEST_ATTEMPTS
        if self._max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self._max_attempts}")

        self._clock = clock
        # asyncio.Lock wakes waiters in arrival order, which gives FIFO dispatch
        self._lock = asyncio.Lock()
        self._window_started: float | None = None
        self._last_dispatch: float | None = None

    # -----------------------------------------------------------------------
    # Budget bookkeeping
    # -----------------------------------------------------------------------

    @property
    def status(self) -> RateLimitStatus:
        return self._status.model_copy()

    def set_limit(self, limit: int) -> None:
        """Raise (or lower) the per-window budget, e.g. after authenticating."""
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        self._status = RateLimitStatus(
            limit=limit,
            used=self._status.used,
            remaining=max(limit - self._status.used, 0),
        )
        logger.info("rate_limit_budget_set", limit=limit, remaining=self._status.remaining)

    def _reset_window(self) -> None:
        self._window_started = self._clock()
        self._status = RateLimitStatus(limit=self._status.limit, remaining=self._status.limit)

    def _note_dispatch(self) -> None:
        now = self._clock()
        if self._window_started is None or now - self._window_started >= self._window_seconds:
            self._reset_window()
        used = self._status.used + 1
        self._status = RateLimitStatus(
            limit=self._status.limit,
            used=used,
            remaining=max(self._status.limit - used, 0),
        )
        self._last_dispatch = now

    def _update_from_headers(self, response: httpx.Response) -> None:
        """Trust the server's view of the budget when it reports one."""
        headers = response.headers
        if RATE_LIMIT_HEADER not in headers:
            return
        try:
            limit = int(headers[RATE_LIMIT_HEADER])
            used = int(headers.get(RATE_LIMIT_USED_HEADER, self._status.used))
            remaining = int(headers.get(RATE_LIMIT_REMAINING_HEADER, max(limit - used, 0)))
        except ValueError:
            logger.warning(
                "rate_limit_headers_unparseable",
                limit=headers.get(RATE_LIMIT_HEADER),
                used=headers.get(RATE_LIMIT_USED_HEADER),
                remaining=headers.get(RATE_LIMIT_REMAINING_HEADER),
            )
            return
        self._status = RateLimitStatus(limit=limit, used=used, remaining=remaining)

    # -----------------------------------------------------------------------
    # Waiting
    # -----------------------------------------------------------------------

    async def _wait_for_budget(self) -> None:
        if self._status.remaining >= self._low_water_mark:
            return

        now = self._clock()
        window_started = self._window_started if self._window_started is not None else now
        wait_time = window_started + self._window_seconds - now
        if wait_time > 0:
            logger.info(
                "rate_limit_budget_low",
                remaining=self._status.remaining,
                low_water_mark=self._low_water_mark,
                wait_seconds=round(wait_time, 3),
            )
            await asyncio.sleep(wait_time)
        self._reset_window()

    async def _wait_for_spacing(self) -> None:
        if self._last_dispatch is None or self._min_interval <= 0:
            return
        wait_time = self._min_interval - (self._clock() - self._last_dispatch)
        if wait_time > 0:
            await asyncio.sleep(wait_time)

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def execute(
        self,
        request_fn: Callable[[], Awaitable[httpx.Response]],
        path: str | None = None,
    ) -> httpx.Response:
        """
        Run ``request_fn`` once it is this caller's turn and budget allows.

        Args:
            request_fn: Zero-argument coroutine factory performing one HTTP
                request. Called once per attempt.
            path: Request path, only used for log and error context.

        Returns:
            The first successful (non-error) response.

        Raises:
            DiscogsAPIError: On a non-retryable status, a transport error, or
                after max_attempts retryable failures.
        """
        async with self._lock:
            return await self._dispatch(request_fn, path)

    async def _dispatch(
        self,
        request_fn: Callable[[], Awaitable[httpx.Response]],
        path: str | None,
    ) -> httpx.Response:
        last_status: int | None = None

        for attempt in range(1, self._max_attempts + 1):
            await self._wait_for_budget()
            await self._wait_for_spacing()
            self._note_dispatch()

            try:
                response = await request_fn()
            except httpx.RequestError as e:
                logger.error(
                    "discogs_request_error",
                    error=str(e),
                    attempt=attempt,
                    path=path,
                )
                raise DiscogsAPIError(
                    f"Discogs request failed: {e}",
                    status_code=None,
                    rate_limit_remaining=self._status.remaining,
                    path=path,
                ) from e

            self._update_from_headers(response)
            last_status = response.status_code

            if response.status_code == 429:
                if attempt < self._max_attempts:
                    wait_time = self._rate_limit_cooldown * attempt
                    logger.warning(
                        "discogs_rate_limited",
                        attempt=attempt,
                        wait_seconds=wait_time,
                        path=path,
                    )
                    await asyncio.sleep(wait_time)
                    # The cooldown outlasts the window, so start a fresh one
                    self._reset_window()
                    continue
                break

            if response.status_code >= 500:
                logger.error(
                    "discogs_server_error",
                    status_code=response.status_code,
                    attempt=attempt,
                    path=path,
                )
                if attempt < self._max_attempts:
                    wait_time = self._base_backoff * (2 ** (attempt - 1))
                    await asyncio.sleep(wait_time)
                    continue
                break

            if response.is_error:
                logger.debug(
                    "discogs_http_error",
                    status_code=response.status_code,
                    path=path,
                )
                raise DiscogsAPIError(
                    f"Discogs returned HTTP {response.status_code}",
                    status_code=response.status_code,
                    rate_limit_remaining=self._status.remaining,
                    path=path,
                )

            return response

        raise DiscogsAPIError(
            f"Discogs request failed after {self._max_attempts} attempts "
            f"(last status {last_status})",
            status_code=last_status,
            rate_limit_remaining=self._status.remaining,
            path=path,
        )
