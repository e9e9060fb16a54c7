"""
Vinyl Sync — Discogs API Client

Typed accessors for the Discogs REST API resources the import pipeline
consumes: user profile, collection folders, paginated folder releases,
release/master detail, price suggestions, marketplace stats and listings,
database search, and collection value.

Base URL: https://api.discogs.com
Pagination: page + per_page (max 100 per page)

All requests go through a RateLimitGate. Release/master/user detail is cached
for 7 days, price suggestions and marketplace stats for 24 hours.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field, RootModel, field_validator

from vinylsync.config import Settings, settings
from vinylsync.pipeline.rate_limit import DiscogsAPIError, RateLimitGate, RateLimitStatus
from vinylsync.utils.cache import ResponseCache, TTLCache

logger = structlog.get_logger(__name__)

MAX_PAGE_SIZE = 100


def _parse_money(v: Any) -> Decimal | None:
    """Convert a Discogs price to Decimal. Never use float for money."""
    if v is None or v == "":
        return None
    try:
        return Decimal(str(v))
    except (InvalidOperation, ValueError):
        return None


# ---------------------------------------------------------------------------
# Pydantic Response Models
# ---------------------------------------------------------------------------


class DiscogsArtist(BaseModel):
    """Artist credit on a release."""
    id: int = 0
    name: str = ""
    anv: str | None = None
    join: str | None = None
    role: str | None = None


class DiscogsLabel(BaseModel):
    """Label credit with catalog number."""
    id: int | None = None
    name: str = ""
    catno: str = ""


class DiscogsFormat(BaseModel):
    """Physical format (e.g. name="Vinyl", descriptions=["LP", "Album"])."""
    name: str = ""
    qty: str | None = None
    descriptions: list[str] = Field(default_factory=list)
    text: str | None = None


class DiscogsImage(BaseModel):
    """Image attached to a release or master."""
    type: str = "secondary"
    uri: str = ""
    uri150: str | None = None
    width: int | None = None
    height: int | None = None


class DiscogsRelease(BaseModel):
    """Full release detail from /releases/{id}."""
    id: int
    title: str = ""
    year: int | None = None
    country: str | None = None
    master_id: int | None = None
    artists: list[DiscogsArtist] = Field(default_factory=list)
    labels: list[DiscogsLabel] = Field(default_factory=list)
    formats: list[DiscogsFormat] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    styles: list[str] = Field(default_factory=list)
    images: list[DiscogsImage] = Field(default_factory=list)
    thumb: str | None = None
    notes: str | None = None
    lowest_price: Decimal | None = None
    num_for_sale: int | None = None

    @field_validator("lowest_price", mode="before")
    @classmethod
    def parse_price(cls, v: Any) -> Decimal | None:
        return _parse_money(v)


class DiscogsMaster(BaseModel):
    """Master release detail from /masters/{id}."""
    id: int
    title: str = ""
    year: int | None = None
    main_release: int | None = None
    most_recent_release: int | None = None
    artists: list[DiscogsArtist] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    styles: list[str] = Field(default_factory=list)
    images: list[DiscogsImage] = Field(default_factory=list)
    lowest_price: Decimal | None = None
    num_for_sale: int | None = None

    @field_validator("lowest_price", mode="before")
    @classmethod
    def parse_price(cls, v: Any) -> Decimal | None:
        return _parse_money(v)


class BasicInformation(BaseModel):
    """Release summary embedded in a collection folder listing."""
    id: int
    title: str = ""
    year: int | None = None
    thumb: str | None = None
    cover_image: str | None = None
    artists: list[DiscogsArtist] = Field(default_factory=list)
    labels: list[DiscogsLabel] = Field(default_factory=list)
    formats: list[DiscogsFormat] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    styles: list[str] = Field(default_factory=list)


class CollectionItem(BaseModel):
    """One folder membership of a release (the same release may appear twice)."""
    id: int
    instance_id: int | None = None
    folder_id: int | None = None
    rating: int = 0
    date_added: str | None = None
    basic_information: BasicInformation


class Pagination(BaseModel):
    """Pagination envelope shared by all list endpoints."""
    page: int = 1
    pages: int = 1
    per_page: int = 50
    items: int = 0

    @property
    def has_more(self) -> bool:
        return self.page < self.pages


class CollectionPage(BaseModel):
    """Response from /users/{username}/collection/folders/{id}/releases."""
    pagination: Pagination = Field(default_factory=Pagination)
    releases: list[CollectionItem] = Field(default_factory=list)


class CollectionFolder(BaseModel):
    """A collection folder. Folder 0 ("All") holds every release."""
    id: int
    name: str = ""
    count: int = 0


class DiscogsUser(BaseModel):
    """Public profile from /users/{username}."""
    id: int | None = None
    username: str
    name: str | None = None
    num_collection: int = 0
    num_wantlist: int = 0


class PriceValue(BaseModel):
    """Amount + currency pair."""
    currency: str = "USD"
    value: Decimal

    @field_validator("value", mode="before")
    @classmethod
    def parse_value(cls, v: Any) -> Decimal:
        parsed = _parse_money(v)
        if parsed is None:
            raise ValueError(f"invalid price value {v!r}")
        return parsed


class MarketplaceStats(BaseModel):
    """Response from /marketplace/stats/{release_id}."""
    lowest_price: PriceValue | None = None
    num_for_sale: int | None = None
    blocked_from_sale: bool = False


class PriceSuggestions(RootModel[dict[str, PriceValue]]):
    """Response from /marketplace/price_suggestions/{release_id}, keyed by grade."""

    def for_grade(self, grade: str) -> PriceValue | None:
        return self.root.get(grade)


class MarketplaceListing(BaseModel):
    """A single marketplace listing."""
    id: int
    status: str | None = None
    condition: str | None = None
    sleeve_condition: str | None = None
    price: PriceValue | None = None
    ships_from: str | None = None


class SearchResult(BaseModel):
    """One hit from /database/search."""
    id: int
    type: str = "release"
    title: str = ""
    year: str | None = None
    country: str | None = None
    catno: str | None = None
    thumb: str | None = None
    cover_image: str | None = None
    format: list[str] = Field(default_factory=list)
    label: list[str] = Field(default_factory=list)
    genre: list[str] = Field(default_factory=list)
    style: list[str] = Field(default_factory=list)


class SearchPage(BaseModel):
    """Paginated response from /database/search."""
    pagination: Pagination = Field(default_factory=Pagination)
    results: list[SearchResult] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Client configuration
# ---------------------------------------------------------------------------


class DiscogsClientConfig(BaseModel):
    """
    Everything one DiscogsClient needs. Passed explicitly so independent
    clients (e.g. in tests) never share auth state.
    """
    base_url: str = "https://api.discogs.com"
    user_agent: str = "VinylSync/1.0"
    timeout: float = 30.0
    token: str | None = None
    username: str | None = None
    authenticated_rate_limit: int = 60
    metadata_ttl_seconds: int = 7 * 24 * 60 * 60
    price_ttl_seconds: int = 24 * 60 * 60

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> DiscogsClientConfig:
        config = config or settings
        return cls(
            base_url=config.DISCOGS_BASE_URL,
            user_agent=config.DISCOGS_USER_AGENT,
            timeout=config.DISCOGS_HTTP_TIMEOUT_SECONDS,
            token=config.DISCOGS_TOKEN or None,
            username=config.DISCOGS_USERNAME or None,
            authenticated_rate_limit=config.RATE_LIMIT_AUTHENTICATED_PER_MINUTE,
            metadata_ttl_seconds=config.METADATA_CACHE_TTL_SECONDS,
            price_ttl_seconds=config.PRICE_CACHE_TTL_SECONDS,
        )


# ---------------------------------------------------------------------------
# API Client
# ---------------------------------------------------------------------------


class DiscogsClient:
    """
    Async client for the Discogs API.

    Usage:
        async with DiscogsClient(DiscogsClientConfig.from_settings()) as client:
            client.authenticate(token, "username")
            page = await client.get_collection_releases("username", 0, page=1)
            release = await client.get_release(page.releases[0].id)
    """

    def __init__(
        self,
        config: DiscogsClientConfig | None = None,
        gate: RateLimitGate | None = None,
        metadata_cache: ResponseCache | None = None,
        price_cache: ResponseCache | None = None,
    ):
        self._config = config or DiscogsClientConfig()
        self._gate = gate or RateLimitGate()
        self._metadata_cache = metadata_cache or TTLCache(self._config.metadata_ttl_seconds)
        self._price_cache = price_cache or TTLCache(self._config.price_ttl_seconds)
        self._token: str | None = None
        self._username: str | None = None
        self._client: httpx.AsyncClient | None = None

        if self._config.token:
            self.authenticate(self._config.token, self._config.username or "")

    async def __aenter__(self) -> DiscogsClient:
        headers = {
            "User-Agent": self._config.user_agent,
            "Accept": "application/vnd.discogs.v2.discogs+json",
        }
        if self._token:
            headers["Authorization"] = f"Discogs token={self._token}"
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            headers=headers,
            timeout=self._config.timeout,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # -----------------------------------------------------------------------
    # Auth & introspection
    # -----------------------------------------------------------------------

    def authenticate(self, token: str, identity: str) -> None:
        """
        Attach a personal access token to every subsequent request.

        Authenticated callers get a higher rate budget.
        """
        self._token = token
        self._username = identity or None
        if self._client is not None:
            self._client.headers["Authorization"] = f"Discogs token={token}"
        self._gate.set_limit(self._config.authenticated_rate_limit)
        logger.info("discogs_authenticated", username=self._username)

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    @property
    def rate_limit_status(self) -> RateLimitStatus:
        return self._gate.status

    def _resolve_username(self, username: str | None) -> str:
        user = username or self._username
        if not user:
            raise ValueError("No Discogs username given and none set via authenticate()")
        return user

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET through the rate-limit gate and decode JSON with Decimal floats."""
        assert self._client is not None, "Client not initialized. Use 'async with'."
        client = self._client

        response = await self._gate.execute(
            lambda: client.get(path, params=params),
            path=path,
        )
        return response.json(parse_float=Decimal)

    # -----------------------------------------------------------------------
    # Users & collection
    # -----------------------------------------------------------------------

    async def get_user(self, username: str | None = None) -> DiscogsUser:
        user = self._resolve_username(username)
        cache_key = f"user:{user}"
        cached = self._metadata_cache.get(cache_key)
        if cached is not None:
            return cached

        data = await self._get(f"/users/{user}")
        profile = DiscogsUser.model_validate(data)
        self._metadata_cache.set(cache_key, profile)
        return profile

    async def get_collection_folders(self, username: str | None = None) -> list[CollectionFolder]:
        user = self._resolve_username(username)
        data = await self._get(f"/users/{user}/collection/folders")
        folders = [CollectionFolder.model_validate(f) for f in data.get("folders", [])]
        logger.debug("discogs_folders_fetched", username=user, folder_count=len(folders))
        return folders

    async def get_collection_releases(
        self,
        username: str | None = None,
        folder_id: int = 0,
        page: int = 1,
        per_page: int = MAX_PAGE_SIZE,
    ) -> CollectionPage:
        """
        Fetch one page of a collection folder, oldest additions last.

        Returns both the items and the pagination envelope so the caller can
        decide whether to continue.
        """
        user = self._resolve_username(username)
        per_page = max(1, min(per_page, MAX_PAGE_SIZE))

        data = await self._get(
            f"/users/{user}/collection/folders/{folder_id}/releases",
            params={
                "page": page,
                "per_page": per_page,
                "sort": "added",
                "sort_order": "desc",
            },
        )
        response = CollectionPage.model_validate(data)

        logger.debug(
            "discogs_collection_page",
            username=user,
            folder_id=folder_id,
            page=response.pagination.page,
            pages=response.pagination.pages,
            total=response.pagination.items,
            count=len(response.releases),
        )
        return response

    async def get_collection_value(self, username: str | None = None) -> Decimal | None:
        """Minimum collection value as reported by Discogs (e.g. "$1,234.56")."""
        user = self._resolve_username(username)
        data = await self._get(f"/users/{user}/collection/value")
        raw = str(data.get("minimum") or "")
        cleaned = "".join(ch for ch in raw if ch.isdigit() or ch == ".")
        return _parse_money(cleaned)

    # -----------------------------------------------------------------------
    # Database
    # -----------------------------------------------------------------------

    async def get_release(self, release_id: int) -> DiscogsRelease:
        cache_key = f"release:{release_id}"
        cached = self._metadata_cache.get(cache_key)
        if cached is not None:
            return cached

        data = await self._get(f"/releases/{release_id}")
        release = DiscogsRelease.model_validate(data)
        self._metadata_cache.set(cache_key, release)
        return release

    async def get_master(self, master_id: int) -> DiscogsMaster:
        cache_key = f"master:{master_id}"
        cached = self._metadata_cache.get(cache_key)
        if cached is not None:
            return cached

        data = await self._get(f"/masters/{master_id}")
        master = DiscogsMaster.model_validate(data)
        self._metadata_cache.set(cache_key, master)
        return master

    async def search_releases(
        self,
        query: str,
        page: int = 1,
        per_page: int = 50,
        **filters: str,
    ) -> SearchPage:
        """Search the Discogs database (artist=, label=, year=, format=, ...)."""
        params: dict[str, Any] = {"q": query, "type": "release", **filters}
        params["page"] = page
        params["per_page"] = max(1, min(per_page, MAX_PAGE_SIZE))
        data = await self._get("/database/search", params=params)
        return SearchPage.model_validate(data)

    # -----------------------------------------------------------------------
    # Marketplace
    # -----------------------------------------------------------------------

    async def get_price_suggestions(self, release_id: int) -> PriceSuggestions | None:
        """
        Suggested prices per condition grade.

        Returns None when Discogs has no suggestion for the release (404).
        """
        cache_key = f"price_suggestions:{release_id}"
        cached = self._price_cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            data = await self._get(f"/marketplace/price_suggestions/{release_id}")
        except DiscogsAPIError as e:
            if e.is_not_found:
                logger.debug("discogs_no_price_suggestions", release_id=release_id)
                return None
            raise

        suggestions = PriceSuggestions.model_validate(data or {})
        self._price_cache.set(cache_key, suggestions)
        return suggestions

    async def get_marketplace_stats(self, release_id: int) -> MarketplaceStats | None:
        """
        Lowest asking price and active listing count.

        Returns None when Discogs has no marketplace data for the release (404).
        """
        cache_key = f"stats:{release_id}"
        cached = self._price_cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            data = await self._get(f"/marketplace/stats/{release_id}")
        except DiscogsAPIError as e:
            if e.is_not_found:
                logger.debug("discogs_no_marketplace_stats", release_id=release_id)
                return None
            raise

        stats = MarketplaceStats.model_validate(data or {})
        self._price_cache.set(cache_key, stats)
        return stats

    async def get_marketplace_listings(self, release_id: int) -> list[MarketplaceListing]:
        data = await self._get("/marketplace/listings", params={"release_id": release_id})
        return [MarketplaceListing.model_validate(item) for item in data.get("listings", [])]
