"""
Vinyl Sync — Configuration & Constants

Every rate limit, cache TTL, and default used by the Discogs import pipeline
lives here. No hardcoded values in business logic.

Usage:
    from vinylsync.config import settings
"""

from __future__ import annotations

from enum import Enum

from pydantic_settings import BaseSettings


class ConfigurationError(Exception):
    """Raised at startup when required configuration is missing."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class SyncMode(str, Enum):
    """How a reconciliation run treats records that already exist locally."""
    FULL_SYNC = "full"                    # insert new, refresh existing
    INSERT_ONLY = "new"                   # insert new, never touch existing
    PRICE_REFRESH_ONLY = "prices"         # refresh price fields on existing


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Central configuration for Vinyl Sync.

    Loads from environment variables (or a local .env file) with fallback
    defaults.
    """

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # -----------------------------------------------------------------------
    # Discogs account
    # -----------------------------------------------------------------------
    DISCOGS_TOKEN: str = ""
    DISCOGS_USERNAME: str = ""
    DISCOGS_FOLDER: str = "0"               # Folder id or name; 0 is "All"

    # -----------------------------------------------------------------------
    # Discogs HTTP
    # -----------------------------------------------------------------------
    DISCOGS_BASE_URL: str = "https://api.discogs.com"
    DISCOGS_USER_AGENT: str = "VinylSync/1.0 +https://github.com/vinylsync/vinylsync"
    DISCOGS_HTTP_TIMEOUT_SECONDS: float = 30.0

    # -----------------------------------------------------------------------
    # Rate limiting
    # Discogs reports the moving-window budget in X-Discogs-Ratelimit-* headers
    # -----------------------------------------------------------------------
    RATE_LIMIT_UNAUTHENTICATED_PER_MINUTE: int = 50
    RATE_LIMIT_AUTHENTICATED_PER_MINUTE: int = 60
    RATE_LIMIT_WINDOW_SECONDS: float = 60.0
    RATE_LIMIT_LOW_WATER_MARK: int = 5      # Idle until next window below this
    MIN_REQUEST_INTERVAL_SECONDS: float = 0.25  # ~4 req/sec ceiling
    RATE_LIMIT_COOLDOWN_SECONDS: float = 65.0   # Scaled by attempt number on 429
    SERVER_ERROR_BASE_BACKOFF_SECONDS: float = 1.0
    MAX_REQUEST_ATTEMPTS: int = 3

    # -----------------------------------------------------------------------
    # Response cache
    # -----------------------------------------------------------------------
    METADATA_CACHE_TTL_SECONDS: int = 7 * 24 * 60 * 60   # releases, masters, users
    PRICE_CACHE_TTL_SECONDS: int = 24 * 60 * 60          # suggestions, stats

    # -----------------------------------------------------------------------
    # Reconciliation
    # -----------------------------------------------------------------------
    SNAPSHOT_PATH: str = "data/vinyls.json"
    COLLECTION_PAGE_SIZE: int = 100
    CHECKPOINT_INTERVAL: int = 10
    FETCH_PRICE_SUGGESTIONS: bool = False   # Needs a Discogs seller profile

    # -----------------------------------------------------------------------
    # New record defaults
    # -----------------------------------------------------------------------
    DEFAULT_CURRENCY: str = "USD"
    DEFAULT_CONDITION: str = "Near Mint (NM)"
    DEFAULT_FORMAT: str = "LP"

    # -----------------------------------------------------------------------
    # Logging
    # -----------------------------------------------------------------------
    LOG_LEVEL: str = "INFO"


def require_credentials(config: Settings) -> tuple[str, str]:
    """
    Return (token, username), failing fast when either is missing.

    Called before any client is opened so a misconfigured run never reaches
    the network.

    Raises:
        ConfigurationError: If DISCOGS_TOKEN or DISCOGS_USERNAME is empty.
    """
    missing = [
        name
        for name, value in (
            ("DISCOGS_TOKEN", config.DISCOGS_TOKEN),
            ("DISCOGS_USERNAME", config.DISCOGS_USERNAME),
        )
        if not value.strip()
    ]
    if missing:
        raise ConfigurationError(
            f"Missing required configuration: {', '.join(missing)}. "
            "Set it in the environment or a .env file."
        )
    return config.DISCOGS_TOKEN.strip(), config.DISCOGS_USERNAME.strip()


# Singleton instance
settings = Settings()
