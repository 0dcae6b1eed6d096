"""Application configuration settings for the listing core."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
import os


@dataclass
class StoreConfig:
    """Backing store configuration.

    Without a database URL the in-memory store is used; without a Redis URL
    realtime changes are fanned out in-process.
    """
    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    pool_min_size: int = 2
    pool_max_size: int = 10


@dataclass
class ListingConfig:
    """Listing presentation and lifecycle configuration."""
    page_size: int = 9
    ending_soon_hours: int = 24
    default_duration_days: int = 7
    default_bid_increment: int = 5
    price_floor_sentinel: str = "0"
    price_ceiling_sentinel: str = "10000"

    @property
    def ending_soon_window(self) -> timedelta:
        return timedelta(hours=self.ending_soon_hours)


@dataclass
class RetryConfig:
    """Retry scheduling configuration."""
    max_retries: int = 3
    base_delay_ms: int = 1000


@dataclass
class ViewTrackingConfig:
    """View deduplication configuration."""
    dedupe_window_seconds: int = 3600


@dataclass
class AppSettings:
    """Main application settings."""
    log_level: str = "INFO"
    store: StoreConfig = None
    listings: ListingConfig = None
    retry: RetryConfig = None
    view_tracking: ViewTrackingConfig = None

    def __post_init__(self):
        """Initialize nested configs if not provided."""
        if self.store is None:
            self.store = StoreConfig()
        if self.listings is None:
            self.listings = ListingConfig()
        if self.retry is None:
            self.retry = RetryConfig()
        if self.view_tracking is None:
            self.view_tracking = ViewTrackingConfig()


# Default application configuration
APP_CONFIG = {
    "log_level": os.getenv("LOG_LEVEL", "INFO"),
    "store": {
        "database_url": os.getenv("DATABASE_URL") or None,
        "redis_url": os.getenv("REDIS_URL") or None,
        "pool_min_size": int(os.getenv("DB_POOL_MIN_SIZE", "2")),
        "pool_max_size": int(os.getenv("DB_POOL_MAX_SIZE", "10")),
    },
    "listings": {
        "page_size": int(os.getenv("PAGE_SIZE", "9")),
        "ending_soon_hours": int(os.getenv("ENDING_SOON_HOURS", "24")),
        "default_duration_days": int(os.getenv("LISTING_DURATION_DAYS", "7")),
        "default_bid_increment": int(os.getenv("BID_INCREMENT", "5")),
        "price_floor_sentinel": os.getenv("PRICE_FLOOR_SENTINEL", "0"),
        "price_ceiling_sentinel": os.getenv("PRICE_CEILING_SENTINEL", "10000"),
    },
    "retry": {
        "max_retries": int(os.getenv("MAX_RETRIES", "3")),
        "base_delay_ms": int(os.getenv("RETRY_BASE_DELAY_MS", "1000")),
    },
    "view_tracking": {
        "dedupe_window_seconds": int(os.getenv("VIEW_DEDUPE_WINDOW_SECONDS", "3600")),
    },
}


def get_app_settings() -> AppSettings:
    """Get application settings from configuration."""
    return AppSettings(
        log_level=APP_CONFIG["log_level"],
        store=StoreConfig(**APP_CONFIG["store"]),
        listings=ListingConfig(**APP_CONFIG["listings"]),
        retry=RetryConfig(**APP_CONFIG["retry"]),
        view_tracking=ViewTrackingConfig(**APP_CONFIG["view_tracking"]),
    )
