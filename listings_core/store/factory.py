"""Store construction from application settings."""

import logging

from listings_core.config import StoreConfig
from listings_core.realtime import ChangeFeed, InMemoryChangeFeed, RedisChangeFeed
from .base import Store
from .memory import InMemoryStore
from .postgres import PostgresStore


logger = logging.getLogger(__name__)


def create_change_feed(config: StoreConfig) -> ChangeFeed:
    if config.redis_url:
        logger.info("Using Redis change feed")
        return RedisChangeFeed.from_url(config.redis_url)
    return InMemoryChangeFeed()


def create_store(config: StoreConfig) -> Store:
    """PostgreSQL when a database URL is configured, otherwise in-memory."""
    change_feed = create_change_feed(config)
    if config.database_url:
        logger.info("Using PostgreSQL store")
        return PostgresStore(
            config.database_url,
            change_feed=change_feed,
            min_size=config.pool_min_size,
            max_size=config.pool_max_size,
        )
    logger.warning("DATABASE_URL not set; using in-memory store")
    return InMemoryStore(change_feed=change_feed)
