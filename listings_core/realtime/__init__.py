"""Realtime change notification module."""

from .change_feed import (
    ChangeEvent,
    ChangeFilter,
    ChangeFeed,
    ChangeHandler,
    Unsubscribe,
    InMemoryChangeFeed,
    RedisChangeFeed,
)

__all__ = [
    'ChangeEvent',
    'ChangeFilter',
    'ChangeFeed',
    'ChangeHandler',
    'Unsubscribe',
    'InMemoryChangeFeed',
    'RedisChangeFeed',
]
