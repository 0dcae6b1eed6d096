"""
Storage module for the listing core.

Provides the store interfaces, in-memory and PostgreSQL implementations,
and the per-entity repositories built on them.
"""

from .base import Store, Table, TABLES, UNIQUE_KEYS
from .memory import InMemoryStore, InMemoryTable
from .postgres import PostgresStore, compile_select
from .repositories import (
    Repositories,
    ListingRepository,
    BidRepository,
    OfferRepository,
    FeedbackRepository,
    VerificationRepository,
    ProfileRepository,
    NotificationRepository,
    ListingViewRepository,
)
from .factory import create_store, create_change_feed

__all__ = [
    'Store',
    'Table',
    'TABLES',
    'UNIQUE_KEYS',
    'InMemoryStore',
    'InMemoryTable',
    'PostgresStore',
    'compile_select',
    'Repositories',
    'ListingRepository',
    'BidRepository',
    'OfferRepository',
    'FeedbackRepository',
    'VerificationRepository',
    'ProfileRepository',
    'NotificationRepository',
    'ListingViewRepository',
    'create_store',
    'create_change_feed',
]
