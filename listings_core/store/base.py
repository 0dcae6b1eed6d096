"""
Backing store interfaces.

A ``Store`` exposes named ``Table`` objects supporting select, insert,
update, count and atomic increment, plus the realtime ``ChangeFeed`` its
writes are published to. Entity repositories in ``repositories`` are built
on top of these.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

from listings_core.filtering import Clause, QueryDescriptor
from listings_core.realtime import ChangeFeed


LISTINGS = "listings"
BIDS = "bids"
OFFERS = "offers"
FEEDBACK = "feedback"
VERIFICATION_REQUESTS = "verification_requests"
PROFILES = "profiles"
NOTIFICATIONS = "notifications"
LISTING_VIEWS = "listing_views"

TABLES = (
    LISTINGS,
    BIDS,
    OFFERS,
    FEEDBACK,
    VERIFICATION_REQUESTS,
    PROFILES,
    NOTIFICATIONS,
    LISTING_VIEWS,
)

# Unique keys enforced by the store, surfaced as StoreError code 23505
UNIQUE_KEYS = {
    FEEDBACK: [("from_user_id", "listing_id")],
}

Row = Dict[str, Any]


class Table(ABC):
    """A single table of rows. Every method raises StoreError on failure."""

    name: str

    @abstractmethod
    async def select(self, query: QueryDescriptor) -> List[Row]:
        """Return rows matching the query, sorted and windowed."""

    @abstractmethod
    async def insert(self, row: Row) -> Row:
        """Insert a row and return it as stored (with generated fields)."""

    @abstractmethod
    async def update(self, values: Row, predicates: Sequence[Clause]) -> List[Row]:
        """Apply ``values`` to every matching row; return the updated rows."""

    @abstractmethod
    async def count(self, predicates: Sequence[Clause]) -> int:
        """Count rows matching every predicate."""

    @abstractmethod
    async def increment(self, column: str, predicates: Sequence[Clause], amount: int = 1) -> List[Row]:
        """Atomically add ``amount`` to a numeric column on matching rows."""


class Store(ABC):
    """A collection of tables plus the change feed writes are published to."""

    change_feed: ChangeFeed

    @abstractmethod
    def table(self, name: str) -> Table:
        """Return the named table."""

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        await self.change_feed.close()
