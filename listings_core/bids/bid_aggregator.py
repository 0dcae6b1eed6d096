"""
Per-listing bid aggregation.

Fetches, for a batch of listings, the highest active bid amount and the
number of active bids. Per-listing fetches run concurrently and are joined
with an all-or-fail barrier: if any fetch fails the whole call raises and
the previously published maps are left untouched.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from listings_core.models import Listing
from listings_core.realtime import ChangeEvent, ChangeFeed, ChangeFilter, Unsubscribe
from listings_core.store import BidRepository, Store
from listings_core.store.base import BIDS


logger = logging.getLogger(__name__)


@dataclass
class BidSummary:
    """Aggregated bid state for a set of listings.

    Attributes:
        highest_bids: Highest active bid per listing; only listings with at
            least one active bid appear
        bid_counts: Active bid count per listing; every requested listing
            appears, defaulting to 0
    """
    highest_bids: Dict[str, float] = field(default_factory=dict)
    bid_counts: Dict[str, int] = field(default_factory=dict)


class BidAggregator:
    """Aggregates highest bids and bid counts across listings.

    Attributes:
        highest_bids: Last successfully aggregated highest bids
        bid_counts: Last successfully aggregated bid counts
    """

    def __init__(self, bids: BidRepository):
        self.bids = bids
        self.highest_bids: Dict[str, float] = {}
        self.bid_counts: Dict[str, int] = {}

    @classmethod
    def for_store(cls, store: Store) -> 'BidAggregator':
        return cls(BidRepository(store))

    async def _fetch_one(self, listing_id: str) -> Tuple[str, Optional[float], int]:
        highest = await self.bids.highest_active_amount(listing_id)
        count = await self.bids.count_active(listing_id)
        return listing_id, highest, count or 0

    async def fetch(self, listing_ids: Iterable[str]) -> BidSummary:
        """
        Aggregate bids for every listing concurrently.

        Args:
            listing_ids: Listings to aggregate

        Returns:
            BidSummary for exactly the requested listings

        Raises:
            StoreError: If any per-listing fetch fails
        """
        ids = list(dict.fromkeys(listing_ids))
        if not ids:
            return BidSummary()

        logger.info(f"Fetching bids for {len(ids)} listings")
        try:
            results = await asyncio.gather(*(self._fetch_one(listing_id) for listing_id in ids))
        except Exception as e:
            logger.error(f"Error fetching bids for listings: {e}")
            raise

        summary = BidSummary()
        for listing_id, highest, count in results:
            if highest is not None:
                summary.highest_bids[listing_id] = highest
            summary.bid_counts[listing_id] = count

        self.highest_bids = summary.highest_bids
        self.bid_counts = summary.bid_counts
        logger.debug(f"Highest bids fetched: {summary.highest_bids}")
        return summary

    async def fetch_for_listings(self, listings: Iterable[Listing]) -> BidSummary:
        """Aggregate bids for the auction listings among ``listings``."""
        return await self.fetch(listing.id for listing in listings if listing.is_auction)

    def watch(self, listing_ids: Iterable[str], change_feed: ChangeFeed) -> Unsubscribe:
        """
        Re-aggregate whenever a bid on one of the listings changes.

        Returns:
            Callable removing the subscription
        """
        ids: List[str] = list(dict.fromkeys(listing_ids))
        watched = set(ids)

        async def on_change(change: ChangeEvent) -> None:
            if change.row.get("listing_id") in watched:
                logger.info(f"Realtime bid update for listing {change.row.get('listing_id')}")
                await self.fetch(ids)

        return change_feed.subscribe(ChangeFilter(table=BIDS), on_change)
