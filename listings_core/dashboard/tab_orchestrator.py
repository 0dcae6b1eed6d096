"""
Dashboard listing tabs.

Coordinates which subset of a user's listings is shown for the active tab
(active, ended, sold, all) and view mode (buying, selling), and re-fetches
when the tab, the user or a listing mutation changes. Each fetch carries a
request token; responses for superseded tokens are discarded so rapid tab
switching never shows stale results.
"""

import itertools
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from listings_core.error_handling import RetryHandle, RetryScheduler, StoreError
from listings_core.filtering import (
    AllOf,
    AnyOf,
    Clause,
    Predicate,
    QueryDescriptor,
    eq,
    expired_clause,
    is_in,
)
from listings_core.models import Listing, ListingStatus, SoldListing
from listings_core.status import utcnow
from listings_core.store import Repositories


logger = logging.getLogger(__name__)


class DashboardTab(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"
    SOLD = "sold"
    ALL = "all"


class ViewMode(str, Enum):
    BUYING = "buying"
    SELLING = "selling"


ENDED_TAB_STATUSES = (
    ListingStatus.ENDED.value,
    ListingStatus.EXPIRED.value,
    ListingStatus.RELISTED.value,
)


def tab_predicates(tab: DashboardTab, now: Optional[datetime] = None) -> List[Clause]:
    """Status clauses for a dashboard tab.

    The ended tab includes lapsed active listings using the same expiry
    clause as the status deriver, excluding listings with a recorded buyer.
    """
    tab = DashboardTab(tab)
    if tab == DashboardTab.ACTIVE:
        return [eq("status", ListingStatus.ACTIVE.value)]
    if tab == DashboardTab.ENDED:
        return [AnyOf((
            is_in("status", ENDED_TAB_STATUSES),
            AllOf((expired_clause(now), Predicate("sale_buyer_id", "is_null", True))),
        ))]
    if tab == DashboardTab.SOLD:
        return [eq("status", ListingStatus.SOLD.value)]
    return []


class DashboardTabOrchestrator:
    """
    Fetches the listing subset for the current dashboard state.

    Attributes:
        user_id: Dashboard owner
        tab: Active tab
        view_mode: Buying or selling
        listings: Listings for the last applied response
        sold_items: Sold listings with buyer profiles (sold tab only)
        is_loading: Whether the latest request is in flight
        error: Message for the latest failed request
    """

    def __init__(
        self,
        repos: Repositories,
        user_id: str,
        tab: DashboardTab = DashboardTab.ACTIVE,
        view_mode: ViewMode = ViewMode.SELLING,
        retry_scheduler: Optional[RetryScheduler] = None,
        max_retries: int = 0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repos = repos
        self.user_id = user_id
        self.tab = DashboardTab(tab)
        self.view_mode = ViewMode(view_mode)
        self.retry_scheduler = retry_scheduler or RetryScheduler()
        self.max_retries = max_retries
        self.clock = clock

        self.listings: List[Listing] = []
        self.sold_items: List[SoldListing] = []
        self.is_loading = False
        self.error: Optional[str] = None
        self.last_retry: Optional[RetryHandle] = None
        self._tokens = itertools.count(1)
        self._current_token = 0

    @property
    def current_token(self) -> int:
        return self._current_token

    async def set_tab(self, tab: DashboardTab) -> bool:
        self.tab = DashboardTab(tab)
        return await self.refresh()

    async def set_view_mode(self, view_mode: ViewMode) -> bool:
        self.view_mode = ViewMode(view_mode)
        return await self.refresh()

    async def set_user(self, user_id: str) -> bool:
        self.user_id = user_id
        return await self.refresh()

    async def notify_mutation(self) -> bool:
        """Re-fetch after a listing was ended, relisted or otherwise changed."""
        return await self.refresh()

    async def _scope(self) -> List[Clause]:
        if self.view_mode == ViewMode.SELLING:
            return [eq("seller_id", self.user_id)]

        bid_ids = await self.repos.bids.listing_ids_for_bidder(self.user_id)
        offer_ids = await self.repos.offers.listing_ids_for_buyer(self.user_id)
        purchased = eq("sale_buyer_id", self.user_id)
        engaged = sorted(set(bid_ids) | set(offer_ids))
        if not engaged:
            return [purchased]
        return [AnyOf((is_in("id", engaged), purchased))]

    def build_query(self, scope: List[Clause], now: datetime) -> QueryDescriptor:
        return QueryDescriptor(
            predicates=tuple(scope) + tuple(tab_predicates(self.tab, now)),
        ).order_by("created_at")

    async def _fetch_sold(self, query: QueryDescriptor) -> List[SoldListing]:
        listings = await self.repos.listings.find(query)
        buyer_ids = [l.sale_buyer_id for l in listings if l.sale_buyer_id]
        try:
            buyers = await self.repos.profiles.buyers_by_id(buyer_ids)
        except StoreError as e:
            logger.warning(f"Could not fetch buyer profiles: {e}")
            buyers = {}
        return [
            SoldListing(listing=listing, buyer=buyers.get(listing.sale_buyer_id))
            for listing in listings
        ]

    async def refresh(self) -> bool:
        """
        Fetch the listings for the current state.

        Returns:
            True if this response was applied, False if it failed or was
            superseded by a newer request
        """
        token = next(self._tokens)
        self._current_token = token
        self.is_loading = True
        tab = self.tab
        now = self.clock()

        try:
            query = self.build_query(await self._scope(), now)
            if tab == DashboardTab.SOLD:
                sold_items = await self._fetch_sold(query)
                listings = [item.listing for item in sold_items]
            else:
                sold_items = []
                listings = await self.repos.listings.find(query)
        except StoreError as e:
            if token != self._current_token:
                logger.debug(f"Discarding failure for stale request {token}")
                return False
            logger.error(f"Error fetching user listings: {e}")
            self.error = "Failed to load listings."
            self.is_loading = False
            self._schedule_retry()
            return False

        if token != self._current_token:
            logger.info(f"Discarding stale response for request {token} (current {self._current_token})")
            return False

        self.listings = listings
        self.sold_items = sold_items
        self.error = None
        self.is_loading = False
        self.retry_scheduler.reset()
        logger.info(f"Loaded {len(listings)} listings for tab {tab.value} ({self.view_mode.value})")
        return True

    def _schedule_retry(self) -> None:
        if self.max_retries <= 0:
            return
        self.last_retry = self.retry_scheduler.schedule_retry(self.refresh, self.max_retries)

    def close(self) -> None:
        """Cancel pending retries; late responses are ignored afterwards."""
        self.retry_scheduler.cancel_all()
        self._current_token = next(self._tokens)
