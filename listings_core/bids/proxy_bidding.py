"""
Proxy bidding for auction listings.

Each bid records a hidden ceiling (``maximum_bid``). After any bid is placed
or raised the leading bid's visible amount is recalculated as one increment
above the runner-up's ceiling, capped at the leader's own ceiling. With a
single bid the listing's starting price stands in for the runner-up. Ties on
ceiling go to the earliest bid.
"""

import logging
from datetime import datetime
from typing import Optional

from listings_core.config import ListingConfig
from listings_core.error_handling import (
    ErrorHandler,
    NotFoundError,
    OperationResult,
    ValidationError,
)
from listings_core.models import BidStatus
from listings_core.status import is_active, utcnow
from listings_core.store import Repositories


logger = logging.getLogger(__name__)

DEFAULT_BID_INCREMENT = 5


def proxy_amount(leader_maximum: float, runner_up_maximum: float, increment: float) -> float:
    """Visible amount for the leading bid."""
    return min(leader_maximum, runner_up_maximum + increment)


class ProxyBidding:
    """Places and raises bids, keeping visible amounts consistent."""

    def __init__(self, repos: Repositories, default_increment: float = DEFAULT_BID_INCREMENT):
        self.repos = repos
        self.default_increment = default_increment
        self.error_handler = ErrorHandler("Failed to place bid")

    @classmethod
    def from_config(cls, repos: Repositories, config: ListingConfig) -> 'ProxyBidding':
        return cls(repos, default_increment=config.default_bid_increment)

    async def recalculate_proxy_bids(self, listing_id: str, increment: Optional[float] = None) -> Optional[float]:
        """
        Recompute the leading bid's visible amount and the listing's
        current bid. Returns the new visible amount, or None without bids.
        """
        increment = self.default_increment if increment is None else increment
        bids = await self.repos.bids.active_by_ceiling(listing_id)
        if not bids:
            logger.info(f"No active bids found for recalculation on {listing_id}")
            return None

        leader = bids[0]
        if len(bids) > 1:
            runner_up_maximum = bids[1].maximum_bid
        else:
            listing = await self.repos.listings.get(listing_id)
            runner_up_maximum = listing.price if listing else 0.0

        amount = proxy_amount(leader.maximum_bid, runner_up_maximum, increment)
        await self.repos.bids.update(leader.id, {"amount": amount})
        await self.repos.listings.update(listing_id, {
            "current_bid": amount,
            "highest_bidder_id": leader.user_id,
        })
        logger.info(
            f"Recalculated proxy bid on {listing_id}: leader={leader.user_id} amount={amount}"
        )
        return amount

    async def place_bid(
        self,
        listing_id: str,
        user_id: str,
        maximum_bid: float,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """Place a new bid or raise the caller's existing ceiling."""

        async def operation() -> OperationResult:
            listing = await self.repos.listings.get(listing_id)
            if listing is None:
                raise NotFoundError("Listing not found.")
            if not listing.is_auction:
                raise ValidationError("Bids can only be placed on auctions.")
            if not is_active(listing, now):
                raise ValidationError("This auction has ended.")
            if listing.seller_id == user_id:
                raise ValidationError("You cannot bid on your own listing.")

            if listing.current_bid is None:
                if maximum_bid < listing.price:
                    raise ValidationError(f"Your bid must be at least £{listing.price:,.2f}.")
            elif maximum_bid <= listing.current_bid:
                raise ValidationError(f"Your bid must be higher than £{listing.current_bid:,.2f}.")

            existing = await self.repos.bids.active_for_bidder(listing_id, user_id)
            timestamp = now or utcnow()
            if existing is not None:
                if maximum_bid <= existing.maximum_bid:
                    raise ValidationError("Your new maximum must exceed your current maximum.")
                await self.repos.bids.update(existing.id, {
                    "maximum_bid": maximum_bid,
                    "updated_at": timestamp,
                })
                bid_id = existing.id
                increment = existing.bid_increment
            else:
                bid = await self.repos.bids.insert({
                    "listing_id": listing_id,
                    "user_id": user_id,
                    "amount": maximum_bid,
                    "maximum_bid": maximum_bid,
                    "bid_increment": self.default_increment,
                    "status": BidStatus.ACTIVE.value,
                    "created_at": timestamp,
                })
                bid_id = bid.id
                increment = bid.bid_increment

            previous_leader = listing.highest_bidder_id
            await self.recalculate_proxy_bids(listing_id, increment)
            await self._notify_outbid(listing_id, previous_leader)
            return OperationResult.ok(record_id=bid_id)

        return await self.error_handler.run("place_bid", operation)

    async def update_bid(
        self,
        bid_id: str,
        user_id: str,
        maximum_bid: float,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """Raise the ceiling of one of the caller's active bids."""

        async def operation() -> OperationResult:
            bid = await self.repos.bids.get(bid_id)
            if bid is None:
                raise NotFoundError("Bid not found.")
            if bid.user_id != user_id:
                raise ValidationError("You can only update your own bids.")
            if bid.status != BidStatus.ACTIVE.value:
                raise ValidationError("Only active bids can be updated.")
            listing = await self.repos.listings.get(bid.listing_id)
            if listing is None or not is_active(listing, now):
                raise ValidationError("This auction has ended.")
            if maximum_bid <= bid.maximum_bid:
                raise ValidationError("Your new maximum must exceed your current maximum.")

            previous_leader = listing.highest_bidder_id
            await self.repos.bids.update(bid_id, {
                "maximum_bid": maximum_bid,
                "updated_at": now or utcnow(),
            })
            await self.recalculate_proxy_bids(bid.listing_id, bid.bid_increment)
            await self._notify_outbid(bid.listing_id, previous_leader)
            return OperationResult.ok(record_id=bid_id)

        return await self.error_handler.run("update_bid", operation)

    async def _notify_outbid(self, listing_id: str, previous_leader: Optional[str]) -> None:
        listing = await self.repos.listings.get(listing_id)
        if previous_leader and listing and listing.highest_bidder_id != previous_leader:
            await self.repos.notifications.insert(
                previous_leader,
                "outbid",
                "You have been outbid. Raise your maximum to stay in the lead.",
                {"listing_id": listing_id},
            )

    async def withdraw_bid(self, bid_id: str, user_id: str) -> OperationResult:
        """Withdraw the caller's active bid and recompute the leader."""

        async def operation() -> OperationResult:
            bid = await self.repos.bids.get(bid_id)
            if bid is None:
                raise NotFoundError("Bid not found.")
            if bid.user_id != user_id:
                raise ValidationError("You can only withdraw your own bids.")
            if bid.status != BidStatus.ACTIVE.value:
                raise ValidationError("Only active bids can be withdrawn.")
            await self.repos.bids.update(bid_id, {"status": BidStatus.WITHDRAWN.value})
            amount = await self.recalculate_proxy_bids(bid.listing_id, bid.bid_increment)
            if amount is None:
                await self.repos.listings.update(bid.listing_id, {
                    "current_bid": None,
                    "highest_bidder_id": None,
                })
            return OperationResult.ok(record_id=bid_id)

        return await self.error_handler.run("withdraw_bid", operation)
