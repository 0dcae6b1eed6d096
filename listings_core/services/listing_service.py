"""
Listing lifecycle service.

Seller-initiated ending and relisting, and the scheduled auction expiry job
that settles lapsed auctions.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from listings_core.config import ListingConfig
from listings_core.error_handling import (
    ErrorHandler,
    NotFoundError,
    OperationResult,
    ValidationError,
)
from listings_core.filtering import QueryDescriptor, eq, expired_clause
from listings_core.models import (
    BidStatus,
    Listing,
    ListingStatus,
    ListingType,
    OfferStatus,
)
from listings_core.status import effective_status, utcnow
from listings_core.store import Repositories


logger = logging.getLogger(__name__)

RELISTABLE_STATUSES = frozenset({
    ListingStatus.SOLD.value,
    ListingStatus.ENDED.value,
    ListingStatus.EXPIRED.value,
})

# Listing fields carried over to a relisted copy.
RELIST_FIELDS = (
    "seller_id", "title", "description", "category", "type", "price",
    "location", "condition", "images", "allow_best_offer", "reserve_price",
)


class ListingLifecycleService:
    """Ends, relists and expires listings."""

    def __init__(self, repos: Repositories, config: Optional[ListingConfig] = None):
        self.repos = repos
        self.config = config or ListingConfig()
        self.error_handler = ErrorHandler("There was an error updating the listing.")

    async def _owned_listing(self, listing_id: str, user_id: str) -> Listing:
        listing = await self.repos.listings.get(listing_id)
        if listing is None:
            raise NotFoundError("Listing not found.")
        if listing.seller_id != user_id:
            raise ValidationError("You are not authorized to modify this listing.")
        return listing

    async def end_listing(
        self,
        listing_id: str,
        user_id: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """End an active listing early. Only the seller may do this."""

        async def operation() -> OperationResult:
            listing = await self._owned_listing(listing_id, user_id)
            if listing.status != ListingStatus.ACTIVE.value:
                raise ValidationError("Only active listings can be ended.")
            await self.repos.listings.update(listing_id, {
                "status": ListingStatus.ENDED.value,
                "updated_at": now or utcnow(),
            })
            logger.info(f"Listing {listing_id} ended by seller (reason: {reason or 'none'})")
            return OperationResult.ok(record_id=listing_id)

        return await self.error_handler.run("end_listing", operation)

    async def relist_listing(
        self,
        listing_id: str,
        user_id: str,
        reason: str,
        additional_info: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """
        Relist a finished listing as a new active listing.

        The new listing records its lineage (original id, relist count and
        reason). The old listing is marked relisted and its remaining active
        bids are cancelled. The buyer of an accepted offer is notified.

        Returns:
            Result whose ``record_id`` is the new listing's id
        """

        async def operation() -> OperationResult:
            listing = await self._owned_listing(listing_id, user_id)
            timestamp = now or utcnow()
            if effective_status(listing, timestamp) not in RELISTABLE_STATUSES:
                raise ValidationError("Only sold, ended or expired listings can be relisted.")

            row = {name: getattr(listing, name) for name in RELIST_FIELDS}
            row.update({
                "status": ListingStatus.ACTIVE.value,
                "views": 0,
                "saves": 0,
                "created_at": timestamp,
                "updated_at": timestamp,
                "expires_at": timestamp + timedelta(days=self.config.default_duration_days),
                "original_listing_id": listing.original_listing_id or listing.id,
                "relist_count": listing.relist_count + 1,
                "relist_reason": reason,
                "relisted_at": timestamp,
            })
            relisted = await self.repos.listings.insert(row)

            await self.repos.listings.update(listing_id, {
                "status": ListingStatus.RELISTED.value,
                "updated_at": timestamp,
            })
            cancelled = await self.repos.bids.update_where(
                {"status": BidStatus.CANCELLED.value, "updated_at": timestamp},
                [eq("listing_id", listing_id), eq("status", BidStatus.ACTIVE.value)],
            )
            if cancelled:
                logger.info(f"Cancelled {len(cancelled)} active bids on relisted listing {listing_id}")

            for offer in await self.repos.offers.for_listing(listing_id):
                if offer.status == OfferStatus.ACCEPTED.value:
                    await self.repos.notifications.insert(
                        offer.user_id,
                        "listing_relisted",
                        f'The listing "{listing.title}" you purchased has been relisted by the seller. '
                        f'The reason provided is: {reason}',
                        {
                            "listing_id": listing_id,
                            "new_listing_id": relisted.id,
                            "reason": reason,
                            "additional_info": additional_info,
                        },
                    )

            logger.info(f"Listing {listing_id} relisted as {relisted.id}")
            return OperationResult.ok(record_id=relisted.id, data=relisted)

        return await self.error_handler.run("relist_listing", operation)

    async def expire_auctions(self, now: Optional[datetime] = None) -> OperationResult:
        """
        Settle every lapsed active auction.

        Auctions without active bids become expired. Otherwise the highest
        ceiling wins (earliest bid on ties): the winning bid is marked won,
        the others lost, and the listing sold to the winner at the winning
        bid's visible amount.

        Returns:
            Result whose ``data`` is the number of auctions processed
        """
        timestamp = now or utcnow()

        async def operation() -> OperationResult:
            query = QueryDescriptor(predicates=(
                eq("type", ListingType.AUCTION.value),
                expired_clause(timestamp),
            ))
            processed = 0
            for listing in await self.repos.listings.find(query):
                await self._settle_auction(listing, timestamp)
                processed += 1
            logger.info(f"Processed {processed} expired auctions")
            return OperationResult.ok(data=processed)

        return await self.error_handler.run("expire_auctions", operation)

    async def _settle_auction(self, listing: Listing, now: datetime) -> None:
        bids = await self.repos.bids.active_by_ceiling(listing.id)
        if not bids:
            await self.repos.listings.update(listing.id, {
                "status": ListingStatus.EXPIRED.value,
                "updated_at": now,
            })
            await self.repos.notifications.insert(
                listing.seller_id,
                "auction_ended_no_bids",
                f'Auction ended for "{listing.title}" with no bids.',
                {"listing_id": listing.id},
            )
            return

        winner, losers = bids[0], bids[1:]
        await self.repos.bids.update(winner.id, {"status": BidStatus.WON.value, "updated_at": now})
        for bid in losers:
            await self.repos.bids.update(bid.id, {"status": BidStatus.LOST.value, "updated_at": now})

        await self.repos.listings.update(listing.id, {
            "status": ListingStatus.SOLD.value,
            "sale_buyer_id": winner.user_id,
            "sale_amount": winner.amount,
            "sale_date": now,
            "updated_at": now,
        })
        await self.repos.notifications.insert(
            listing.seller_id,
            "auction_sold",
            f'Your auction "{listing.title}" was won for £{winner.amount:,.2f}.',
            {"listing_id": listing.id, "buyer_id": winner.user_id, "amount": winner.amount},
        )
        await self.repos.notifications.insert(
            winner.user_id,
            "auction_won",
            f'Congratulations! You won "{listing.title}" for £{winner.amount:,.2f}.',
            {"listing_id": listing.id, "seller_id": listing.seller_id, "amount": winner.amount},
        )
