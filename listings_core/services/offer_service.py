"""
Best-offer negotiation on fixed-price listings.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from listings_core.error_handling import (
    ErrorHandler,
    NotFoundError,
    OperationResult,
    ValidationError,
)
from listings_core.filtering import Predicate, eq
from listings_core.models import ListingStatus, Offer, OfferStatus
from listings_core.status import is_active, utcnow
from listings_core.store import Repositories


logger = logging.getLogger(__name__)

RESPONSE_STATUSES = (OfferStatus.ACCEPTED.value, OfferStatus.DECLINED.value)


@dataclass
class UserOfferStatus:
    """A buyer's standing on one listing's offers.

    Attributes:
        has_pending_offer: Whether the buyer has an offer awaiting a response
        latest_offer: The buyer's first offer in the given ordering
    """
    has_pending_offer: bool = False
    latest_offer: Optional[Offer] = None


def user_offer_status(offers: List[Offer], user_id: Optional[str]) -> UserOfferStatus:
    """Summarise a user's offers from a newest-first offer list."""
    if not user_id or not offers:
        return UserOfferStatus()
    mine = [offer for offer in offers if offer.user_id == user_id]
    return UserOfferStatus(
        has_pending_offer=any(offer.status == OfferStatus.PENDING.value for offer in mine),
        latest_offer=mine[0] if mine else None,
    )


class OfferService:
    """Creates offers and records the seller's responses."""

    def __init__(self, repos: Repositories):
        self.repos = repos
        self.error_handler = ErrorHandler("Failed to submit offer. Please try again.")

    async def make_offer(
        self,
        listing_id: str,
        user_id: str,
        amount: float,
        message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        async def operation() -> OperationResult:
            listing = await self.repos.listings.get(listing_id)
            if listing is None:
                raise NotFoundError("Listing not found.")
            if not listing.allow_best_offer:
                raise ValidationError("This listing does not accept offers.")
            if not is_active(listing, now):
                raise ValidationError("This listing is no longer active.")
            if listing.seller_id == user_id:
                raise ValidationError("You cannot make an offer on your own listing.")
            if amount <= 0:
                raise ValidationError("Offer amount must be greater than zero.")
            if await self.repos.offers.pending_for(listing_id, user_id):
                raise ValidationError("You already have a pending offer on this listing.")

            offer = await self.repos.offers.insert({
                "listing_id": listing_id,
                "user_id": user_id,
                "amount": amount,
                "message": message,
                "status": OfferStatus.PENDING.value,
                "created_at": now or utcnow(),
            })
            await self.repos.notifications.insert(
                listing.seller_id,
                "new_offer",
                f'New offer of £{amount:,.2f} on your listing "{listing.title}"',
                {
                    "listing_id": listing_id,
                    "listing_title": listing.title,
                    "offer_amount": amount,
                    "offerer_id": user_id,
                },
            )
            logger.info(f"Offer {offer.id} of {amount} placed on {listing_id}")
            return OperationResult.ok(record_id=offer.id, data=offer)

        return await self.error_handler.run("make_offer", operation)

    async def respond_to_offer(
        self,
        offer_id: str,
        user_id: str,
        status: str,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """
        Accept or decline a pending offer.

        Accepting sells the listing to the offerer and auto-declines every
        other pending offer on it, notifying those buyers.
        """

        async def operation() -> OperationResult:
            if status not in RESPONSE_STATUSES:
                raise ValidationError(f"Invalid offer response: {status}")
            offer = await self.repos.offers.get(offer_id)
            if offer is None:
                raise NotFoundError("Offer not found.")
            listing = await self.repos.listings.get(offer.listing_id)
            if listing is None:
                raise NotFoundError("Listing not found.")
            if listing.seller_id != user_id:
                raise ValidationError("Only the seller can respond to offers.")
            if offer.status != OfferStatus.PENDING.value:
                raise ValidationError("This offer has already been answered.")

            timestamp = now or utcnow()
            await self.repos.offers.update(offer_id, {"status": status, "updated_at": timestamp})

            if status == OfferStatus.ACCEPTED.value:
                await self.repos.listings.update(listing.id, {
                    "status": ListingStatus.SOLD.value,
                    "sale_buyer_id": offer.user_id,
                    "sale_amount": offer.amount,
                    "sale_date": timestamp,
                    "updated_at": timestamp,
                })
                declined = await self.repos.offers.update_where(
                    {"status": OfferStatus.AUTO_DECLINED.value, "updated_at": timestamp},
                    [
                        eq("listing_id", listing.id),
                        eq("status", OfferStatus.PENDING.value),
                        Predicate("id", "neq", offer_id),
                    ],
                )
                for other in declined:
                    if other.user_id == offer.user_id:
                        continue
                    await self.repos.notifications.insert(
                        other.user_id,
                        "offer_auto_declined",
                        f'Your offer on "{listing.title}" was declined because another offer was accepted.',
                        {
                            "listing_id": listing.id,
                            "listing_title": listing.title,
                            "status": OfferStatus.DECLINED.value,
                            "reason": "another_offer_accepted",
                        },
                    )

            await self.repos.notifications.insert(
                offer.user_id,
                f"offer_{status}",
                f'Your offer of £{offer.amount:,.2f} for "{listing.title}" was {status}.',
                {
                    "listing_id": listing.id,
                    "listing_title": listing.title,
                    "offer_id": offer_id,
                    "offer_amount": offer.amount,
                    "status": status,
                },
            )
            logger.info(f"Offer {offer_id} {status} by seller {user_id}")
            return OperationResult.ok(record_id=offer_id)

        return await self.error_handler.run(
            "respond_to_offer", operation, failure_message=f"Failed to {status} offer. Please try again."
        )
