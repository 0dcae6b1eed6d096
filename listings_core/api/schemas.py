"""API request and response models"""

from datetime import datetime, timedelta
from typing import List, Optional

from pydantic import BaseModel, Field

from listings_core.models import Listing, SoldListing
from listings_core.status import ENDING_SOON_WINDOW, badge_for, effective_status


class BadgeResponse(BaseModel):
    color: str
    text: str
    pulse: bool = False


class ListingResponse(BaseModel):
    """Listing as presented on cards, with derived status"""
    id: str
    seller_id: str
    title: str
    description: str
    category: str
    type: str
    price: float
    location: str
    condition: str
    images: List[str] = []
    allow_best_offer: bool
    status: str
    effective_status: str
    badge: BadgeResponse
    expires_at: datetime
    created_at: datetime
    updated_at: datetime
    views: int = 0
    saves: int = 0
    current_bid: Optional[float] = None
    highest_bid: Optional[float] = None
    bid_count: Optional[int] = None
    sale_date: Optional[datetime] = None
    sale_amount: Optional[float] = None
    sale_buyer_id: Optional[str] = None
    original_listing_id: Optional[str] = None
    relist_count: int = 0

    @classmethod
    def from_listing(
        cls,
        listing: Listing,
        now: datetime,
        highest_bid: Optional[float] = None,
        bid_count: Optional[int] = None,
        ending_soon_window: timedelta = ENDING_SOON_WINDOW,
    ) -> 'ListingResponse':
        badge = badge_for(listing, now, ending_soon_window)
        return cls(
            id=listing.id,
            seller_id=listing.seller_id,
            title=listing.title,
            description=listing.description,
            category=listing.category,
            type=listing.type,
            price=listing.price,
            location=listing.location,
            condition=listing.condition,
            images=listing.images,
            allow_best_offer=listing.allow_best_offer,
            status=listing.status,
            effective_status=effective_status(listing, now),
            badge=BadgeResponse(color=badge.color, text=badge.text, pulse=badge.pulse),
            expires_at=listing.expires_at,
            created_at=listing.created_at,
            updated_at=listing.updated_at,
            views=listing.views,
            saves=listing.saves,
            current_bid=listing.current_bid,
            highest_bid=highest_bid,
            bid_count=bid_count,
            sale_date=listing.sale_date,
            sale_amount=listing.sale_amount,
            sale_buyer_id=listing.sale_buyer_id,
            original_listing_id=listing.original_listing_id,
            relist_count=listing.relist_count,
        )


class ListingPage(BaseModel):
    listings: List[ListingResponse]
    page: int
    page_size: int


class BuyerResponse(BaseModel):
    id: str
    name: str
    avatar: Optional[str] = None


class DashboardItem(BaseModel):
    listing: ListingResponse
    buyer: Optional[BuyerResponse] = None

    @classmethod
    def from_sold(
        cls,
        item: SoldListing,
        now: datetime,
        ending_soon_window: timedelta = ENDING_SOON_WINDOW,
    ) -> 'DashboardItem':
        buyer = None
        if item.buyer is not None:
            buyer = BuyerResponse(id=item.buyer.id, name=item.buyer.name, avatar=item.buyer.avatar)
        return cls(
            listing=ListingResponse.from_listing(item.listing, now, ending_soon_window=ending_soon_window),
            buyer=buyer,
        )


class DashboardResponse(BaseModel):
    tab: str
    view_mode: str
    items: List[DashboardItem]


class EndListingRequest(BaseModel):
    reason: Optional[str] = None
    additional_info: Optional[str] = Field(None, max_length=400)


class RelistRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    additional_info: Optional[str] = Field(None, max_length=500)


class PlaceBidRequest(BaseModel):
    maximum_bid: float = Field(..., gt=0)


class OperationResponse(BaseModel):
    success: bool
    record_id: Optional[str] = None


class TrackViewRequest(BaseModel):
    listing_id: str = Field(..., alias="listingId")

    class Config:
        populate_by_name = True


class TrackViewResponse(BaseModel):
    counted: bool
    views: int
