"""
Listing browse and lifecycle routes.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from listings_core.bids import BidAggregator, ProxyBidding
from listings_core.config import AppSettings
from listings_core.error_handling import StoreError
from listings_core.filtering import FilterOptions, ListingFilter, get_page_range
from listings_core.services import ListingLifecycleService
from listings_core.status import utcnow
from listings_core.store import Repositories
from ..dependencies import get_repos, get_settings, raise_for_result, require_user
from ..schemas import (
    EndListingRequest,
    ListingPage,
    ListingResponse,
    OperationResponse,
    PlaceBidRequest,
    RelistRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/listings", response_model=ListingPage)
async def browse_listings(
    category: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    condition: Optional[str] = Query(None, description="Condition key, e.g. like_new"),
    min_price: Optional[str] = Query(None),
    max_price: Optional[str] = Query(None),
    allow_best_offer: Optional[str] = Query(None),
    search_term: Optional[str] = Query(None),
    show_completed: Optional[str] = Query(None),
    sort_by: str = Query("newest"),
    page: str = Query("1"),
    repos: Repositories = Depends(get_repos),
    settings: AppSettings = Depends(get_settings),
):
    """
    Browse listings with filters, sorting and pagination.

    Auction listings are enriched with their highest active bid and active
    bid count.
    """
    now = utcnow()
    filters = FilterOptions(
        category=category,
        type=type,
        location=location,
        condition=condition,
        min_price=min_price,
        max_price=max_price,
        allow_best_offer=allow_best_offer,
        search_term=search_term,
        show_completed=show_completed,
    )
    listing_filter = ListingFilter(
        settings.listings.price_floor_sentinel,
        settings.listings.price_ceiling_sentinel,
    )
    query = listing_filter.build_query(filters, sort_by, page, settings.listings.page_size, now)

    try:
        listings = await repos.listings.find(query)
        summary = await BidAggregator(repos.bids).fetch_for_listings(listings)
    except StoreError as e:
        logger.error(f"Failed to browse listings: {e}")
        raise HTTPException(status_code=503, detail="Failed to load listings.")

    page_range = get_page_range(page, settings.listings.page_size)
    return ListingPage(
        listings=[
            ListingResponse.from_listing(
                listing,
                now,
                highest_bid=summary.highest_bids.get(listing.id),
                bid_count=summary.bid_counts.get(listing.id),
                ending_soon_window=settings.listings.ending_soon_window,
            )
            for listing in listings
        ],
        page=page_range.start // settings.listings.page_size + 1,
        page_size=settings.listings.page_size,
    )


@router.post("/listings/{listing_id}/end", response_model=OperationResponse)
async def end_listing(
    listing_id: str,
    body: Optional[EndListingRequest] = None,
    user_id: str = Depends(require_user),
    repos: Repositories = Depends(get_repos),
    settings: AppSettings = Depends(get_settings),
):
    """End an active listing early (seller only)."""
    service = ListingLifecycleService(repos, settings.listings)
    result = await service.end_listing(listing_id, user_id, reason=body.reason if body else None)
    raise_for_result(result)
    return OperationResponse(success=True, record_id=result.record_id)


@router.post("/listings/{listing_id}/relist", response_model=OperationResponse)
async def relist_listing(
    listing_id: str,
    body: RelistRequest,
    user_id: str = Depends(require_user),
    repos: Repositories = Depends(get_repos),
    settings: AppSettings = Depends(get_settings),
):
    """Relist a finished listing; returns the new listing's id."""
    service = ListingLifecycleService(repos, settings.listings)
    result = await service.relist_listing(listing_id, user_id, body.reason, body.additional_info)
    raise_for_result(result)
    return OperationResponse(success=True, record_id=result.record_id)


@router.post("/listings/{listing_id}/bids", response_model=OperationResponse)
async def place_bid(
    listing_id: str,
    body: PlaceBidRequest,
    user_id: str = Depends(require_user),
    repos: Repositories = Depends(get_repos),
    settings: AppSettings = Depends(get_settings),
):
    """Place a proxy bid, or raise the caller's ceiling, on an auction."""
    bidding = ProxyBidding.from_config(repos, settings.listings)
    result = await bidding.place_bid(listing_id, user_id, body.maximum_bid)
    raise_for_result(result)
    return OperationResponse(success=True, record_id=result.record_id)
