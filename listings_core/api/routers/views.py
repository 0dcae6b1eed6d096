"""
View tracking route.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from listings_core.config import AppSettings
from listings_core.error_handling import NotFoundError, StoreError
from listings_core.services import ViewTracker
from listings_core.store import Repositories
from ..dependencies import get_repos, get_settings, optional_user
from ..schemas import TrackViewRequest, TrackViewResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/track-listing-view", response_model=TrackViewResponse)
async def track_listing_view(
    body: TrackViewRequest,
    user_id: Optional[str] = Depends(optional_user),
    x_forwarded_for: Optional[str] = Header(None),
    x_real_ip: Optional[str] = Header(None),
    user_agent: Optional[str] = Header(None),
    repos: Repositories = Depends(get_repos),
    settings: AppSettings = Depends(get_settings),
):
    """Count a listing view, at most once per viewer per hour."""
    ip_address = x_forwarded_for or x_real_ip
    tracker = ViewTracker(repos, settings.view_tracking)
    try:
        result = await tracker.track_view(body.listing_id, user_id, ip_address, user_agent)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreError as e:
        logger.error(f"Failed to track view on {body.listing_id}: {e}")
        raise HTTPException(status_code=500, detail="Unexpected Error")
    return TrackViewResponse(counted=result.counted, views=result.views)
