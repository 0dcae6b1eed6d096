"""
Dashboard routes.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from listings_core.config import AppSettings
from listings_core.dashboard import DashboardTab, DashboardTabOrchestrator, ViewMode
from listings_core.error_handling import RetryScheduler
from listings_core.status import utcnow
from listings_core.store import Repositories
from ..dependencies import get_repos, get_settings, require_user
from ..schemas import DashboardItem, DashboardResponse, ListingResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/dashboard/listings", response_model=DashboardResponse)
async def dashboard_listings(
    tab: DashboardTab = Query(DashboardTab.ACTIVE),
    view_mode: ViewMode = Query(ViewMode.SELLING),
    user_id: str = Depends(require_user),
    repos: Repositories = Depends(get_repos),
    settings: AppSettings = Depends(get_settings),
):
    """
    The caller's listings for one dashboard tab, newest first.

    Transient store failures are retried with backoff up to the configured
    ceiling before the request fails.
    """
    orchestrator = DashboardTabOrchestrator(
        repos,
        user_id,
        tab,
        view_mode,
        retry_scheduler=RetryScheduler(settings.retry.base_delay_ms),
        max_retries=settings.retry.max_retries,
    )
    try:
        await orchestrator.refresh()
        # Each failed retry schedules the next until the ceiling is reached
        while orchestrator.error and orchestrator.last_retry is not None and not orchestrator.last_retry.done:
            await orchestrator.last_retry
    finally:
        orchestrator.close()

    if orchestrator.error:
        raise HTTPException(status_code=503, detail=orchestrator.error)

    now = utcnow()
    window = settings.listings.ending_soon_window
    if tab == DashboardTab.SOLD:
        items = [DashboardItem.from_sold(item, now, window) for item in orchestrator.sold_items]
    else:
        items = [
            DashboardItem(listing=ListingResponse.from_listing(l, now, ending_soon_window=window))
            for l in orchestrator.listings
        ]
    return DashboardResponse(tab=tab.value, view_mode=view_mode.value, items=items)
