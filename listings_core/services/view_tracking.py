"""
Listing view counting with per-viewer deduplication.

A view is counted at most once per viewer per window. Viewers are
identified by user id when signed in, otherwise by IP address.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from listings_core.config import ViewTrackingConfig
from listings_core.error_handling import NotFoundError
from listings_core.status import utcnow
from listings_core.store import Repositories


logger = logging.getLogger(__name__)


@dataclass
class ViewResult:
    counted: bool
    views: int

    def to_dict(self) -> dict:
        return {"counted": self.counted, "views": self.views}


class ViewTracker:

    def __init__(self, repos: Repositories, config: Optional[ViewTrackingConfig] = None):
        self.repos = repos
        self.config = config or ViewTrackingConfig()

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.config.dedupe_window_seconds)

    async def _current_views(self, listing_id: str) -> int:
        row = await self.repos.listings.get_row(listing_id)
        if row is None:
            raise NotFoundError("Listing not found.")
        return int(row.get("views") or 0)

    async def track_view(
        self,
        listing_id: str,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ViewResult:
        """
        Record a view unless this viewer was counted within the window.

        Raises:
            NotFoundError: If the listing does not exist
            StoreError: On store failure
        """
        now = now or utcnow()
        current = await self._current_views(listing_id)

        recent = await self.repos.listing_views.count_recent(
            listing_id, now - self.window, user_id=user_id, ip_address=ip_address
        )
        if recent > 0:
            logger.debug(f"View on {listing_id} already counted within window")
            return ViewResult(counted=False, views=current)

        await self.repos.listing_views.insert({
            "listing_id": listing_id,
            "user_id": user_id,
            "ip_address": ip_address,
            "user_agent": user_agent,
            "viewed_at": now,
        })
        views = await self.repos.listings.increment_views(listing_id)
        return ViewResult(counted=True, views=views)
