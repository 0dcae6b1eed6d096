"""
Effective status derivation for listings.

The persisted ``status`` field is not authoritative for display: an "active"
listing whose expiry has passed is presented as "expired". Every view that
displays or gates on a listing's status goes through ``effective_status``.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from listings_core.models import Listing, ListingStatus


ENDED_STATUSES = frozenset({
    ListingStatus.SOLD.value,
    ListingStatus.EXPIRED.value,
    ListingStatus.ENDED.value,
})

ENDING_SOON_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class StatusBadge:
    """Presentation badge for a listing card.

    Attributes:
        color: Tailwind background class
        text: Badge label
        pulse: Whether the badge animates
    """
    color: str
    text: str
    pulse: bool = False


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_expired(listing: Listing, now: Optional[datetime] = None) -> bool:
    """True when the listing is persisted as active but its expiry has passed.

    This is the only definition of time-based expiry; the query-side
    equivalent is ``listings_core.filtering.expired_clause``. A listing whose
    ``expires_at`` equals ``now`` is not expired.
    """
    now = now or utcnow()
    return listing.status == ListingStatus.ACTIVE.value and listing.expires_at < now


def effective_status(listing: Listing, now: Optional[datetime] = None) -> str:
    """Return "expired" for lapsed active listings, else the persisted status."""
    if is_expired(listing, now):
        return ListingStatus.EXPIRED.value
    return listing.status


def is_active(listing: Listing, now: Optional[datetime] = None) -> bool:
    return effective_status(listing, now) == ListingStatus.ACTIVE.value


def is_ended(listing: Listing, now: Optional[datetime] = None) -> bool:
    return effective_status(listing, now) in ENDED_STATUSES


def can_end(listing: Listing, now: Optional[datetime] = None) -> bool:
    """A seller may end a listing only while it is effectively active."""
    return is_active(listing, now)


def badge_for(
    listing: Listing,
    now: Optional[datetime] = None,
    ending_soon_window: timedelta = ENDING_SOON_WINDOW,
) -> StatusBadge:
    """
    Map a listing's effective status to its card badge.

    Args:
        listing: Listing to describe
        now: Reference time (defaults to current UTC time)
        ending_soon_window: Remaining time below which an active listing is
            shown as "Ending Soon"

    Returns:
        StatusBadge with color, text and pulse flag
    """
    now = now or utcnow()
    status = effective_status(listing, now)

    if status == ListingStatus.SOLD.value:
        return StatusBadge(color="bg-green-600", text="Sold")
    if status in (ListingStatus.ENDED.value, ListingStatus.EXPIRED.value):
        return StatusBadge(color="bg-gray-500", text="Ended")
    if status == ListingStatus.ACTIVE.value:
        remaining = listing.expires_at - now
        if timedelta(0) <= remaining < ending_soon_window:
            return StatusBadge(color="bg-red-500", text="Ending Soon", pulse=True)
        return StatusBadge(color="bg-blue-500", text="Active")
    return StatusBadge(color="bg-gray-400", text=status[:1].upper() + status[1:])
