"""
Data models for the marketplace listing core.

This module defines the view-model data structures used throughout the
application. Persisted rows (snake_case dicts with string timestamps) are
converted into these by ``listings_core.transform``.
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ListingStatus(str, Enum):
    """Persisted listing status values."""
    ACTIVE = "active"
    ENDED = "ended"
    EXPIRED = "expired"
    SOLD = "sold"
    RELISTED = "relisted"


class ListingType(str, Enum):
    AUCTION = "auction"
    SALE = "sale"


class BidStatus(str, Enum):
    """Bid status values.

    WON, LOST and CANCELLED are written by auction expiry and relisting.
    """
    ACTIVE = "active"
    OUTBID = "outbid"
    WITHDRAWN = "withdrawn"
    WON = "won"
    LOST = "lost"
    CANCELLED = "cancelled"


class OfferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    AUTO_DECLINED = "auto_declined"


class VerificationLevel(str, Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    TRADER = "trader"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


MAX_LISTING_IMAGES = 10
MAX_FEEDBACK_COMMENT_LENGTH = 512


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def to_camel_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a snake_case dict to camelCase keys with JSON-safe values."""
    return {_camel(key): _serialize(value) for key, value in data.items()}


@dataclass
class Listing:
    """Represents a marketplace listing.

    Attributes:
        id: Unique listing identifier
        seller_id: Reference to the selling user
        title: Listing title
        description: Free-text description
        category: Category name
        type: "auction" or "sale"
        price: Asking price (starting price for auctions)
        location: Seller location
        condition: Display condition ("New", "Like New", ...)
        images: Image references, at most ten
        allow_best_offer: Whether buyers may send offers
        status: Persisted status; use ``effective_status`` for display
        expires_at: Expiry timestamp
        created_at: Creation timestamp
        updated_at: Last update timestamp
        views: View counter
        saves: Watch-list counter
    """
    id: str
    seller_id: str
    title: str
    description: str
    category: str
    type: str
    price: float
    location: str
    condition: str
    images: List[str]
    allow_best_offer: bool
    status: str
    expires_at: datetime
    created_at: datetime
    updated_at: datetime
    views: int = 0
    saves: int = 0
    reserve_price: Optional[float] = None
    current_bid: Optional[float] = None
    highest_bidder_id: Optional[str] = None
    sale_date: Optional[datetime] = None
    sale_amount: Optional[float] = None
    sale_buyer_id: Optional[str] = None
    original_listing_id: Optional[str] = None
    relist_count: int = 0
    relist_reason: Optional[str] = None
    relisted_at: Optional[datetime] = None

    @property
    def is_auction(self) -> bool:
        return self.type == ListingType.AUCTION.value

    def to_dict(self) -> dict:
        """Convert listing to a camelCase dictionary for JSON serialization."""
        return to_camel_dict(asdict(self))


@dataclass
class Bid:
    """A bid on an auction listing.

    ``amount`` is the visible amount; ``maximum_bid`` is the bidder's
    hidden proxy ceiling.
    """
    id: str
    user_id: str
    listing_id: str
    amount: float
    maximum_bid: float
    bid_increment: float
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return to_camel_dict(asdict(self))


@dataclass
class Offer:
    """A best offer made by a buyer on a fixed-price listing."""
    id: str
    user_id: str
    listing_id: str
    amount: float
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return to_camel_dict(asdict(self))


@dataclass
class Feedback:
    id: str
    from_user_id: str
    to_user_id: str
    listing_id: str
    rating: int
    created_at: datetime
    comment: Optional[str] = None

    def to_dict(self) -> dict:
        return to_camel_dict(asdict(self))


@dataclass
class VerificationRequest:
    """A user's request to move up a verification tier."""
    id: str
    user_id: str
    request_type: str
    status: str
    requested_at: datetime
    documents: List[str] = field(default_factory=list)
    document_status: Optional[str] = None
    payment_status: Optional[str] = None
    message: Optional[str] = None
    business_name: Optional[str] = None
    business_registration: Optional[str] = None
    trading_experience: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    admin_notes: Optional[str] = None

    def to_dict(self) -> dict:
        return to_camel_dict(asdict(self))


@dataclass
class Notification:
    id: str
    user_id: str
    type: str
    message: str
    is_read: bool
    created_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BuyerProfile:
    """Buyer details joined onto sold listings."""
    id: str
    name: str
    avatar: Optional[str] = None


@dataclass
class SoldListing:
    """A sold listing with its buyer profile attached."""
    listing: Listing
    buyer: Optional[BuyerProfile] = None
