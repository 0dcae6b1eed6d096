"""
Row-to-view-model transformation.

Persisted rows are snake_case dicts with ISO string timestamps and loosely
typed numerics. These functions build the view-model dataclasses without
mutating the input row; absent and null optional fields both become None.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from listings_core.filtering import parse_timestamp
from listings_core.models import Bid, Feedback, Listing, Offer, VerificationRequest


def to_datetime(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp; None and empty values map to None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return parse_timestamp(str(value))


def to_number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def transform_listing(row: Dict[str, Any]) -> Listing:
    """Map a persisted listing row to the Listing view model."""
    return Listing(
        id=row["id"],
        seller_id=row["seller_id"],
        title=row.get("title") or "",
        description=row.get("description") or "",
        category=row.get("category") or "",
        type=row.get("type") or "",
        price=to_number(row.get("price")) or 0.0,
        location=row.get("location") or "",
        condition=row.get("condition") or "",
        images=list(row.get("images") or []),
        allow_best_offer=bool(row.get("allow_best_offer")),
        status=row["status"],
        expires_at=to_datetime(row["expires_at"]),
        created_at=to_datetime(row["created_at"]),
        updated_at=to_datetime(row.get("updated_at") or row["created_at"]),
        views=int(row.get("views") or 0),
        saves=int(row.get("saves") or 0),
        reserve_price=to_number(row.get("reserve_price")),
        current_bid=to_number(row.get("current_bid")),
        highest_bidder_id=row.get("highest_bidder_id"),
        sale_date=to_datetime(row.get("sale_date")),
        sale_amount=to_number(row.get("sale_amount")),
        sale_buyer_id=row.get("sale_buyer_id"),
        original_listing_id=row.get("original_listing_id"),
        relist_count=int(row.get("relist_count") or 0),
        relist_reason=row.get("relist_reason"),
        relisted_at=to_datetime(row.get("relisted_at")),
    )


def transform_listings(rows: Iterable[Dict[str, Any]]) -> List[Listing]:
    return [transform_listing(row) for row in rows]


def transform_bid(row: Dict[str, Any]) -> Bid:
    amount = to_number(row.get("amount")) or 0.0
    maximum = to_number(row.get("maximum_bid"))
    return Bid(
        id=row["id"],
        user_id=row["user_id"],
        listing_id=row["listing_id"],
        amount=amount,
        maximum_bid=amount if maximum is None else maximum,
        bid_increment=to_number(row.get("bid_increment")) or 0.0,
        status=row["status"],
        created_at=to_datetime(row["created_at"]),
        updated_at=to_datetime(row.get("updated_at")),
    )


def transform_offer(row: Dict[str, Any]) -> Offer:
    return Offer(
        id=row["id"],
        user_id=row["user_id"],
        listing_id=row["listing_id"],
        amount=to_number(row.get("amount")) or 0.0,
        status=row["status"],
        created_at=to_datetime(row["created_at"]),
        updated_at=to_datetime(row.get("updated_at")),
        message=row.get("message"),
    )


def transform_feedback(row: Dict[str, Any]) -> Feedback:
    return Feedback(
        id=row["id"],
        from_user_id=row["from_user_id"],
        to_user_id=row["to_user_id"],
        listing_id=row["listing_id"],
        rating=int(row["rating"]),
        created_at=to_datetime(row["created_at"]),
        comment=row.get("comment"),
    )


def transform_verification_request(row: Dict[str, Any]) -> VerificationRequest:
    return VerificationRequest(
        id=row["id"],
        user_id=row["user_id"],
        request_type=row["request_type"],
        status=row["status"],
        requested_at=to_datetime(row["requested_at"]),
        documents=list(row.get("documents") or []),
        document_status=row.get("document_status"),
        payment_status=row.get("payment_status"),
        message=row.get("message"),
        business_name=row.get("business_name"),
        business_registration=row.get("business_registration"),
        trading_experience=row.get("trading_experience"),
        reviewed_at=to_datetime(row.get("reviewed_at")),
        reviewed_by=row.get("reviewed_by"),
        admin_notes=row.get("admin_notes"),
    )
