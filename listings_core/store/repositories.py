"""
Entity repositories.

Each repository wraps one table of a ``Store`` and exposes the queries the
services need, returning view models. Services depend on these rather than
on a concrete backend, so tests substitute the in-memory store.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from listings_core.filtering import Clause, Predicate, QueryDescriptor, eq, is_in
from listings_core.models import (
    Bid,
    BidStatus,
    BuyerProfile,
    Feedback,
    Listing,
    Notification,
    Offer,
    OfferStatus,
    VerificationRequest,
)
from listings_core.transform import (
    to_datetime,
    transform_bid,
    transform_feedback,
    transform_listing,
    transform_offer,
    transform_verification_request,
)
from . import base
from .base import Row, Store


class _Repository:
    table_name: str

    def __init__(self, store: Store):
        self.store = store

    @property
    def table(self):
        return self.store.table(self.table_name)

    async def _first(self, *predicates: Clause) -> Optional[Row]:
        rows = await self.table.select(QueryDescriptor(predicates=predicates, limit=1))
        return rows[0] if rows else None


class ListingRepository(_Repository):
    table_name = base.LISTINGS

    async def get_row(self, listing_id: str) -> Optional[Row]:
        return await self._first(eq("id", listing_id))

    async def get(self, listing_id: str) -> Optional[Listing]:
        row = await self.get_row(listing_id)
        return transform_listing(row) if row else None

    async def find_rows(self, query: QueryDescriptor) -> List[Row]:
        return await self.table.select(query)

    async def find(self, query: QueryDescriptor) -> List[Listing]:
        return [transform_listing(row) for row in await self.find_rows(query)]

    async def insert(self, row: Row) -> Listing:
        return transform_listing(await self.table.insert(row))

    async def update(self, listing_id: str, values: Row) -> Optional[Listing]:
        rows = await self.table.update(values, [eq("id", listing_id)])
        return transform_listing(rows[0]) if rows else None

    async def increment_views(self, listing_id: str) -> int:
        rows = await self.table.increment("views", [eq("id", listing_id)])
        return int(rows[0].get("views") or 0) if rows else 0


class BidRepository(_Repository):
    table_name = base.BIDS

    def _active(self, listing_id: str) -> List[Clause]:
        return [eq("listing_id", listing_id), eq("status", BidStatus.ACTIVE.value)]

    async def get(self, bid_id: str) -> Optional[Bid]:
        row = await self._first(eq("id", bid_id))
        return transform_bid(row) if row else None

    async def highest_active_amount(self, listing_id: str) -> Optional[float]:
        query = QueryDescriptor(predicates=tuple(self._active(listing_id))).order_by("amount").with_limit(1)
        rows = await self.table.select(query)
        return float(rows[0]["amount"]) if rows else None

    async def count_active(self, listing_id: str) -> int:
        return await self.table.count(self._active(listing_id))

    async def active_by_ceiling(self, listing_id: str) -> List[Bid]:
        """Active bids, highest ceiling first; earliest bid wins ties."""
        query = (
            QueryDescriptor(predicates=tuple(self._active(listing_id)))
            .order_by("maximum_bid")
            .order_by("created_at", ascending=True)
        )
        return [transform_bid(row) for row in await self.table.select(query)]

    async def active_for_bidder(self, listing_id: str, user_id: str) -> Optional[Bid]:
        row = await self._first(*self._active(listing_id), eq("user_id", user_id))
        return transform_bid(row) if row else None

    async def listing_ids_for_bidder(self, user_id: str) -> List[str]:
        rows = await self.table.select(QueryDescriptor(predicates=(eq("user_id", user_id),)))
        return sorted({row["listing_id"] for row in rows})

    async def insert(self, row: Row) -> Bid:
        return transform_bid(await self.table.insert(row))

    async def update(self, bid_id: str, values: Row) -> Optional[Bid]:
        rows = await self.table.update(values, [eq("id", bid_id)])
        return transform_bid(rows[0]) if rows else None

    async def update_where(self, values: Row, predicates: Sequence[Clause]) -> List[Bid]:
        return [transform_bid(row) for row in await self.table.update(values, predicates)]


class OfferRepository(_Repository):
    table_name = base.OFFERS

    async def get(self, offer_id: str) -> Optional[Offer]:
        row = await self._first(eq("id", offer_id))
        return transform_offer(row) if row else None

    async def pending_for(self, listing_id: str, user_id: str) -> List[Offer]:
        rows = await self.table.select(QueryDescriptor(predicates=(
            eq("listing_id", listing_id),
            eq("user_id", user_id),
            eq("status", OfferStatus.PENDING.value),
        )))
        return [transform_offer(row) for row in rows]

    async def for_listing(self, listing_id: str) -> List[Offer]:
        query = QueryDescriptor(predicates=(eq("listing_id", listing_id),)).order_by("created_at")
        return [transform_offer(row) for row in await self.table.select(query)]

    async def listing_ids_for_buyer(self, user_id: str) -> List[str]:
        rows = await self.table.select(QueryDescriptor(predicates=(eq("user_id", user_id),)))
        return sorted({row["listing_id"] for row in rows})

    async def insert(self, row: Row) -> Offer:
        return transform_offer(await self.table.insert(row))

    async def update(self, offer_id: str, values: Row) -> Optional[Offer]:
        rows = await self.table.update(values, [eq("id", offer_id)])
        return transform_offer(rows[0]) if rows else None

    async def update_where(self, values: Row, predicates: Sequence[Clause]) -> List[Offer]:
        return [transform_offer(row) for row in await self.table.update(values, predicates)]


class FeedbackRepository(_Repository):
    table_name = base.FEEDBACK

    async def insert(self, row: Row) -> Feedback:
        return transform_feedback(await self.table.insert(row))

    async def find(self, predicates: Sequence[Clause]) -> List[Feedback]:
        query = QueryDescriptor(predicates=tuple(predicates)).order_by("created_at")
        return [transform_feedback(row) for row in await self.table.select(query)]


class VerificationRepository(_Repository):
    table_name = base.VERIFICATION_REQUESTS

    async def get(self, request_id: str) -> Optional[VerificationRequest]:
        row = await self._first(eq("id", request_id))
        return transform_verification_request(row) if row else None

    async def for_user(self, user_id: str) -> List[VerificationRequest]:
        query = QueryDescriptor(predicates=(eq("user_id", user_id),)).order_by("requested_at")
        return [transform_verification_request(row) for row in await self.table.select(query)]

    async def by_status(self, status: str) -> List[VerificationRequest]:
        query = QueryDescriptor(predicates=(eq("status", status),)).order_by("requested_at", ascending=True)
        return [transform_verification_request(row) for row in await self.table.select(query)]

    async def insert(self, row: Row) -> VerificationRequest:
        return transform_verification_request(await self.table.insert(row))

    async def update(self, request_id: str, values: Row) -> Optional[VerificationRequest]:
        rows = await self.table.update(values, [eq("id", request_id)])
        return transform_verification_request(rows[0]) if rows else None


class ProfileRepository(_Repository):
    table_name = base.PROFILES

    async def get_row(self, user_id: str) -> Optional[Row]:
        return await self._first(eq("id", user_id))

    async def buyers_by_id(self, user_ids: Iterable[str]) -> Dict[str, BuyerProfile]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        rows = await self.table.select(QueryDescriptor(predicates=(is_in("id", ids),)))
        return {
            row["id"]: BuyerProfile(
                id=row["id"],
                name=row.get("full_name") or "Unknown User",
                avatar=row.get("avatar_url"),
            )
            for row in rows
        }

    async def verification_level(self, user_id: str) -> Optional[str]:
        row = await self.get_row(user_id)
        return row.get("verification_level") if row else None

    async def set_verification_level(self, user_id: str, level: str) -> None:
        updated = await self.table.update({"verification_level": level}, [eq("id", user_id)])
        if not updated:
            await self.table.insert({"id": user_id, "verification_level": level})

    async def insert(self, row: Row) -> Row:
        return await self.table.insert(row)


class NotificationRepository(_Repository):
    table_name = base.NOTIFICATIONS

    async def insert(self, user_id: str, type: str, message: str, metadata: Optional[dict] = None) -> Row:
        return await self.table.insert({
            "user_id": user_id,
            "type": type,
            "message": message,
            "is_read": False,
            "metadata": metadata or {},
        })

    async def latest(self, user_id: str, limit: int = 30) -> List[Notification]:
        query = QueryDescriptor(predicates=(eq("user_id", user_id),)).order_by("created_at").with_limit(limit)
        return [
            Notification(
                id=row["id"],
                user_id=row["user_id"],
                type=row["type"],
                message=row["message"],
                is_read=bool(row.get("is_read")),
                created_at=to_datetime(row["created_at"]),
                metadata=row.get("metadata") or {},
            )
            for row in await self.table.select(query)
        ]

    async def mark_read(self, notification_ids: Sequence[str]) -> int:
        if not notification_ids:
            return 0
        rows = await self.table.update({"is_read": True}, [is_in("id", notification_ids)])
        return len(rows)


class ListingViewRepository(_Repository):
    table_name = base.LISTING_VIEWS

    async def count_recent(
        self,
        listing_id: str,
        since: datetime,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> int:
        predicates: List[Clause] = [eq("listing_id", listing_id), Predicate("viewed_at", "gte", since)]
        if user_id:
            predicates.append(eq("user_id", user_id))
        elif ip_address:
            predicates.append(eq("ip_address", ip_address))
        return await self.table.count(predicates)

    async def insert(self, row: Row) -> Row:
        return await self.table.insert(row)


class Repositories:
    """All entity repositories over one store."""

    def __init__(self, store: Store):
        self.store = store
        self.listings = ListingRepository(store)
        self.bids = BidRepository(store)
        self.offers = OfferRepository(store)
        self.feedback = FeedbackRepository(store)
        self.verification = VerificationRepository(store)
        self.profiles = ProfileRepository(store)
        self.notifications = NotificationRepository(store)
        self.listing_views = ListingViewRepository(store)
