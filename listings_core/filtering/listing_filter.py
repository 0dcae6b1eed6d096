"""
Listing filter construction for marketplace browsing.

Translates UI filter state into the predicate list of a query descriptor.
Filter values arrive as strings, exactly as held in the browse page's URL
and form state.
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import List, Optional

from listings_core.models import ListingStatus
from listings_core.status import utcnow
from .query import AllOf, Clause, Predicate, QueryDescriptor, eq, escape_like, is_in
from .sorting import get_sort_config
from .pagination import get_page_range


logger = logging.getLogger(__name__)


CONDITION_LABELS = {
    "like_new": "Like New",
    "new": "New",
    "used": "Used",
    "fair": "Fair",
}

COMPLETED_STATUSES = (
    ListingStatus.ACTIVE.value,
    "completed",
    ListingStatus.EXPIRED.value,
    ListingStatus.SOLD.value,
)

ALL_CATEGORIES = "all_categories"
ALL_TYPES = "all_types"
ALL_LOCATIONS = "all_locations"
ALL_CONDITIONS = "all_conditions"


@dataclass
class FilterOptions:
    """Browse filter state.

    Attributes:
        category: Category name or "all_categories"
        type: Listing type or "all_types"
        location: Location or "all_locations"
        condition: Condition key ("like_new", ...) or "all_conditions"
        min_price: Lower price bound
        max_price: Upper price bound
        allow_best_offer: "true" to restrict to best-offer listings
        search_term: Case-insensitive title substring
        show_completed: "true" to include finished listings
    """
    category: Optional[str] = None
    type: Optional[str] = None
    location: Optional[str] = None
    condition: Optional[str] = None
    min_price: Optional[str] = None
    max_price: Optional[str] = None
    allow_best_offer: Optional[str] = None
    search_term: Optional[str] = None
    show_completed: Optional[str] = None


def not_expired_clause(now: datetime) -> Predicate:
    """Complement of the expiry clause for persisted-active rows."""
    return Predicate("expires_at", "gte", now)


def expired_clause(now: Optional[datetime] = None) -> Clause:
    """Query-side form of ``listings_core.status.is_expired``."""
    now = now or utcnow()
    return AllOf((
        eq("status", ListingStatus.ACTIVE.value),
        Predicate("expires_at", "lt", now),
    ))


def normalize_condition(condition: str) -> str:
    """Map a condition key to its stored label; unknown values pass through."""
    return CONDITION_LABELS.get(condition, condition)


def _parse_price(value: str) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unparseable price bound: {value!r}")
        return None


class ListingFilter:
    """Builds listing query descriptors from browse filter state.

    Attributes:
        price_floor_sentinel: min_price value meaning "no lower bound"
        price_ceiling_sentinel: max_price value meaning "no upper bound"
    """

    def __init__(
        self,
        price_floor_sentinel: Optional[str] = "0",
        price_ceiling_sentinel: Optional[str] = "10000",
    ):
        self.price_floor_sentinel = price_floor_sentinel
        self.price_ceiling_sentinel = price_ceiling_sentinel

    def build_predicates(
        self,
        filters: FilterOptions,
        now: Optional[datetime] = None,
    ) -> List[Clause]:
        """Build the ordered predicate list for the given filters.

        Args:
            filters: Browse filter state
            now: Reference time for the expiry predicate

        Returns:
            Ordered list of clauses, all of which must hold
        """
        now = now or utcnow()
        predicates: List[Clause] = []

        if filters.show_completed != "true":
            predicates.append(eq("status", ListingStatus.ACTIVE.value))
            predicates.append(not_expired_clause(now))
        else:
            predicates.append(is_in("status", COMPLETED_STATUSES))

        if filters.category and filters.category != ALL_CATEGORIES:
            predicates.append(eq("category", filters.category))

        if filters.type and filters.type != ALL_TYPES:
            predicates.append(eq("type", filters.type))

        if filters.location and filters.location != ALL_LOCATIONS:
            predicates.append(eq("location", filters.location))

        if filters.condition and filters.condition != ALL_CONDITIONS:
            predicates.append(eq("condition", normalize_condition(filters.condition)))

        if filters.min_price and filters.min_price != self.price_floor_sentinel:
            min_price = _parse_price(filters.min_price)
            if min_price is not None:
                predicates.append(Predicate("price", "gte", min_price))

        if filters.max_price and filters.max_price != self.price_ceiling_sentinel:
            max_price = _parse_price(filters.max_price)
            if max_price is not None:
                predicates.append(Predicate("price", "lte", max_price))

        if filters.allow_best_offer == "true":
            predicates.append(eq("allow_best_offer", True))

        if filters.search_term:
            predicates.append(Predicate("title", "ilike", f"%{escape_like(filters.search_term)}%"))

        logger.debug(f"Built {len(predicates)} listing predicates from {filters}")
        return predicates

    def build_query(
        self,
        filters: FilterOptions,
        sort_by: Optional[str] = "newest",
        page=1,
        page_size: int = 9,
        now: Optional[datetime] = None,
    ) -> QueryDescriptor:
        """Build a complete browse query: predicates, sort and page window."""
        sort = get_sort_config(sort_by)
        return QueryDescriptor(
            predicates=tuple(self.build_predicates(filters, now)),
            sort=(sort,),
            page_range=get_page_range(page, page_size),
        )
