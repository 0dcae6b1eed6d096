"""
Filtering module for marketplace listings.

Builds store-independent query descriptors from browse filter state,
sort presets and page numbers.
"""

from .query import (
    Predicate,
    AllOf,
    AnyOf,
    Clause,
    SortConfig,
    PageRange,
    QueryDescriptor,
    eq,
    escape_like,
    is_in,
    parse_timestamp,
)
from .listing_filter import (
    ListingFilter,
    FilterOptions,
    CONDITION_LABELS,
    COMPLETED_STATUSES,
    expired_clause,
    not_expired_clause,
    normalize_condition,
)
from .sorting import get_sort_config, SORT_PRESETS
from .pagination import get_page_range, DEFAULT_PAGE_SIZE

__all__ = [
    'Predicate',
    'AllOf',
    'AnyOf',
    'Clause',
    'SortConfig',
    'PageRange',
    'QueryDescriptor',
    'eq',
    'escape_like',
    'is_in',
    'parse_timestamp',
    'ListingFilter',
    'FilterOptions',
    'CONDITION_LABELS',
    'COMPLETED_STATUSES',
    'expired_clause',
    'not_expired_clause',
    'normalize_condition',
    'get_sort_config',
    'SORT_PRESETS',
    'get_page_range',
    'DEFAULT_PAGE_SIZE',
]
