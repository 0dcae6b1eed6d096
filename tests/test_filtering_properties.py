"""
Property-based tests for browse query construction.
"""

from datetime import timedelta

import pytest
from hypothesis import given, settings, strategies as st

from listings_core.filtering import (
    COMPLETED_STATUSES,
    FilterOptions,
    ListingFilter,
    PageRange,
    Predicate,
    SortConfig,
    eq,
    get_page_range,
    get_sort_config,
    is_in,
    not_expired_clause,
)
from conftest import NOW


def test_default_filters_restrict_to_unexpired_active():
    predicates = ListingFilter().build_predicates(FilterOptions(), NOW)

    assert predicates == [eq("status", "active"), Predicate("expires_at", "gte", NOW)]


def test_show_completed_uses_completed_statuses():
    predicates = ListingFilter().build_predicates(FilterOptions(show_completed="true"), NOW)

    assert predicates == [is_in("status", COMPLETED_STATUSES)]


def test_condition_key_maps_to_display_label():
    predicates = ListingFilter().build_predicates(FilterOptions(condition="like_new"), NOW)

    assert eq("condition", "Like New") in predicates


def test_all_sentinels_add_no_predicates():
    filters = FilterOptions(
        category="all_categories",
        type="all_types",
        location="all_locations",
        condition="all_conditions",
        min_price="0",
        max_price="10000",
    )

    predicates = ListingFilter().build_predicates(filters, NOW)

    assert len(predicates) == 2


def test_full_filter_set_in_order():
    filters = FilterOptions(
        category="Sports",
        type="auction",
        location="Leeds",
        condition="new",
        min_price="50",
        max_price="500",
        allow_best_offer="true",
        search_term="bike",
    )

    predicates = ListingFilter().build_predicates(filters, NOW)

    assert predicates[2:] == [
        eq("category", "Sports"),
        eq("type", "auction"),
        eq("location", "Leeds"),
        eq("condition", "New"),
        Predicate("price", "gte", 50.0),
        Predicate("price", "lte", 500.0),
        eq("allow_best_offer", True),
        Predicate("title", "ilike", "%bike%"),
    ]


def test_unparseable_price_is_ignored():
    predicates = ListingFilter().build_predicates(FilterOptions(min_price="cheap"), NOW)

    assert all(p.column != "price" for p in predicates if isinstance(p, Predicate))


def test_search_term_is_case_insensitive():
    clause = Predicate("title", "ilike", "%BIKE%")

    assert clause.matches({"title": "Vintage road bike"})
    assert not clause.matches({"title": "Kettle"})


def test_ilike_underscore_is_single_character_wildcard():
    clause = Predicate("title", "ilike", "%road_bike%")

    assert clause.matches({"title": "Vintage road bike"})
    assert clause.matches({"title": "road-bike frame"})
    assert not clause.matches({"title": "roadbike"})


def test_search_term_wildcards_match_literally():
    predicates = ListingFilter().build_predicates(FilterOptions(search_term="50%_off"), NOW)
    clause = predicates[-1]

    assert clause == Predicate("title", "ilike", "%50\\%\\_off%")
    assert clause.matches({"title": "Jacket 50%_off today"})
    assert not clause.matches({"title": "Jacket 50% off today"})
    assert not clause.matches({"title": "Jacket 500 off"})


@settings(max_examples=100)
@given(st.text(min_size=1, max_size=20))
def test_search_term_matches_titles_containing_it(term):
    predicates = ListingFilter().build_predicates(FilterOptions(search_term=term), NOW)

    assert predicates[-1].matches({"title": f"prefix {term} suffix"})


def test_unexpired_clause_includes_boundary():
    clause = not_expired_clause(NOW)

    assert clause.matches({"expires_at": NOW.isoformat()})
    assert not clause.matches({"expires_at": (NOW - timedelta(seconds=1)).isoformat()})


@pytest.mark.parametrize("page,expected", [
    ("2", PageRange(9, 17)),
    (0, PageRange(-9, -1)),
    (1, PageRange(0, 8)),
    ("abc", PageRange(0, 8)),
    ("3rd", PageRange(18, 26)),
    ("0", PageRange(0, 8)),
])
def test_page_range_examples(page, expected):
    assert get_page_range(page, 9) == expected


@given(page=st.integers(min_value=1, max_value=1000), size=st.integers(min_value=1, max_value=100))
@settings(max_examples=100)
def test_page_range_windows_are_contiguous(page, size):
    current = get_page_range(page, size)
    following = get_page_range(page + 1, size)

    assert current.end - current.start + 1 == size
    assert following.start == current.end + 1


@pytest.mark.parametrize("sort_by,expected", [
    ("newest", SortConfig("created_at", False)),
    ("oldest", SortConfig("created_at", True)),
    ("price-low", SortConfig("price", True)),
    ("price-high", SortConfig("price", False)),
    ("popular", SortConfig("views", False)),
    ("created_at-asc", SortConfig("created_at", True)),
    ("price-desc", SortConfig("price", False)),
    ("title-asc", SortConfig("created_at", False)),
    ("nonsense", SortConfig("created_at", False)),
    ("", SortConfig("created_at", False)),
])
def test_sort_config_resolution(sort_by, expected):
    assert get_sort_config(sort_by) == expected


def test_build_query_combines_sort_and_range():
    query = ListingFilter().build_query(FilterOptions(), "price-low", "2", 9, NOW)

    assert query.sort == (SortConfig("price", True),)
    assert query.page_range == PageRange(9, 17)
